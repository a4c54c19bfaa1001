"""GraphQL query construction for the catalog graph endpoint.

Every optional filter is added through a VariableSet, which records the
variable declaration and its binding together, so a built request always
declares exactly the variables it binds and references. Omitted filters
leave no trace in the document.

Field suppression removes whole subtrees (metadata, totalCount,
requiredModels, creationTime) from the selection rather than asking for
nullable values, to bound response size.

The graph server cannot select recursively, so requiredModels ->
availableModel is unrolled to a fixed depth (DEPENDENCY_MAX_DEPTH). The
innermost availableModel still lists its own requiredModels, without
availableModel, so a chain one level deeper than the limit comes back
with its last edge present and unresolved.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from cloudlib.core.config import DEPENDENCY_MAX_DEPTH

from .api_models import UAProperty

# A selection is a list of field names and (field, sub-selection) pairs
Selection = List[Union[str, Tuple[str, "Selection"]]]

NODESET_FIELDS = ["modelUri", "publicationDate", "version", "identifier", "validationStatus"]
EDGE_FIELDS = ["modelUri", "publicationDate", "version"]
AVAILABLE_MODEL_FIELDS = ["modelUri", "publicationDate", "version", "identifier"]
PAGE_INFO_FIELDS = ["endCursor", "hasNextPage", "hasPreviousPage", "startCursor"]


@dataclass(frozen=True)
class GraphQLRequest:
    """A query or mutation document plus its variable bindings.

    Attributes:
        query: The GraphQL document.
        variables: Bindings for exactly the variables declared in `query`.
        operation_name: Operation name sent alongside the document.
        result_path: Dotted path of the payload under `data`.
    """
    query: str
    variables: Dict[str, Any] = field(default_factory=dict)
    operation_name: Optional[str] = None
    result_path: str = ""

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": self.query, "variables": dict(self.variables)}
        if self.operation_name:
            payload["operationName"] = self.operation_name
        return payload


@dataclass(frozen=True)
class FieldSelection:
    """Which optional subtrees to leave out of a nodeset listing."""
    omit_metadata: bool = False
    omit_total_count: bool = False
    omit_required_models: bool = False
    omit_creation_time: bool = True


@dataclass(frozen=True)
class Pagination:
    """Cursor pagination arguments; unset ones are not sent."""
    after: Optional[str] = None
    first: Optional[int] = None
    before: Optional[str] = None
    last: Optional[int] = None


def format_variable(value: Any) -> Any:
    """Convert a Python value to its JSON variable form."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    if isinstance(value, (list, tuple)):
        return [format_variable(v) for v in value]
    return value


class VariableSet:
    """Variable declarations and bindings kept in lockstep."""

    def __init__(self):
        self._types: Dict[str, str] = {}
        self._values: Dict[str, Any] = {}

    def add(self, name: str, gql_type: str, value: Any, always: bool = False) -> bool:
        """Declare and bind `name` unless value is None (and not `always`).

        Returns:
            True if the variable was added.
        """
        if value is None and not always:
            return False
        self._types[name] = gql_type
        self._values[name] = format_variable(value)
        return True

    def __contains__(self, name: str) -> bool:
        return name in self._types

    @property
    def names(self) -> List[str]:
        return list(self._types)

    @property
    def bindings(self) -> Dict[str, Any]:
        return dict(self._values)

    def declaration(self) -> str:
        """Render `($a: T, $b: U)`, or an empty string when nothing was added."""
        if not self._types:
            return ""
        return "(" + ", ".join(f"${n}: {t}" for n, t in self._types.items()) + ")"

    def arguments(self, names: Sequence[str]) -> List[str]:
        """Render `name: $name` for each of `names` that was added."""
        return [f"{n}: ${n}" for n in names if n in self]


def render_selection(selection: Selection, indent: int = 2) -> str:
    pad = " " * indent
    lines = []
    for item in selection:
        if isinstance(item, tuple):
            name, children = item
            lines.append(f"{pad}{name} {{")
            lines.append(render_selection(children, indent + 2))
            lines.append(f"{pad}}}")
        else:
            lines.append(pad + item)
    return "\n".join(lines)


def _call(name: str, args: Sequence[str]) -> str:
    return f"{name}({', '.join(args)})" if args else name


def required_models_selection(depth: int) -> Tuple[str, Selection]:
    """requiredModels subtree with `depth` levels of availableModel."""
    fields: Selection = list(EDGE_FIELDS)
    if depth > 0:
        available: Selection = list(AVAILABLE_MODEL_FIELDS)
        available.append(required_models_selection(depth - 1))
        fields.append(("availableModel", available))
    return ("requiredModels", fields)


def metadata_selection(omit_creation_time: bool = True) -> Tuple[str, Selection]:
    fields: Selection = [
        ("contributor", ["description", "contactEmail", "logoUrl", "name", "website"]),
        ("category", ["description", "iconUrl", "name"]),
        ("additionalProperties", ["name", "value"]),
        "copyrightText",
        "description",
        "documentationUrl",
    ]
    if not omit_creation_time:
        fields.append("creationTime")
    fields.extend([
        "iconUrl",
        "keywords",
        "license",
        "licenseUrl",
        "numberOfDownloads",
        "purchasingInformationUrl",
        "releaseNotesUrl",
        "supportedLocales",
        "testSpecificationUrl",
        "title",
        "validationStatus",
        "approvalStatus",
        "approvalInformation",
    ])
    return ("metadata", fields)


class QueryBuilder:
    """Builds minimal graph requests for the catalog operations.

    Args:
        max_depth: Levels of availableModel unrolled under requiredModels.
    """

    PAGINATION_VARIABLES = (("after", "String"), ("first", "Int"), ("before", "String"), ("last", "Int"))

    def __init__(self, max_depth: int = DEPENDENCY_MAX_DEPTH):
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        self.max_depth = max_depth

    def _node_selection(self, fields: FieldSelection) -> Selection:
        node: Selection = list(NODESET_FIELDS)
        if not fields.omit_metadata:
            node.append(metadata_selection(fields.omit_creation_time))
        if not fields.omit_required_models:
            node.append(required_models_selection(self.max_depth))
        return node

    def _connection_selection(self, fields: FieldSelection) -> Selection:
        selection: Selection = []
        if not fields.omit_total_count:
            selection.append("totalCount")
        selection.append(("pageInfo", list(PAGE_INFO_FIELDS)))
        selection.append(("edges", ["cursor", ("node", self._node_selection(fields))]))
        return selection

    def _add_pagination(self, variables: VariableSet, page: Pagination) -> None:
        for name, gql_type in self.PAGINATION_VARIABLES:
            variables.add(name, gql_type, getattr(page, name))

    def nodesets(
        self,
        identifier: Optional[str] = None,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
        keywords: Optional[Sequence[str]] = None,
        page: Pagination = Pagination(),
        fields: FieldSelection = FieldSelection(),
    ) -> GraphQLRequest:
        """Paged nodeset listing with optional filters."""
        variables = VariableSet()
        variables.add("identifier", "String", identifier)
        variables.add("modelUri", "String", namespace_uri)
        variables.add("publicationDate", "DateTime", publication_date)
        variables.add("keywords", "[String]", list(keywords) if keywords else None)
        self._add_pagination(variables, page)

        root = _call("nodeSets", variables.arguments(variables.names))
        body = render_selection([(root, self._connection_selection(fields))])
        query = f"query NodeSetsQuery{variables.declaration()} {{\n{body}\n}}"
        return GraphQLRequest(
            query=query,
            variables=variables.bindings,
            operation_name="NodeSetsQuery",
            result_path="nodeSets",
        )

    def nodesets_pending_approval(
        self,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
        additional_property: Optional[UAProperty] = None,
        page: Pagination = Pagination(),
        fields: FieldSelection = FieldSelection(),
    ) -> GraphQLRequest:
        """Nodesets awaiting approval, filtered by namespace and/or property.

        The publication date only narrows a namespace filter and is ignored
        without one. Present filters are joined into one conjunctive
        `where` clause.
        """
        variables = VariableSet()
        predicates: List[str] = []
        if variables.add("namespaceUri", "String", namespace_uri):
            predicates.append("modelUri: {eq: $namespaceUri}")
            if variables.add("publicationDate", "DateTime", publication_date):
                predicates.append("publicationDate: {eq: $publicationDate}")
        if additional_property is not None:
            variables.add("propName", "String", additional_property.name, always=True)
            match = ["name: {eq: $propName}"]
            if variables.add("propValue", "String", additional_property.value):
                match.append("value: {endsWith: $propValue}")
            predicates.append(
                "and: {metadata: {additionalProperties: {some: {" + ", ".join(match) + "}}}}"
            )
        self._add_pagination(variables, page)

        args = []
        if predicates:
            args.append("where: {" + ", ".join(predicates) + "}")
        args.extend(variables.arguments([name for name, _ in self.PAGINATION_VARIABLES]))

        root = _call("nodeSetsPendingApproval", args)
        body = render_selection([(root, self._connection_selection(fields))])
        query = f"query PendingApprovalQuery{variables.declaration()} {{\n{body}\n}}"
        return GraphQLRequest(
            query=query,
            variables=variables.bindings,
            operation_name="PendingApprovalQuery",
            result_path="nodeSetsPendingApproval",
        )

    def dependencies(
        self,
        identifier: Optional[str] = None,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
    ) -> GraphQLRequest:
        """Nodesets plus their requiredModels tree in one round trip.

        The identifier takes precedence; namespace and publication date are
        only sent when no identifier is given.
        """
        variables = VariableSet()
        if identifier is not None:
            variables.add("identifier", "String", str(identifier))
        elif namespace_uri is not None:
            variables.add("modelUri", "String", namespace_uri)
            variables.add("publicationDate", "DateTime", publication_date)
        else:
            raise ValueError("Either identifier or namespace_uri is required")

        node: Selection = list(NODESET_FIELDS)
        node.append(required_models_selection(self.max_depth))
        root = _call("nodeSets", variables.arguments(variables.names))
        body = render_selection([(root, [("nodes", node)])])
        query = f"query DependenciesQuery{variables.declaration()} {{\n{body}\n}}"
        return GraphQLRequest(
            query=query,
            variables=variables.bindings,
            operation_name="DependenciesQuery",
            result_path="nodeSets.nodes",
        )

    def approval_mutation(
        self,
        identifier: str,
        new_status: str,
        status_info: Optional[str] = None,
        additional_property: Optional[UAProperty] = None,
    ) -> GraphQLRequest:
        """Set the approval status of an uploaded nodeset.

        An additional property with an empty or None value removes that
        property on the server.
        """
        variables = VariableSet()
        variables.add("newStatus", "ApprovalStatus!", new_status, always=True)
        variables.add("identifier", "String", str(identifier), always=True)
        inputs = ["status: $newStatus", "identifier: $identifier"]
        if variables.add("approvalInfo", "String", status_info):
            inputs.append("approvalInformation: $approvalInfo")
        if additional_property is not None:
            variables.add("propName", "String", additional_property.name, always=True)
            variables.add("propValue", "String", additional_property.value, always=True)
            inputs.append("additionalProperties: [{key: $propName, value: $propValue}]")

        root = "approveNodeSet(input: {" + ", ".join(inputs) + "})"
        selection: Selection = [
            "title",
            "approvalStatus",
            "approvalInformation",
            ("additionalProperties", ["name", "value"]),
            ("nodeSet", ["identifier", "modelUri", "version"]),
        ]
        body = render_selection([(root, selection)])
        query = f"mutation ApprovalMutation{variables.declaration()} {{\n{body}\n}}"
        return GraphQLRequest(
            query=query,
            variables=variables.bindings,
            operation_name="ApprovalMutation",
            result_path="approveNodeSet",
        )
