"""Response normalization.

Maps graph-shaped nodes and REST-shaped entries into the shared
NodesetDocument / DependencyEdge model, so callers observe one shape
whichever protocol served the call.

Normalization rules:
- Graph `modelUri` becomes `namespace_uri` at every nesting level.
- REST basic listing -> converted metadata: `required_nodesets` and
  `namespace_uri` are nulled first, matching the lightweight graph listing.
- REST download used in place of a graph listing: `last_modified_date`
  is reset to None, since the graph path never reports it.
- Validation status is passed through verbatim; only comparisons fold case.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .api_models import (
    ApprovalResult,
    BasicListingEntry,
    CatalogEntry,
    Metadata,
    NodesetDocument,
    Organisation,
    PageEnvelope,
    PageInfo,
)
from .exceptions import MalformedResponseError
from .query_builder import FieldSelection


def _graph_to_wire(value: Any) -> Any:
    """Rename graph `modelUri` keys to the shared `namespaceUri`, recursively."""
    if isinstance(value, list):
        return [_graph_to_wire(v) for v in value]
    if not isinstance(value, dict):
        return value
    out: Dict[str, Any] = {}
    for key, item in value.items():
        if key == "modelUri":
            out["namespaceUri"] = item
        else:
            out[key] = _graph_to_wire(item)
    return out


def nodeset_from_graph(node: Dict[str, Any]) -> NodesetDocument:
    """Convert one graph node (with nested requiredModels) to a NodesetDocument."""
    try:
        return NodesetDocument.model_validate(_graph_to_wire(node))
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid nodeset in graph response: {e}") from e


def nodesets_from_graph(nodes: Any) -> List[NodesetDocument]:
    if not isinstance(nodes, list):
        raise MalformedResponseError("Graph nodes payload is not a list")
    return [nodeset_from_graph(node) for node in nodes]


def page_from_graph(payload: Any) -> PageEnvelope[NodesetDocument]:
    """Convert a graph connection payload to a PageEnvelope."""
    if not isinstance(payload, dict):
        raise MalformedResponseError("Graph connection payload is not an object")
    try:
        return PageEnvelope[NodesetDocument].model_validate(_graph_to_wire(payload))
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid page in graph response: {e}") from e


def approval_from_graph(payload: Any) -> ApprovalResult:
    if not isinstance(payload, dict):
        raise MalformedResponseError("Approval payload is not an object")
    try:
        return ApprovalResult.model_validate(_graph_to_wire(payload))
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid approval result: {e}") from e


def metadata_from_basic(entry: BasicListingEntry) -> Metadata:
    contributor = Organisation(name=entry.contributor) if entry.contributor else None
    return Metadata(
        title=entry.title,
        license=entry.license,
        contributor=contributor,
        creation_time=entry.creation_time,
    )


def converted_metadata(entries: List[BasicListingEntry]) -> List[CatalogEntry]:
    """Convert basic listing entries to the full-document shape.

    Required nodesets and namespace are nulled before conversion, matching
    what the graph listing omits in the equivalent lightweight call.
    """
    result = []
    for entry in entries:
        entry = entry.model_copy(update={"required_nodesets": None, "namespace_uri": None})
        metadata = metadata_from_basic(entry)
        nodeset = NodesetDocument(
            identifier=entry.id,
            namespace_uri=entry.namespace_uri,
            publication_date=entry.publication_date,
            version=entry.version,
            required_models=entry.required_nodesets,
        )
        result.append(CatalogEntry(**dict(metadata), nodeset=nodeset))
    return result


def nodeset_from_basic(entry: BasicListingEntry, fields: FieldSelection) -> NodesetDocument:
    """Convert a basic listing entry for the listing fallback.

    Subtrees the caller suppressed are left empty, as the graph path would.
    Edges carry no availableModel; the basic listing cannot resolve them.
    """
    metadata: Optional[Metadata] = None
    if not fields.omit_metadata:
        metadata = metadata_from_basic(entry)
        if fields.omit_creation_time:
            metadata = metadata.model_copy(update={"creation_time": None})
    required = []
    if not fields.omit_required_models:
        required = [edge.model_copy(update={"available_model": None}) for edge in entry.required_nodesets or []]
    return NodesetDocument(
        identifier=entry.id,
        namespace_uri=entry.namespace_uri,
        publication_date=entry.publication_date,
        version=entry.version,
        metadata=metadata,
        required_models=required,
    )


def page_from_basic(
    entries: List[BasicListingEntry],
    fields: FieldSelection,
    has_next_page: bool = False,
    offset: Optional[int] = None,
    total_count: Optional[int] = None,
) -> PageEnvelope[NodesetDocument]:
    """Wrap converted entries in a page.

    With `offset`, each edge's cursor is its position in the listing, the
    same shape the graph endpoint hands out; without it the page carries
    no cursors. total_count defaults to the number of entries on the page.
    """
    nodes = [nodeset_from_basic(e, fields) for e in entries]
    if offset is None:
        cursors: List[Optional[str]] = [None] * len(nodes)
    else:
        cursors = [str(offset + i) for i in range(len(nodes))]
    if fields.omit_total_count:
        total_count = None
    elif total_count is None:
        total_count = len(nodes)
    return PageEnvelope[NodesetDocument](
        total_count=total_count,
        page_info=PageInfo(
            start_cursor=cursors[0] if cursors else None,
            end_cursor=cursors[-1] if cursors else None,
            has_next_page=has_next_page,
            has_previous_page=bool(offset),
        ),
        edges=[{"cursor": cursor, "node": node} for cursor, node in zip(cursors, nodes)],
    )


def reset_last_modified(document: NodesetDocument) -> NodesetDocument:
    """Drop the REST-only last modified date and raw body."""
    return document.model_copy(update={"last_modified_date": None, "nodeset_xml": None})


def matches_key(
    entry: BasicListingEntry,
    namespace_uri: str,
    publication_date: Optional[datetime] = None,
) -> bool:
    if entry.namespace_uri != namespace_uri:
        return False
    if publication_date is None:
        return True
    if publication_date.tzinfo is None:
        publication_date = publication_date.replace(tzinfo=timezone.utc)
    return entry.publication_date == publication_date


def validation_status_equals(actual: Optional[str], expected: Optional[str]) -> bool:
    """Case-insensitive comparison of opaque validation status strings."""
    if actual is None or expected is None:
        return actual is expected
    return actual.casefold() == expected.casefold()
