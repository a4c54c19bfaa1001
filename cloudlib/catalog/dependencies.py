"""Dependency resolution over either protocol.

Graph path: one DependenciesQuery returning the matching nodesets with
requiredModels -> availableModel unrolled to the builder's max depth.

REST path: the target ids are either the given identifier or every basic
listing entry matching the namespace (and publication date, when given),
scanned page by page. Each id is downloaded metadata-only and its last
modified date reset, so both paths report the same fields.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from cloudlib.core.config import FALLBACK_ON_TRANSPORT_ERROR, REST_PAGE_SIZE

from .api_models import DependencyEdge, NodesetDocument
from .exceptions import ProtocolUnsupportedError, TransportError
from .normalizer import matches_key, nodesets_from_graph, reset_last_modified
from .query_builder import GraphQLRequest, QueryBuilder
from .resolver import ProtocolResolver
from .rest_transport import RestTransport

log = logging.getLogger(__name__)

EdgeKey = Tuple[Optional[str], Optional[datetime], Optional[str]]


class DependencyResolver:
    """Resolves a nodeset and its required models.

    Args:
        graph_execute: Coroutine function sending a graph request and
            returning its payload.
        rest: REST transport used by the fallback path.
        builder: Query builder (sets the unrolled depth).
        protocol: Resolver applying the fallback policy.
        page_size: Basic listing page size for the REST scan.
        fallback_on_transport_error: Also fall back when the graph call
            fails with a TransportError.
    """

    def __init__(
        self,
        graph_execute: Callable[[GraphQLRequest], Awaitable[Any]],
        rest: RestTransport,
        builder: QueryBuilder,
        protocol: ProtocolResolver,
        page_size: int = REST_PAGE_SIZE,
        fallback_on_transport_error: bool = FALLBACK_ON_TRANSPORT_ERROR,
    ):
        self._graph_execute = graph_execute
        self._rest = rest
        self._builder = builder
        self._protocol = protocol
        self.page_size = page_size
        self.fallback_on_transport_error = fallback_on_transport_error

    @property
    def triggers(self) -> tuple:
        if self.fallback_on_transport_error:
            return (ProtocolUnsupportedError, TransportError)
        return (ProtocolUnsupportedError,)

    async def resolve(
        self,
        identifier: Optional[str] = None,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
    ) -> List[NodesetDocument]:
        """Return the matching nodesets with their required models.

        The identifier takes precedence over namespace and publication date.

        Raises:
            ValueError: If neither identifier nor namespace_uri is given.
        """
        if identifier is None and namespace_uri is None:
            raise ValueError("Either identifier or namespace_uri is required")
        return await self._protocol.execute(
            "get_nodeset_dependencies",
            lambda: self.via_graph(identifier, namespace_uri, publication_date),
            lambda: self.via_rest(identifier, namespace_uri, publication_date),
            triggers=self.triggers,
        )

    async def via_graph(
        self,
        identifier: Optional[str] = None,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
    ) -> List[NodesetDocument]:
        request = self._builder.dependencies(identifier, namespace_uri, publication_date)
        nodes = await self._graph_execute(request)
        return nodesets_from_graph(nodes)

    async def via_rest(
        self,
        identifier: Optional[str] = None,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
    ) -> List[NodesetDocument]:
        if identifier is not None:
            identifiers = [str(identifier)]
        else:
            identifiers = await self._find_identifiers(namespace_uri, publication_date)

        documents = []
        for id_ in identifiers:
            entry = await self._rest.download(id_, metadata_only=True)
            documents.append(reset_last_modified(entry.nodeset))
        log.info(f"rest_dependencies: resolved {len(documents)} nodeset(s)")
        return documents

    async def _find_identifiers(
        self,
        namespace_uri: str,
        publication_date: Optional[datetime],
    ) -> List[str]:
        entries = await self._rest.scan_basic_info(self.page_size)
        return [str(e.id) for e in entries if matches_key(e, namespace_uri, publication_date)]


def _walk_edges(edges: Iterable[DependencyEdge], transitive: bool) -> Iterable[DependencyEdge]:
    for edge in edges:
        yield edge
        if transitive and edge.available_model is not None:
            yield from _walk_edges(edge.available_model.required_models, transitive)


def dependency_keys(documents: Iterable[NodesetDocument], transitive: bool = False) -> Set[EdgeKey]:
    """Deduplicated (namespace_uri, publication_date, version) keys of the
    documents' required models, for order-independent comparison."""
    keys: Set[EdgeKey] = set()
    for document in documents:
        keys.update(edge.key for edge in _walk_edges(document.required_models, transitive))
    return keys
