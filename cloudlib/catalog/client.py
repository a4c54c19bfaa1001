"""Cloud Library catalog client.

CloudLibClient owns one graph transport and one REST transport for its
lifetime. Listing, dependency and approval operations go through the graph
endpoint first; listing and dependencies fall back to REST when the graph
endpoint is unsupported and fallback is allowed. Basic listing, download,
namespace enumeration and upload are REST only.

Each call is one fresh round trip, except REST scans of the listing; nothing
is cached and pagination is driven by the caller.
"""

from datetime import datetime
from typing import Any, List, Optional, Sequence

import httpx

from cloudlib.core.config import (
    ALLOW_REST_FALLBACK,
    FALLBACK_ON_TRANSPORT_ERROR,
    REST_PAGE_SIZE,
    ClientOptions,
    load_client_options,
)

from .api_models import (
    ApprovalResult,
    BasicListingEntry,
    CatalogEntry,
    NodesetDocument,
    PageEnvelope,
    UAProperty,
)
from .dependencies import DependencyResolver
from .exceptions import ProtocolUnsupportedError
from .graphql_transport import GraphQLTransport
from .normalizer import (
    approval_from_graph,
    converted_metadata,
    matches_key,
    page_from_basic,
    page_from_graph,
)
from .query_builder import FieldSelection, GraphQLRequest, Pagination, QueryBuilder
from .resolver import ProtocolResolver
from .rest_transport import NamespaceId, RestTransport, UploadResult


class CloudLibClient:
    """Async client for a Cloud Library catalog.

    Usage:
        async with CloudLibClient(options) as client:
            page = await client.get_nodesets(namespace_uri="http://opcfoundation.org/UA/DI/")
    """

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize client.

        Args:
            options: Endpoint, credentials and timeout. Defaults to the
                environment configuration.
            http_client: Shared httpx client for both transports. The
                caller keeps ownership and closes it.
        """
        self.options = options or load_client_options()
        headers = {}
        authorization = self.options.credentials.authorization_header()
        if authorization:
            headers["Authorization"] = authorization

        self._graph = GraphQLTransport(
            self.options.graphql_url, headers=headers, timeout=self.options.timeout, client=http_client
        )
        self._rest = RestTransport(
            self.options.base_url, headers=headers, timeout=self.options.timeout, client=http_client
        )
        self._builder = QueryBuilder()
        self._protocol = ProtocolResolver(allow_fallback=ALLOW_REST_FALLBACK)
        self._dependencies = DependencyResolver(
            self._send_graph,
            self._rest,
            self._builder,
            self._protocol,
            fallback_on_transport_error=FALLBACK_ON_TRANSPORT_ERROR,
        )

        # Test hooks, not part of the public contract
        self._force_graph_failure = False

    @property
    def _allow_rest_fallback(self) -> bool:
        return self._protocol.allow_fallback

    @_allow_rest_fallback.setter
    def _allow_rest_fallback(self, value: bool) -> None:
        self._protocol.allow_fallback = value

    async def __aenter__(self) -> "CloudLibClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._graph.aclose()
        await self._rest.aclose()

    async def _send_graph(self, request: GraphQLRequest) -> Any:
        if self._force_graph_failure:
            raise ProtocolUnsupportedError("Failing graph query to force REST fallback")
        return await self._graph.execute(request)

    # =========================================================================
    # Graph operations (REST fallback where one exists)
    # =========================================================================

    async def get_nodesets(
        self,
        identifier: Optional[str] = None,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
        keywords: Optional[Sequence[str]] = None,
        after: Optional[str] = None,
        first: Optional[int] = None,
        before: Optional[str] = None,
        last: Optional[int] = None,
        omit_metadata: bool = False,
        omit_total_count: bool = False,
        omit_required_models: bool = False,
        omit_creation_time: bool = True,
    ) -> PageEnvelope[NodesetDocument]:
        """Query one page of nodesets.

        Args:
            identifier: Only the nodeset with this id.
            namespace_uri: Only nodesets declaring this namespace.
            publication_date: Only nodesets published at this date.
            keywords: Full-text keywords.
            after, first: Forward paging (cursor, page size).
            before, last: Backward paging (cursor, page size).
            omit_metadata: Leave out the metadata subtree.
            omit_total_count: Leave out totalCount.
            omit_required_models: Leave out the requiredModels subtree.
            omit_creation_time: Leave out metadata.creationTime.

        Returns:
            PageEnvelope of NodesetDocument. On the REST fallback cursors
            are listing positions. Unfiltered pages read one find2 page and
            report a full page as has_next_page; identifier, namespace or
            date filters scan the whole listing and page over the matches.

        Raises:
            ValueError: The REST fallback got an `after` cursor it did not
                issue.
        """
        fields = FieldSelection(
            omit_metadata=omit_metadata,
            omit_total_count=omit_total_count,
            omit_required_models=omit_required_models,
            omit_creation_time=omit_creation_time,
        )
        request = self._builder.nodesets(
            identifier=identifier,
            namespace_uri=namespace_uri,
            publication_date=publication_date,
            keywords=keywords,
            page=Pagination(after=after, first=first, before=before, last=last),
            fields=fields,
        )

        async def via_graph() -> PageEnvelope[NodesetDocument]:
            return page_from_graph(await self._send_graph(request))

        async def via_rest() -> PageEnvelope[NodesetDocument]:
            offset = _rest_offset(after)
            if identifier is None and namespace_uri is None and publication_date is None:
                limit = first or REST_PAGE_SIZE
                entries = await self._rest.list_basic_info(offset, limit, keywords)
                return page_from_basic(entries, fields, has_next_page=len(entries) >= limit, offset=offset)
            entries = await self._rest.scan_basic_info(REST_PAGE_SIZE, keywords)
            matching = [e for e in entries if _matches_filters(e, identifier, namespace_uri, publication_date)]
            window = matching[offset:offset + first] if first else matching[offset:]
            return page_from_basic(
                window,
                fields,
                has_next_page=offset + len(window) < len(matching),
                offset=offset,
                total_count=len(matching),
            )

        return await self._protocol.execute("get_nodesets", via_graph, via_rest)

    async def get_nodesets_pending_approval(
        self,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
        additional_property: Optional[UAProperty] = None,
        after: Optional[str] = None,
        first: Optional[int] = None,
        before: Optional[str] = None,
        last: Optional[int] = None,
        omit_metadata: bool = False,
        omit_total_count: bool = False,
        omit_required_models: bool = False,
        omit_creation_time: bool = True,
    ) -> PageEnvelope[NodesetDocument]:
        """Query nodesets awaiting approval (administrators only).

        Graph only. A property filter matches nodesets carrying a property
        with that name whose value ends with the given value.
        """
        request = self._builder.nodesets_pending_approval(
            namespace_uri=namespace_uri,
            publication_date=publication_date,
            additional_property=additional_property,
            page=Pagination(after=after, first=first, before=before, last=last),
            fields=FieldSelection(
                omit_metadata=omit_metadata,
                omit_total_count=omit_total_count,
                omit_required_models=omit_required_models,
                omit_creation_time=omit_creation_time,
            ),
        )

        async def via_graph() -> PageEnvelope[NodesetDocument]:
            return page_from_graph(await self._send_graph(request))

        return await self._protocol.execute("get_nodesets_pending_approval", via_graph)

    async def update_approval_status(
        self,
        identifier: str,
        new_status: str,
        status_info: Optional[str] = None,
        additional_property: Optional[UAProperty] = None,
    ) -> ApprovalResult:
        """Set the approval status of an uploaded nodeset (administrators only).

        Args:
            identifier: Nodeset id.
            new_status: APPROVED, PENDING, REJECTED or CANCELED.
            status_info: Optional comment, typically for REJECTED.
            additional_property: Property to set; a None or empty value
                removes it.
        """
        request = self._builder.approval_mutation(identifier, new_status, status_info, additional_property)

        async def via_graph() -> ApprovalResult:
            return approval_from_graph(await self._send_graph(request))

        return await self._protocol.execute("update_approval_status", via_graph)

    async def get_nodeset_dependencies(
        self,
        identifier: Optional[str] = None,
        namespace_uri: Optional[str] = None,
        publication_date: Optional[datetime] = None,
    ) -> List[NodesetDocument]:
        """Nodesets matching the key, each with its required models resolved."""
        return await self._dependencies.resolve(identifier, namespace_uri, publication_date)

    # =========================================================================
    # REST-only operations
    # =========================================================================

    async def get_converted_metadata(self, offset: int, limit: int) -> List[CatalogEntry]:
        """Basic listing converted to the full-document shape.

        Namespace and required nodesets are left empty, as in the
        equivalent graph listing.
        """
        entries = await self._rest.list_basic_info(offset, limit)
        return converted_metadata(entries)

    async def get_basic_nodeset_information(
        self,
        offset: int,
        limit: int,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[BasicListingEntry]:
        return await self._rest.list_basic_info(offset, limit, keywords)

    async def download_nodeset(self, identifier: str) -> CatalogEntry:
        """Full document including the raw nodeset body."""
        return await self._rest.download(str(identifier))

    async def get_namespace_ids(self) -> List[NamespaceId]:
        return await self._rest.list_namespace_ids()

    async def upload_nodeset(self, entry: CatalogEntry, overwrite: bool = False) -> UploadResult:
        """Upload a document.

        Returns:
            UploadResult; `message` is the new identifier on success. A
            duplicate upload without overwrite gives status 409.
        """
        return await self._rest.upload(entry, overwrite)


def _rest_offset(after: Optional[str]) -> int:
    """Listing offset following the edge cursor `after`."""
    if after is None:
        return 0
    try:
        return int(after) + 1
    except ValueError:
        raise ValueError(f"Cursor {after!r} is not a listing position") from None


def _matches_filters(
    entry: BasicListingEntry,
    identifier: Optional[str],
    namespace_uri: Optional[str],
    publication_date: Optional[datetime],
) -> bool:
    if identifier is not None and str(entry.id) != str(identifier):
        return False
    if namespace_uri is not None:
        return matches_key(entry, namespace_uri, publication_date)
    if publication_date is not None:
        return matches_key(entry, entry.namespace_uri, publication_date)
    return True


# Global client instance
_client: Optional[CloudLibClient] = None


async def get_cloudlib_client() -> CloudLibClient:
    """Get or create the global catalog client."""
    global _client
    if _client is None:
        _client = CloudLibClient()
        await _client.__aenter__()
    return _client


async def close_cloudlib_client() -> None:
    """Close the global catalog client."""
    global _client
    if _client is not None:
        await _client.__aexit__(None, None, None)
        _client = None
