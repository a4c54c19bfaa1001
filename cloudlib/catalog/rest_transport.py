"""REST transport for the catalog's fixed-shape API.

Endpoints consumed:
- GET  /infomodel/find2          basic listing (offset/limit/keywords)
- GET  /infomodel/download/{id}  full document
- PUT  /infomodel/upload         upload, status reported in the result
- GET  /infomodel/namespaces     "namespaceUri,identifier" pairs
"""

import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .api_models import BasicListingEntry, CatalogEntry
from .exceptions import MalformedResponseError, TransportError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadResult:
    """Outcome of an upload.

    On success `message` carries the new identifier; on 409 it carries the
    server's conflict explanation.
    """
    status_code: int
    message: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def conflict(self) -> bool:
        return self.status_code == 409


@dataclass(frozen=True)
class NamespaceId:
    namespace_uri: str
    identifier: str


class RestTransport:
    """Async client for the catalog REST endpoints.

    Holds one pooled httpx.AsyncClient for its lifetime. Headers are fixed
    at construction and passed with every request.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._headers = MappingProxyType(dict(headers or {}))
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "RestTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, path: str, params: Any = None) -> Any:
        url = self._base_url + path
        log.debug(f"rest_get: {url}")
        try:
            response = await self._client.get(url, params=params, headers=dict(self._headers))
        except httpx.HTTPError as e:
            raise TransportError.from_httpx(e, url) from e

        if not 200 <= response.status_code < 300:
            raise TransportError(f"HTTP {response.status_code} from {url}", status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response from {url} is not JSON", path=path) from e

    async def list_basic_info(
        self,
        offset: int,
        limit: int,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[BasicListingEntry]:
        """One page of basic listing entries."""
        params = [("offset", offset), ("limit", limit)]
        params.extend(("keywords", k) for k in (keywords or ["*"]))
        data = await self._get_json("/infomodel/find2", params)
        if not isinstance(data, list):
            raise MalformedResponseError("Basic listing is not a JSON array", path="/infomodel/find2")
        try:
            return [BasicListingEntry.model_validate(item) for item in data]
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid basic listing entry: {e}", path="/infomodel/find2") from e

    async def scan_basic_info(
        self,
        page_size: int,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[BasicListingEntry]:
        """Every basic listing entry, read page by page.

        Stops on a short page, or on a page that adds no unseen ids (a
        server that ignores offset keeps returning the same page).
        """
        entries: List[BasicListingEntry] = []
        seen = set()
        offset = 0
        while True:
            page = await self.list_basic_info(offset, page_size, keywords)
            fresh = [e for e in page if e.id not in seen]
            seen.update(e.id for e in fresh)
            entries.extend(fresh)
            if len(page) < page_size or not fresh:
                break
            offset += page_size
        log.debug(f"scan_basic_info: {len(entries)} entries in {offset // page_size + 1} page(s)")
        return entries

    async def download(self, identifier: str, metadata_only: bool = False) -> CatalogEntry:
        """Full document for `identifier`.

        Args:
            identifier: Server-assigned nodeset id.
            metadata_only: Skip the raw body; metadata and required models only.
        """
        path = f"/infomodel/download/{quote(str(identifier), safe='')}"
        params = {
            "nodesetXMLOnly": "false",
            "metadataOnly": "true" if metadata_only else "false",
        }
        data = await self._get_json(path, params)
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Download of {identifier} is not a JSON object", path=path)
        try:
            return CatalogEntry.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid document for {identifier}: {e}", path=path) from e

    async def upload(self, entry: CatalogEntry, overwrite: bool = False) -> UploadResult:
        """Upload a document. Conflicts are reported, not raised."""
        url = self._base_url + "/infomodel/upload"
        body = entry.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            response = await self._client.put(
                url,
                params={"overwrite": "true" if overwrite else "false"},
                json=body,
                headers=dict(self._headers),
            )
        except httpx.HTTPError as e:
            raise TransportError.from_httpx(e, url) from e

        message = response.text
        try:
            # The identifier is sometimes sent as a JSON string
            decoded = json.loads(message)
            if isinstance(decoded, (str, int)):
                message = str(decoded)
        except ValueError:
            pass
        log.info(f"rest_upload: status={response.status_code} overwrite={overwrite}")
        return UploadResult(status_code=response.status_code, message=message)

    async def list_namespace_ids(self) -> List[NamespaceId]:
        """All namespaces and the identifier of the nodeset declaring each."""
        data = await self._get_json("/infomodel/namespaces")
        if not isinstance(data, list):
            raise MalformedResponseError("Namespace list is not a JSON array", path="/infomodel/namespaces")
        result = []
        for item in data:
            namespace_uri, sep, identifier = str(item).rpartition(",")
            if not sep:
                raise MalformedResponseError(
                    f"Namespace entry '{item}' has no identifier", path="/infomodel/namespaces"
                )
            result.append(NamespaceId(namespace_uri=namespace_uri, identifier=identifier))
        return result
