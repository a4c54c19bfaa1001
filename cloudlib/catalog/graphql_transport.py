"""Graph query transport.

Sends a GraphQLRequest to the catalog's single graph endpoint and returns
the parsed envelope. Classification of failures:

- Body carries a non-empty `errors` list -> ApplicationError
- Non-2xx status without a graph error body (e.g. 404) -> ProtocolUnsupportedError
- httpx network/timeout failure -> TransportError
- 2xx body that is not a JSON object -> MalformedResponseError
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .exceptions import (
    ApplicationError,
    MalformedResponseError,
    ProtocolUnsupportedError,
    TransportError,
)
from .query_builder import GraphQLRequest

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphQLResponse:
    """Parsed graph envelope without errors."""
    data: Optional[Dict[str, Any]]
    extensions: Dict[str, Any] = field(default_factory=dict)

    def payload(self, path: str) -> Any:
        """Return the value at dotted `path` under `data`.

        Raises:
            MalformedResponseError: If data or any step of the path is absent or null.
        """
        if self.data is None:
            raise MalformedResponseError("Graph response has no data", path=path)
        value: Any = self.data
        for step in path.split("."):
            if not isinstance(value, dict) or value.get(step) is None:
                raise MalformedResponseError(
                    f"Graph response has no payload at '{path}'", path=path
                )
            value = value[step]
        return value


class GraphQLTransport:
    """Async sender for the catalog graph endpoint.

    Holds one pooled httpx.AsyncClient for its lifetime. Headers are fixed
    at construction and passed with every request.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize transport.

        Args:
            url: Absolute URL of the graph endpoint.
            headers: Headers sent with every request (authorization).
            timeout: Request timeout in seconds.
            client: Shared client to use instead of creating one.
        """
        self.url = url
        self._headers = MappingProxyType(dict(headers or {}))
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "GraphQLTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(self, request: GraphQLRequest) -> GraphQLResponse:
        """Send one request and return the error-free envelope."""
        log.debug(f"graphql_send: op={request.operation_name} vars={sorted(request.variables)}")
        try:
            response = await self._client.post(
                self.url,
                json=request.to_payload(),
                headers=dict(self._headers),
            )
        except httpx.HTTPError as e:
            raise TransportError.from_httpx(e, self.url) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("errors"):
            errors: List[Dict[str, Any]] = body["errors"]
            log.info(f"graphql_errors: op={request.operation_name} count={len(errors)}")
            raise ApplicationError.from_errors(errors)

        if not 200 <= response.status_code < 300:
            log.info(f"graphql_unsupported: status={response.status_code} url={self.url}")
            raise ProtocolUnsupportedError(
                f"Cloud Library does not support GraphQL (HTTP {response.status_code} from {self.url})"
            )

        if not isinstance(body, dict):
            raise MalformedResponseError("Graph response is not a JSON object")

        return GraphQLResponse(data=body.get("data"), extensions=body.get("extensions") or {})

    async def execute(self, request: GraphQLRequest) -> Any:
        """Send `request` and return the payload at its result path."""
        response = await self.send(request)
        return response.payload(request.result_path)
