"""Catalog client exceptions mapped to error codes.

- Missing graph endpoint -> PROTOCOL_UNSUPPORTED (recoverable by REST fallback)
- Server-reported graph errors -> APPLICATION_ERROR (never triggers fallback)
- Envelope without the expected payload -> MALFORMED_RESPONSE
- Network failures and unexpected REST statuses -> TRANSPORT_ERROR

Cancellation is never wrapped; asyncio.CancelledError reaches the caller as is.
"""

from typing import Any, Dict, List, Optional

import httpx

from .api_models import RECOVERABLE_CODES, ErrorCode


class CatalogError(Exception):
    """Base exception for catalog client operations.

    Carries an error code from ErrorCode.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @property
    def recoverable(self) -> bool:
        return self.code in RECOVERABLE_CODES


class ProtocolUnsupportedError(CatalogError):
    """The catalog does not serve the graph endpoint.

    Raised when the graph transport answers not-found or another non-2xx
    status without a graph error envelope, and by the force-fail test hook.
    """

    def __init__(self, message: str = "Cloud Library does not support GraphQL"):
        super().__init__(ErrorCode.PROTOCOL_UNSUPPORTED, message)


class ApplicationError(CatalogError):
    """The graph response carried a non-empty errors list.

    The message is the first error's extension `message` when present,
    otherwise its top-level `message`.
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(ErrorCode.APPLICATION_ERROR, message)

    @classmethod
    def from_errors(cls, errors: List[Dict[str, Any]]) -> "ApplicationError":
        """Build from a graph `errors` list, extracting the user-facing text."""
        first = errors[0] if errors else {}
        message = first.get("message") or "GraphQL request failed"
        extensions = first.get("extensions") or {}
        if extensions.get("message"):
            message = str(extensions["message"])
        return cls(message, errors)


class MalformedResponseError(CatalogError):
    """Response parsed but the payload was absent at the expected path."""

    def __init__(self, message: str = "Malformed catalog response", path: Optional[str] = None):
        self.path = path
        super().__init__(ErrorCode.MALFORMED_RESPONSE, message)


class TransportError(CatalogError):
    """Network or HTTP failure unrelated to graph endpoint support.

    Used when:
    - Request timed out
    - DNS/TLS/connection failure
    - REST endpoint answered with an unexpected status
    """

    def __init__(self, message: str = "Catalog request failed", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(ErrorCode.TRANSPORT_ERROR, message)

    @classmethod
    def from_httpx(cls, exc: httpx.HTTPError, url: str) -> "TransportError":
        """Map an httpx failure to a TransportError."""
        if isinstance(exc, httpx.TimeoutException):
            return cls(f"Timeout requesting {url}")
        if isinstance(exc, httpx.HTTPStatusError):
            return cls(
                f"HTTP {exc.response.status_code} from {url}",
                status_code=exc.response.status_code,
            )
        return cls(f"Request to {url} failed: {type(exc).__name__}: {exc}")
