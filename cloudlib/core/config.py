"""
Cloud Library client configuration constants.

Constants are organized into:
- NORMATIVE: Fixed by the catalog contract, cannot be changed per deployment
- OPERATIONAL: Deployment-specific settings (env vars)
- TEST-ONLY: Switches that exist only for deterministic fallback testing
"""

import base64
import os
from dataclasses import dataclass, field
from typing import Optional

# =============================================================================
# NORMATIVE CONSTANTS
# =============================================================================

# Stable URI of the public catalog
DEFAULT_ENDPOINT: str = "https://uacloudlibrary.opcfoundation.org"

# Graph query endpoint, relative to the catalog base URI
GRAPHQL_PATH: str = "/graphql"

# Page size used when the REST fallback scans the basic listing
REST_PAGE_SIZE: int = 10

# Levels of requiredModels -> availableModel unrolled in graph queries.
# The graph server cannot select recursively, so chains deeper than this
# come back with the deepest availableModel missing. Known limitation.
DEPENDENCY_MAX_DEPTH: int = 4

# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

CLOUDLIB_ENDPOINT: str = os.getenv("CLOUDLIB_ENDPOINT", DEFAULT_ENDPOINT)

# Request timeout for both transports
CLOUDLIB_TIMEOUT_SECONDS: float = float(os.getenv("CLOUDLIB_TIMEOUT", "30.0"))

# Basic credentials (username/password) or a bearer token
CLOUDLIB_USERNAME: str = os.getenv("CLOUDLIB_USERNAME", "")
CLOUDLIB_PASSWORD: str = os.getenv("CLOUDLIB_PASSWORD", "")
CLOUDLIB_TOKEN: str = os.getenv("CLOUDLIB_TOKEN", "")

# Default of the per-instance REST fallback toggle
ALLOW_REST_FALLBACK: bool = os.getenv("CLOUDLIB_ALLOW_REST_FALLBACK", "true").lower() == "true"

# Dependency resolution only: also fall back when the graph call fails at
# the transport level (timeout, DNS, TLS). Off by default; when False only
# ProtocolUnsupportedError triggers the REST path.
FALLBACK_ON_TRANSPORT_ERROR: bool = os.getenv(
    "CLOUDLIB_FALLBACK_ON_TRANSPORT_ERROR", "false"
).lower() == "true"


@dataclass(frozen=True)
class Credentials:
    """Credential attached to every outbound call on both transports.

    Either a username/password pair (sent as Basic) or a token (sent as
    Bearer). The token wins when both are set.
    """

    username: str = ""
    password: str = ""
    token: str = ""

    def authorization_header(self) -> Optional[str]:
        """Return the Authorization header value, or None when empty."""
        if self.token:
            return f"Bearer {self.token}"
        if self.username or self.password:
            raw = f"{self.username}:{self.password}".encode("utf-8")
            return "Basic " + base64.b64encode(raw).decode("ascii")
        return None


@dataclass(frozen=True)
class ClientOptions:
    """Construction-time settings for CloudLibClient.

    Attributes:
        endpoint: Catalog base URI. Empty means the public catalog.
        credentials: Credential captured once and shared by both transports.
        timeout: Per-request timeout in seconds.
    """

    endpoint: str = DEFAULT_ENDPOINT
    credentials: Credentials = field(default_factory=Credentials)
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return (self.endpoint or DEFAULT_ENDPOINT).rstrip("/")

    @property
    def graphql_url(self) -> str:
        return self.base_url + GRAPHQL_PATH


def load_client_options() -> ClientOptions:
    """Build ClientOptions from the environment."""
    return ClientOptions(
        endpoint=CLOUDLIB_ENDPOINT,
        credentials=Credentials(
            username=CLOUDLIB_USERNAME,
            password=CLOUDLIB_PASSWORD,
            token=CLOUDLIB_TOKEN,
        ),
        timeout=CLOUDLIB_TIMEOUT_SECONDS,
    )
