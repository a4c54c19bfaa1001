"""Cloud Library catalog client.

Graph query building, protocol fallback, dependency resolution and
response normalization over the catalog's graph and REST endpoints.
"""

from .exceptions import (
    CatalogError,
    ProtocolUnsupportedError,
    ApplicationError,
    MalformedResponseError,
    TransportError,
)
from .api_models import (
    ErrorCode,
    Organisation,
    Category,
    UAProperty,
    Metadata,
    DependencyEdge,
    NodesetDocument,
    CatalogEntry,
    BasicListingEntry,
    ApprovalResult,
    PageInfo,
    PageEdge,
    PageEnvelope,
)
from .rest_transport import NamespaceId, UploadResult
from .dependencies import dependency_keys
from .normalizer import validation_status_equals
from .client import CloudLibClient, get_cloudlib_client, close_cloudlib_client

__all__ = [
    # Exceptions
    "CatalogError",
    "ProtocolUnsupportedError",
    "ApplicationError",
    "MalformedResponseError",
    "TransportError",
    "ErrorCode",
    # Models
    "Organisation",
    "Category",
    "UAProperty",
    "Metadata",
    "DependencyEdge",
    "NodesetDocument",
    "CatalogEntry",
    "BasicListingEntry",
    "ApprovalResult",
    "PageInfo",
    "PageEdge",
    "PageEnvelope",
    "NamespaceId",
    "UploadResult",
    # Client
    "CloudLibClient",
    "get_cloudlib_client",
    "close_cloudlib_client",
    "dependency_keys",
    "validation_status_equals",
]
