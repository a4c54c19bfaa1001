"""
Cloud Library catalog data model.

All models are immutable snapshots built fresh from each response. Wire
names are camelCase; Python attributes are snake_case and either can be used
to construct a model.
"""

from datetime import datetime, timezone
from typing import Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # REST serializes dates without an offset; the graph endpoint uses UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Metadata
# =============================================================================

class Organisation(_WireModel):
    """Contributor of a nodeset."""
    name: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = Field(None, alias="logoUrl")
    contact_email: Optional[str] = Field(None, alias="contactEmail")
    website: Optional[str] = None


class Category(_WireModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon_url: Optional[str] = Field(None, alias="iconUrl")


class UAProperty(_WireModel):
    """Additional key/value property attached to a nodeset."""
    name: str
    value: Optional[str] = None


class Metadata(_WireModel):
    """Descriptive block attached to a nodeset."""
    title: Optional[str] = None
    license: Optional[str] = None
    copyright_text: Optional[str] = Field(None, alias="copyrightText")
    description: Optional[str] = None
    documentation_url: Optional[str] = Field(None, alias="documentationUrl")
    icon_url: Optional[str] = Field(None, alias="iconUrl")
    license_url: Optional[str] = Field(None, alias="licenseUrl")
    keywords: List[str] = Field(default_factory=list)
    purchasing_information_url: Optional[str] = Field(None, alias="purchasingInformationUrl")
    release_notes_url: Optional[str] = Field(None, alias="releaseNotesUrl")
    test_specification_url: Optional[str] = Field(None, alias="testSpecificationUrl")
    supported_locales: List[str] = Field(default_factory=list, alias="supportedLocales")
    number_of_downloads: Optional[int] = Field(None, alias="numberOfDownloads")
    contributor: Optional[Organisation] = None
    category: Optional[Category] = None
    additional_properties: List[UAProperty] = Field(default_factory=list, alias="additionalProperties")
    creation_time: Optional[datetime] = Field(None, alias="creationTime")
    validation_status: Optional[str] = Field(None, alias="validationStatus")
    approval_status: Optional[str] = Field(None, alias="approvalStatus")
    approval_information: Optional[str] = Field(None, alias="approvalInformation")

    @field_validator("keywords", "supported_locales", "additional_properties", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return [] if value is None else value


# =============================================================================
# Documents and dependency edges
# =============================================================================

class DependencyEdge(_WireModel):
    """A declared requirement of one nodeset on another namespace/version.

    (namespace_uri, publication_date, version) identify the required model;
    available_model is the catalog document satisfying it, if resolved.
    """
    namespace_uri: Optional[str] = Field(None, alias="namespaceUri")
    publication_date: Optional[datetime] = Field(None, alias="publicationDate")
    version: Optional[str] = None
    available_model: Optional["NodesetDocument"] = Field(None, alias="availableModel")

    @field_validator("publication_date")
    @classmethod
    def publication_date_utc(cls, value):
        return _as_utc(value)

    @property
    def key(self) -> Tuple[Optional[str], Optional[datetime], Optional[str]]:
        return (self.namespace_uri, self.publication_date, self.version)


class NodesetDocument(_WireModel):
    """A nodeset as held by the catalog.

    Attributes:
        identifier: Server-assigned numeric id.
        namespace_uri: Namespace declared by the nodeset.
        publication_date: Publication date, if the publisher set one.
        version: Version string (not validated).
        validation_status: Server lifecycle stage (opaque text, e.g. INDEXED).
        last_modified_date: Only populated by a full REST download.
        nodeset_xml: Raw document body, only populated by a download.
        metadata: Descriptive block, None when not requested.
        required_models: Declared dependencies, in server order.
    """
    identifier: Optional[int] = None
    namespace_uri: Optional[str] = Field(None, alias="namespaceUri")
    publication_date: Optional[datetime] = Field(None, alias="publicationDate")
    version: Optional[str] = None
    validation_status: Optional[str] = Field(None, alias="validationStatus")
    last_modified_date: Optional[datetime] = Field(None, alias="lastModifiedDate")
    nodeset_xml: Optional[str] = Field(None, alias="nodesetXml")
    metadata: Optional[Metadata] = None
    required_models: List[DependencyEdge] = Field(default_factory=list, alias="requiredModels")

    @field_validator("publication_date", "last_modified_date")
    @classmethod
    def dates_utc(cls, value):
        return _as_utc(value)

    @field_validator("required_models", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return [] if value is None else value


DependencyEdge.model_rebuild()
NodesetDocument.model_rebuild()


class CatalogEntry(Metadata):
    """Full REST document: metadata fields at the top level plus the nodeset."""
    nodeset: NodesetDocument = Field(default_factory=NodesetDocument)


class BasicListingEntry(_WireModel):
    """Reduced REST listing shape; required nodesets carry no nested resolution."""
    id: int
    title: Optional[str] = None
    contributor: Optional[str] = None
    license: Optional[str] = None
    version: Optional[str] = None
    publication_date: Optional[datetime] = Field(None, alias="publicationDate")
    namespace_uri: Optional[str] = Field(None, alias="nameSpaceUri")
    required_nodesets: Optional[List[DependencyEdge]] = Field(None, alias="requiredNodesets")
    creation_time: Optional[datetime] = Field(None, alias="creationTime")

    @field_validator("publication_date")
    @classmethod
    def publication_date_utc(cls, value):
        return _as_utc(value)


class ApprovalResult(_WireModel):
    """Payload returned by the approval mutation."""
    title: Optional[str] = None
    approval_status: Optional[str] = Field(None, alias="approvalStatus")
    approval_information: Optional[str] = Field(None, alias="approvalInformation")
    additional_properties: List[UAProperty] = Field(default_factory=list, alias="additionalProperties")
    nodeset: Optional[NodesetDocument] = Field(None, alias="nodeSet")


# =============================================================================
# Cursor pagination
# =============================================================================

T = TypeVar("T")


class PageInfo(_WireModel):
    """Cursor state. Cursors are opaque; pass end_cursor back as `after`."""
    start_cursor: Optional[str] = Field(None, alias="startCursor")
    end_cursor: Optional[str] = Field(None, alias="endCursor")
    has_next_page: bool = Field(False, alias="hasNextPage")
    has_previous_page: bool = Field(False, alias="hasPreviousPage")


class PageEdge(_WireModel, Generic[T]):
    cursor: Optional[str] = None
    node: T


class PageEnvelope(_WireModel, Generic[T]):
    """One page of results. total_count is None when the caller suppressed it."""
    total_count: Optional[int] = Field(None, alias="totalCount")
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")
    edges: List[PageEdge[T]] = Field(default_factory=list)

    @property
    def nodes(self) -> List[T]:
        return [edge.node for edge in self.edges]


# =============================================================================
# Error codes
# =============================================================================

class ErrorCode:
    """Error code registry carried by CatalogError subclasses."""
    PROTOCOL_UNSUPPORTED = "PROTOCOL_UNSUPPORTED"
    APPLICATION_ERROR = "APPLICATION_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


# Recoverability per code: only a missing graph endpoint can be recovered
# from inside the client (by REST fallback).
RECOVERABLE_CODES = frozenset({ErrorCode.PROTOCOL_UNSUPPORTED})
