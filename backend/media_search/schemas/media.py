from datetime import datetime
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

MediaType = Literal["image", "audio", "video"]
ResultType = Literal["image", "audio"]

DEFAULT_TITLE = "Untitled"
DEFAULT_LICENSE = "unknown"
DEFAULT_PROVIDER = "unknown"

# Scalar fields read from a raw Openverse item
_SCALAR_FIELDS = (
    "id", "title", "url", "thumbnail", "provider", "source", "license",
    "license_version", "license_url", "creator", "creator_url",
    "foreign_landing_url", "created_on", "indexed_on",
)


class SearchParams(BaseModel):
    """Input to a media search, before clamping"""
    query: str
    media_type: MediaType = "image"
    license: Optional[str] = None
    extension: Optional[str] = None
    page: int = 1
    page_size: int = 20


class OpenverseItem(BaseModel):
    """
    Permissive decoder for one raw Openverse result.

    Every field is optional: wrong-typed scalars are coerced to strings or dropped,
    and tags may arrive as plain strings or as {"name": ...} objects. Decoding an
    object therefore never fails; missing values are defaulted in to_media_result.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    thumbnail: Optional[str] = None
    provider: Optional[str] = None
    source: Optional[str] = None
    license: Optional[str] = None
    license_version: Optional[str] = None
    license_url: Optional[str] = None
    creator: Optional[str] = None
    creator_url: Optional[str] = None
    foreign_landing_url: Optional[str] = None
    created_on: Optional[str] = None
    indexed_on: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator(*_SCALAR_FIELDS, mode="before")
    @classmethod
    def coerce_scalar(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        names = []
        for tag in value:
            if isinstance(tag, dict):
                tag = tag.get("name")
            if isinstance(tag, str) and tag.strip():
                names.append(tag.strip())
        return names


class OpenverseEnvelope(BaseModel):
    """Top level of an Openverse search response"""
    model_config = ConfigDict(extra="ignore")

    result_count: Optional[int] = 0
    page_count: Optional[int] = 0
    results: List[Any] = Field(default_factory=list)


class MediaResult(BaseModel):
    """One normalized search hit. Built fresh per search and never stored."""
    id: str
    title: str
    url: str
    thumbnail: str
    provider: str
    source: Optional[str] = None
    license: str
    license_version: Optional[str] = None
    license_url: Optional[str] = None
    creator: Optional[str] = None
    creator_url: Optional[str] = None
    foreign_landing_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    type: ResultType
    created_date: Optional[str] = None


def to_media_result(item: OpenverseItem, media_type: ResultType, placeholder_thumbnail: str) -> MediaResult:
    """Map a decoded Openverse item onto MediaResult, filling defaults for missing data"""
    return MediaResult(
        id=item.id or "",
        title=item.title or DEFAULT_TITLE,
        url=item.url or "",
        thumbnail=item.thumbnail or item.url or placeholder_thumbnail,
        provider=item.provider or item.source or DEFAULT_PROVIDER,
        source=item.source,
        license=item.license or DEFAULT_LICENSE,
        license_version=item.license_version,
        license_url=item.license_url,
        creator=item.creator,
        creator_url=item.creator_url,
        foreign_landing_url=item.foreign_landing_url,
        tags=item.tags,
        type=media_type,
        created_date=item.created_on or item.indexed_on,
    )


class SearchPage(BaseModel):
    """Normalized results for one page of a search"""
    count: int
    page: int
    page_size: int
    page_count: int
    results: List[MediaResult]


class SearchRecordResponse(BaseModel):
    id: int
    query: str
    media_type: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: datetime, _info):
        return value.isoformat() if value else None
