"""Pydantic models for the content store."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer
from pydantic.alias_generators import to_camel

from .errors import ErrorKind

# Recognized frontmatter keys in serialization order
RECOGNIZED_FIELDS = ("title", "description", "category", "tags", "lastUpdated")


def _split_tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def _iso_day(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        # Not date-like; keep the author's value
        return text


class CamelModel(BaseModel):
    """Base for models exposed at the API boundary with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Frontmatter(BaseModel):
    """Metadata block of a content file.

    Recognized fields are typed; any other key is kept in ``model_extra`` and
    written back unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = ""
    description: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    last_updated: str | None = Field(default=None, alias="lastUpdated")

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("description", "category", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            raise ValueError("must be a scalar")
        return str(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> list[str]:
        return _split_tags(value)

    @field_validator("last_updated", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> str | None:
        return _iso_day(value)

    @model_serializer(mode="plain")
    def _serialize(self) -> dict[str, Any]:
        return self.to_dict()

    @property
    def extra(self) -> dict[str, Any]:
        """Unrecognized keys, in the order they were read."""
        return dict(self.model_extra or {})

    def to_dict(self) -> dict[str, Any]:
        """Serialize with recognized fields first and empty optionals omitted."""
        data: dict[str, Any] = {"title": self.title}
        if self.description:
            data["description"] = self.description
        if self.category:
            data["category"] = self.category
        if self.tags:
            data["tags"] = list(self.tags)
        if self.last_updated:
            data["lastUpdated"] = self.last_updated
        for key, value in self.extra.items():
            if key not in data:
                data[key] = value
        return data

    def merged(self, updates: dict[str, Any]) -> "Frontmatter":
        """Return a new Frontmatter with ``updates`` shallow-merged over this one."""
        data = self.to_dict()
        data.update(updates)
        return Frontmatter.model_validate(data)


class ValidationResult(BaseModel):
    """Outcome of validating a logical path."""

    valid: bool
    message: str | None = None
    kind: ErrorKind | None = None


class ContentMeta(CamelModel):
    """Lightweight projection of a content file used by listings and search."""

    path: str  # Relative file path including extension
    slug: str  # Extension-less logical path
    frontmatter: Frontmatter
    last_modified: datetime
    body: str | None = None  # Only populated when full content was requested


class ContentFile(CamelModel):
    """A fully loaded content file."""

    path: str
    slug: str
    frontmatter: Frontmatter
    body: str
    last_modified: datetime

    def to_meta(self, include_body: bool = False) -> ContentMeta:
        return ContentMeta(
            path=self.path,
            slug=self.slug,
            frontmatter=self.frontmatter,
            last_modified=self.last_modified,
            body=self.body if include_body else None,
        )


class FileListItem(CamelModel):
    """A file or directory entry below the content root."""

    name: str
    path: str
    type: Literal["file", "directory"]
    extension: str | None = None
    size: int | None = None
    last_modified: datetime


class DirectoryContents(CamelModel):
    """Result of listing a directory."""

    path: str
    items: list[FileListItem] = Field(default_factory=list)


class SearchMatch(BaseModel):
    """A single matched field with highlighted text."""

    field: str  # title | description | content | tags
    text: str


class SearchResult(CamelModel):
    """A ranked search hit. Never persisted."""

    path: str
    slug: str
    title: str
    description: str | None = None
    excerpt: str = ""
    matches: list[SearchMatch] = Field(default_factory=list)
    score: float | None = None  # None for tag-only results
    tags: list[str] = Field(default_factory=list)


class Page(CamelModel):
    """One page of a sorted result set."""

    items: list[Any]
    total: int
    page: int | None = None  # Set for offset pagination only
    limit: int
    has_more: bool
    next_cursor: str | None = None


class MoveResult(CamelModel):
    """Result of moving a content file."""

    source_path: str
    destination_path: str


class UploadResult(CamelModel):
    """Result of persisting an uploaded file."""

    path: str
    file: FileListItem
    processed: bool = False  # True when Markdown was normalized on ingest
