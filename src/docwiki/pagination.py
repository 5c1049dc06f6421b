"""Sorting and pagination over listing and search results.

Items may be pydantic models (ContentMeta, SearchResult, FileListItem) or
plain dicts. Two strategies are supported:

- page/offset: ``items[(page - 1) * limit : page * limit]``
- cursor: the cursor is the URL-encoded path of the last item of the
  previous page; the next page starts right after it.

``has_more`` is computed by checking for an item beyond the returned slice,
so a corpus whose size is an exact multiple of ``limit`` ends with
``has_more=False``.
"""

from __future__ import annotations

import locale
import logging
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any, Literal, TypeVar
from urllib.parse import quote, unquote

from pydantic import BaseModel

from .config import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT
from .errors import ContentError, ErrorKind
from .models import Page
from .paths import strip_markdown_extension

log = logging.getLogger(__name__)

T = TypeVar("T")

SortOrder = Literal["asc", "desc"]

_FRONTMATTER_PREFIX = "frontmatter."
_MISSING = object()


def clamp_page(page: Any) -> int:
    """Page number as an int >= 1 (invalid input falls back to the first page)."""
    try:
        value = int(page)
    except (TypeError, ValueError):
        return DEFAULT_PAGE
    return max(1, value)


def clamp_limit(limit: Any, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Page size clamped to ``[1, maximum]``; missing or invalid input uses ``default``."""
    if limit is None or limit == "":
        return default
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return default
    return min(maximum, max(1, value))


def _attribute(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, _MISSING)
    if isinstance(obj, BaseModel):
        if key in type(obj).model_fields:
            return getattr(obj, key)
        for name, info in type(obj).model_fields.items():
            if info.alias == key:
                return getattr(obj, name)
        extra = obj.model_extra or {}
        return extra.get(key, _MISSING)
    return getattr(obj, key, _MISSING)


def field_value(item: Any, sort_by: str) -> Any:
    """Look up ``sort_by`` on an item; ``frontmatter.<field>`` reads a frontmatter key.

    Returns None when the field is absent.
    """
    if sort_by.startswith(_FRONTMATTER_PREFIX):
        fm = _attribute(item, "frontmatter")
        if fm is _MISSING or fm is None:
            return None
        value = _attribute(fm, sort_by[len(_FRONTMATTER_PREFIX) :])
    else:
        value = _attribute(item, sort_by)
    return None if value is _MISSING else value


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, str):
        return (0, (locale.strxfrm(value.casefold()), locale.strxfrm(value)))
    if isinstance(value, (bool, int, float)):
        return (1, float(value))
    if isinstance(value, (datetime, date)):
        return (2, value.isoformat())
    if isinstance(value, (list, tuple)):
        return (3, tuple(str(v).casefold() for v in value))
    return (4, str(value))


def sort_items(
    items: Sequence[T],
    sort_by: str | None = None,
    sort_order: SortOrder | str = "asc",
) -> list[T]:
    """Sort by a top-level or ``frontmatter.<field>`` value.

    Strings use locale-aware ordering, other values compare relationally.
    Items without the field keep their relative order after the others in
    either direction. Without ``sort_by`` the input order is preserved.

    Raises:
        ContentError: INVALID_SORT for an order other than asc/desc.
    """
    if sort_order not in ("asc", "desc"):
        raise ContentError(
            ErrorKind.INVALID_SORT,
            "Sort order must be one of: asc, desc",
            {"sortOrder": sort_order},
        )
    if not sort_by:
        return list(items)

    present: list[tuple[Any, T]] = []
    missing: list[T] = []
    for item in items:
        value = field_value(item, sort_by)
        if value is None or value == "":
            missing.append(item)
        else:
            present.append((_sort_key(value), item))

    present.sort(key=lambda pair: pair[0], reverse=sort_order == "desc")
    return [item for _, item in present] + missing


def paginate_by_page(items: Sequence[T], page: int, limit: int) -> list[T]:
    """Offset pagination; ``page`` and ``limit`` are clamped first."""
    page = clamp_page(page)
    limit = clamp_limit(limit)
    start = (page - 1) * limit
    return list(items[start : start + limit])


def item_path(item: Any) -> str:
    value = field_value(item, "path")
    return "" if value is None else str(value)


def encode_cursor(item: Any) -> str:
    """Cursor token for an item: its URL-encoded path."""
    return quote(item_path(item), safe="")


def _cursor_index(items: Sequence[Any], cursor: str) -> int | None:
    """Position of the cursor item: an exact path match, else a unique slug match."""
    target = unquote(cursor).strip("/")
    paths = [item_path(item) for item in items]
    if target in paths:
        return paths.index(target)

    # a.md and a.mdx share a slug; an ambiguous slug is not a usable cursor
    target_slug = strip_markdown_extension(target)
    slug_matches = [i for i, path in enumerate(paths) if strip_markdown_extension(path) == target_slug]
    if len(slug_matches) == 1:
        return slug_matches[0]
    return None


def cursor_start(items: Sequence[Any], cursor: str | None, strict: bool = False) -> int:
    """Index of the first item after ``cursor``.

    An unknown cursor restarts at 0, or raises INVALID_CURSOR with ``strict``.
    """
    if not cursor:
        return 0
    index = _cursor_index(items, cursor)
    if index is None:
        if strict:
            raise ContentError(
                ErrorKind.INVALID_CURSOR,
                f"Cursor does not match any item: {unquote(cursor)}",
                {"cursor": cursor},
            )
        log.debug("Unknown cursor %r, restarting from the first item", cursor)
        return 0
    return index + 1


def paginate_by_cursor(
    items: Sequence[T], cursor: str | None, limit: int, strict: bool = False
) -> list[T]:
    """The ``limit`` items following the item whose path equals the decoded cursor."""
    start = cursor_start(items, cursor, strict=strict)
    return list(items[start : start + clamp_limit(limit)])


def paginate(
    items: Sequence[Any],
    page: Any = None,
    limit: Any = None,
    cursor: str | None = None,
    strict_cursor: bool = False,
) -> Page:
    """Slice a sorted sequence into a Page.

    A cursor takes precedence over ``page``. ``next_cursor`` is only set when
    more items exist.
    """
    size = clamp_limit(limit)
    total = len(items)

    if cursor:
        start = cursor_start(items, cursor, strict=strict_cursor)
        sliced = list(items[start : start + size])
        has_more = start + size < total
        return Page(
            items=sliced,
            total=total,
            limit=size,
            has_more=has_more,
            next_cursor=encode_cursor(sliced[-1]) if has_more and sliced else None,
        )

    number = clamp_page(page)
    start = (number - 1) * size
    sliced = list(items[start : start + size])
    has_more = start + size < total
    return Page(
        items=sliced,
        total=total,
        page=number,
        limit=size,
        has_more=has_more,
        next_cursor=encode_cursor(sliced[-1]) if has_more and sliced else None,
    )
