"""Frontmatter decoding and encoding for content files.

A content file is an optional ``---`` delimited YAML block followed by the
Markdown body. Dates in the block are never turned into ``date`` objects by
the YAML loader; the ``Frontmatter`` model normalizes them to ``YYYY-MM-DD``
strings itself. A block YAML cannot read falls back to a simple
``key: value`` line parser so a single malformed line does not make the whole
file unreadable.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Any

import yaml
from frontmatter import YAMLHandler
from pydantic import ValidationError

from .models import Frontmatter, _iso_day, _split_tags

log = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"

_DELIMITER = "---"
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _NoDatesLoader(yaml.SafeLoader):
    """SafeLoader that leaves date-like scalars as strings."""


_NoDatesLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class ContentYAMLHandler(YAMLHandler):
    """YAML handler with date typing disabled and key order preserved on export."""

    def load(self, fm: str, **kwargs: object) -> Any:
        kwargs.setdefault("Loader", _NoDatesLoader)
        return super().load(fm, **kwargs)

    def export(self, metadata: dict[str, object], **kwargs: object) -> str:
        kwargs.setdefault("sort_keys", False)
        return super().export(metadata, **kwargs)


_handler = ContentYAMLHandler()


def normalize_tags(value: Any) -> list[str]:
    """Tags as an ordered list of trimmed strings.

    Accepts a native sequence or a comma-delimited string.
    """
    return _split_tags(value)


def normalize_date(value: Any) -> str | None:
    """``YYYY-MM-DD`` for date objects and ISO-like strings; other strings unchanged."""
    return _iso_day(value)


def title_from_name(name: str) -> str:
    """Derive a display title from a file or path name.

    >>> title_from_name("hipaa/getting-started.md")
    'Getting Started'
    """
    stem = PurePosixPath(name).name
    stem = re.sub(r"\.(md|mdx)$", "", stem, flags=re.IGNORECASE)
    words = [w for w in re.split(r"[-_\s]+", stem) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words) or DEFAULT_TITLE


def split(raw: str) -> tuple[str | None, str]:
    """Split raw text into (metadata block, body).

    Returns (None, raw) when the text does not open with a delimited block or
    the block is never closed. One blank line after the closing delimiter is
    part of the separator, not the body.

    frontmatter.loads() strips the body, so the fences are found here and
    only the block goes through the YAML handler.
    """
    lines = raw.splitlines(keepends=True)
    if not lines or lines[0].strip() != _DELIMITER:
        return None, raw

    for index in range(1, len(lines)):
        if lines[index].strip() in (_DELIMITER, "..."):
            block = "".join(lines[1:index])
            rest = lines[index + 1 :]
            if rest and rest[0].strip() == "":
                rest = rest[1:]
            return block, "".join(rest)

    return None, raw


def _parse_scalar(value: str) -> Any:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_lines(block: str) -> dict[str, Any]:
    """Lenient ``key: value`` parser used when YAML rejects a block.

    Supports scalars and bracketed lists; anything else, including a list
    that is never closed, stays a plain string.
    """
    data: dict[str, Any] = {}
    for line in block.splitlines():
        if not line.strip() or line.lstrip().startswith("#") or ":" not in line:
            continue
        key, _, value = line.partition(":")
        key = key.strip()
        if not key:
            continue
        value = value.strip()
        if value.startswith("[") and value.endswith("]"):
            data[key] = [_parse_scalar(v) for v in value[1:-1].split(",") if v.strip()]
        else:
            data[key] = _parse_scalar(value)
    return data


def load_block(block: str) -> dict[str, Any]:
    """Parse a metadata block into a mapping, never raising."""
    try:
        data = _handler.load(block)
    except yaml.YAMLError as e:
        log.debug("Frontmatter is not valid YAML, using line parser: %s", e)
        return parse_lines(block)

    if data is None:
        return {}
    if not isinstance(data, dict):
        return parse_lines(block)
    return {str(key): value for key, value in data.items()}


def decode(raw: str, default_title: str | None = None) -> tuple[Frontmatter, str]:
    """Parse raw file text into (frontmatter, body).

    Text without a metadata block yields empty frontmatter (apart from the
    defaulted title) and the original text as body.
    """
    block, body = split(raw)
    data = load_block(block) if block is not None else {}

    try:
        fm = Frontmatter.model_validate(data)
    except ValidationError as e:
        # Recognized keys with unusable values (e.g. a mapping as title)
        log.warning("Dropping invalid frontmatter fields: %s", e)
        bad = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        fm = Frontmatter.model_validate({k: v for k, v in data.items() if k not in bad})

    if not fm.title:
        fm = fm.model_copy(update={"title": default_title or DEFAULT_TITLE})
    return fm, body


def encode(frontmatter: Frontmatter | dict[str, Any], body: str) -> str:
    """Serialize frontmatter and body into file text.

    Recognized fields come first in a fixed order; other keys follow in their
    original order.
    """
    if not isinstance(frontmatter, Frontmatter):
        frontmatter = Frontmatter.model_validate(frontmatter)
    metadata = _handler.export(frontmatter.to_dict())
    return f"{_DELIMITER}\n{metadata}\n{_DELIMITER}\n\n{body}"
