"""Logical path handling for the content root.

``ContentPaths`` is the only place that turns a user-supplied path into a
filesystem location. Everything that touches disk goes through ``resolve``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath

from .config import MARKDOWN_EXTENSIONS, MAX_PATH_LENGTH
from .errors import ContentError, ErrorKind
from .models import ValidationResult

log = logging.getLogger(__name__)

_INVALID_CHARS = re.compile(r'[<>:"|?*\x00]')
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def extension(name: str) -> str | None:
    """Lowercased extension including the dot, or None."""
    suffix = PurePosixPath(name).suffix
    return suffix.lower() if suffix else None


def is_markdown(name: str) -> bool:
    return extension(name) in MARKDOWN_EXTENSIONS


def strip_markdown_extension(path: str) -> str:
    ext = extension(path)
    if ext in MARKDOWN_EXTENSIONS:
        return path[: -len(ext)]
    return path


class ContentPaths:
    """Normalize, validate and resolve logical paths against a content root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @staticmethod
    def normalize(path: str | None) -> str:
        """Trim slashes and whitespace, unify separators, drop ``.`` and empty segments.

        ``..`` segments are kept so that ``validate`` can reject them.
        """
        text = (path or "").strip().replace("\\", "/")
        parts = [part for part in text.split("/") if part not in ("", ".")]
        return "/".join(parts)

    def validate(self, path: str | None, allow_empty: bool = True) -> ValidationResult:
        """Check a logical path without touching the filesystem beyond resolving symlinks.

        Never raises; callers decide what an invalid path means for them.
        """
        raw = (path or "").strip()

        if not raw:
            if allow_empty:
                return ValidationResult(valid=True)
            return ValidationResult(
                valid=False, message="Path cannot be empty", kind=ErrorKind.MISSING_PARAMETER
            )

        if len(raw) > MAX_PATH_LENGTH:
            return _invalid("Path is too long")

        if raw.startswith(("/", "\\")) or _DRIVE_PREFIX.match(raw):
            return _invalid("Absolute paths are not allowed")

        if _INVALID_CHARS.search(raw):
            return _invalid('Path contains invalid characters: < > : " | ? *')

        segments = raw.replace("\\", "/").split("/")
        if ".." in segments:
            return _invalid("Path contains invalid components")

        # Symlinks inside the root may still point elsewhere
        normalized = self.normalize(raw)
        target = (self.root / normalized).resolve()
        try:
            target.relative_to(self.root.resolve())
        except ValueError:
            return _invalid("Path is outside the content directory")

        return ValidationResult(valid=True)

    def resolve(self, path: str | None, allow_empty: bool = True) -> Path:
        """Join a validated logical path to the content root.

        Raises:
            ContentError: INVALID_PATH (or MISSING_PARAMETER for an empty path
                when ``allow_empty`` is False).
        """
        result = self.validate(path, allow_empty=allow_empty)
        if not result.valid:
            log.debug("Rejected path %r: %s", path, result.message)
            if result.kind is ErrorKind.MISSING_PARAMETER:
                raise ContentError(result.kind, result.message or "Path is required", {"path": path})
            raise ContentError.invalid_path(path or "", result.message or "invalid path")
        normalized = self.normalize(path)
        return self.root / normalized if normalized else self.root

    def relative(self, abs_path: Path) -> str:
        """Convert an absolute location below the root to a posix relative path."""
        return Path(abs_path).relative_to(self.root).as_posix()

    @staticmethod
    def slug_for(rel_path: str) -> str:
        """Extension-less logical path for a relative file path."""
        return strip_markdown_extension(ContentPaths.normalize(rel_path))

    def candidates(self, path: str) -> list[Path]:
        """Files a logical path may refer to, in lookup order.

        ``s`` resolves to ``s.md``, ``s.mdx``, ``s/index.md``, ``s/index.mdx``.
        A path that already carries a Markdown extension only matches itself.
        """
        base = self.resolve(path)
        normalized = self.normalize(path)
        if is_markdown(normalized):
            return [base]
        if not normalized:
            return [base / "index.md", base / "index.mdx"]
        return [
            base.with_name(base.name + ".md"),
            base.with_name(base.name + ".mdx"),
            base / "index.md",
            base / "index.mdx",
        ]

    def locate(self, path: str) -> Path | None:
        """First existing file among ``candidates(path)``."""
        for candidate in self.candidates(path):
            if candidate.is_file():
                return candidate
        return None


def _invalid(message: str) -> ValidationResult:
    return ValidationResult(valid=False, message=message, kind=ErrorKind.INVALID_PATH)
