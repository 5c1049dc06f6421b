"""Directory walking below the content root."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from .errors import ContentError, ErrorKind
from .models import DirectoryContents, FileListItem
from .paths import ContentPaths, extension, is_markdown

log = logging.getLogger(__name__)

VALID_SORT_FIELDS = ("name", "path", "type", "size", "lastModified")
VALID_SORT_ORDERS = ("asc", "desc")


class DirectoryLister:
    """Produce file and directory metadata for a content root."""

    def __init__(self, paths: ContentPaths) -> None:
        self.paths = paths

    def file_info(self, rel_path: str) -> FileListItem:
        """Stat a single file or directory.

        Raises:
            ContentError: NOT_FOUND if nothing exists at the path.
        """
        target = self.paths.resolve(rel_path)
        if not target.exists():
            raise ContentError.not_found(rel_path)
        return self._item(target)

    def list_directory(self, rel_dir: str = "", recursive: bool = False) -> DirectoryContents:
        """List a directory: directories first, then files, each alphabetically.

        With ``recursive`` each subdirectory's items are appended after the
        parent's own items.

        Raises:
            ContentError: NOT_FOUND if the directory does not exist,
                OPERATION_FAILED if it cannot be read.
        """
        directory = self.paths.resolve(rel_dir)
        if not directory.is_dir():
            raise ContentError(
                ErrorKind.NOT_FOUND,
                f"Directory not found: {rel_dir or '/'}",
                {"path": rel_dir},
            )

        try:
            items = self._scan(directory, recursive)
        except PermissionError as e:
            raise ContentError.operation_failed("list", rel_dir or "/", e) from e

        rel = self.paths.relative(directory) if directory != self.paths.root else ""
        return DirectoryContents(path=rel, items=items)

    def walk_markdown(self, rel_dir: str = "", recursive: bool = True) -> list[str]:
        """Relative paths of Markdown files below ``rel_dir``, in listing order."""
        contents = self.list_directory(rel_dir, recursive=recursive)
        return [
            item.path for item in contents.items if item.type == "file" and is_markdown(item.name)
        ]

    def _scan(self, directory: Path, recursive: bool) -> list[FileListItem]:
        entries = [child for child in directory.iterdir() if not child.name.startswith(".")]
        items = [self._item(child) for child in entries]
        items.sort(key=lambda item: (item.type != "directory", item.name.casefold(), item.name))

        if recursive:
            for item in [i for i in items if i.type == "directory"]:
                try:
                    items.extend(self._scan(self.paths.root / item.path, True))
                except PermissionError as e:
                    log.warning("Skipping unreadable directory %s: %s", item.path, e)
        return items

    def _item(self, target: Path) -> FileListItem:
        stats = target.stat()
        is_dir = target.is_dir()
        return FileListItem(
            name=target.name,
            path=self.paths.relative(target),
            type="directory" if is_dir else "file",
            extension=None if is_dir else extension(target.name),
            size=None if is_dir else stats.st_size,
            last_modified=datetime.fromtimestamp(stats.st_mtime, tz=UTC),
        )


def filter_items(
    items: list[FileListItem],
    file_type: Literal["file", "directory"] | None = None,
    ext: str | None = None,
) -> list[FileListItem]:
    """Filter by entry type and/or extension (with or without the leading dot)."""
    result = items
    if file_type:
        result = [item for item in result if item.type == file_type]
    if ext:
        wanted = ext.lower().lstrip(".")
        result = [
            item
            for item in result
            if item.type == "file" and (item.extension or "").lstrip(".") == wanted
        ]
    return result


def sort_file_items(
    items: list[FileListItem],
    sort_by: str = "name",
    sort_order: str = "asc",
) -> list[FileListItem]:
    """Sort listing entries by one of VALID_SORT_FIELDS.

    ``type`` puts directories first and orders by name within each group;
    ``size`` treats directories as 0.

    Raises:
        ContentError: INVALID_SORT for an unknown field or order.
    """
    if sort_by not in VALID_SORT_FIELDS:
        raise ContentError(
            ErrorKind.INVALID_SORT,
            f"Sort field must be one of: {', '.join(VALID_SORT_FIELDS)}",
            {"sortBy": sort_by},
        )
    if sort_order not in VALID_SORT_ORDERS:
        raise ContentError(
            ErrorKind.INVALID_SORT,
            f"Sort order must be one of: {', '.join(VALID_SORT_ORDERS)}",
            {"sortOrder": sort_order},
        )

    def key(item: FileListItem):
        if sort_by == "type":
            return (item.type != "directory", item.name.casefold())
        if sort_by == "size":
            return item.size or 0
        if sort_by == "lastModified":
            return item.last_modified
        return getattr(item, sort_by).casefold()

    return sorted(items, key=key, reverse=sort_order == "desc")
