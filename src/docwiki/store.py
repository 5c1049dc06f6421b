"""Content store: CRUD over logical content paths.

The filesystem is the source of truth. Every read parses files from disk
unless the in-memory ``ContentIndex`` is enabled (``DOCWIKI_INDEX_TTL`` > 0),
in which case listings are reused until they expire or a mutation through
this store invalidates them.

Design principles:
- All public operations are async; the directory walk runs in a worker thread
- Low-level OSErrors surface as ContentError(OPERATION_FAILED) with path context
- Mutations of the same path are serialized with a per-path asyncio.Lock
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import time
from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, AsyncIterator

from pydantic import ValidationError

from . import frontmatter as codec
from .config import get_content_root, get_index_ttl
from .errors import ContentError, ErrorKind
from .listing import DirectoryLister
from .models import ContentFile, ContentMeta, Frontmatter, MoveResult
from .paths import ContentPaths, is_markdown

log = logging.getLogger(__name__)


@contextmanager
def wrap_os_errors(action: str, path: str) -> Iterator[None]:
    """Re-raise OSError/UnicodeError as OPERATION_FAILED with the logical path."""
    try:
        yield
    except ContentError:
        raise
    except (OSError, UnicodeError) as e:
        log.error("Failed to %s %s: %s", action, path, e)
        raise ContentError.operation_failed(action, path, e) from e


@contextmanager
def reject_invalid_frontmatter(path: str) -> Iterator[None]:
    """Re-raise a frontmatter ValidationError as INVALID_FRONTMATTER naming the bad keys."""
    try:
        yield
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        log.debug("Rejected frontmatter for %s: %s", path, e)
        raise ContentError.invalid_frontmatter(path, fields) from e


class ContentIndex:
    """In-memory snapshot of parsed content, keyed by (section, recursive)."""

    def __init__(self, ttl: float = 0.0) -> None:
        self.ttl = ttl
        self._entries: dict[tuple[str, bool], tuple[float, list[ContentFile]]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def get(self, section: str, recursive: bool) -> list[ContentFile] | None:
        if not self.enabled:
            return None
        entry = self._entries.get((section, recursive))
        if entry is None:
            return None
        stamp, files = entry
        if time.monotonic() - stamp > self.ttl:
            del self._entries[(section, recursive)]
            return None
        return files

    def put(self, section: str, recursive: bool, files: list[ContentFile]) -> None:
        if self.enabled:
            self._entries[(section, recursive)] = (time.monotonic(), files)

    def invalidate(self) -> None:
        if self._entries:
            log.debug("Invalidating %d cached listing(s)", len(self._entries))
        self._entries.clear()


class ContentStore:
    """CRUD and listing over Markdown files below a content root."""

    def __init__(self, root: Path | None = None, index_ttl: float | None = None) -> None:
        self.paths = ContentPaths(root if root is not None else get_content_root())
        self.lister = DirectoryLister(self.paths)
        self.index = ContentIndex(get_index_ttl() if index_ttl is None else index_ttl)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def root(self) -> Path:
        return self.paths.root

    # ─────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────

    async def get(self, path: str) -> ContentFile | None:
        """Load the file a logical path refers to, or None.

        Raises:
            ContentError: INVALID_PATH for unsafe paths, OPERATION_FAILED on I/O errors.
        """
        file_path = self.paths.locate(path)
        if file_path is None:
            return None
        with wrap_os_errors("read", path):
            return self._read(file_path)

    async def require(self, path: str, kind: ErrorKind = ErrorKind.NOT_FOUND) -> ContentFile:
        """Like ``get`` but raises ``kind`` when nothing exists at ``path``."""
        content = await self.get(path)
        if content is None:
            raise ContentError.not_found(path, kind)
        return content

    async def list(
        self,
        section: str = "",
        recursive: bool = True,
        include_body: bool = False,
        strict: bool = False,
    ) -> list[ContentMeta]:
        """Every content file below ``section``, decoded, in listing order.

        A missing section yields an empty list, or NOT_FOUND with ``strict``.
        """
        files = await self.load(section, recursive=recursive, strict=strict)
        return [f.to_meta(include_body=include_body) for f in files]

    async def load(
        self, section: str = "", recursive: bool = True, strict: bool = False
    ) -> list[ContentFile]:
        """Full ContentFile objects below ``section`` (bodies included)."""
        key = self.paths.normalize(section)
        directory = self.paths.resolve(key)
        if not directory.is_dir():
            if strict:
                raise ContentError(
                    ErrorKind.NOT_FOUND, f"Section not found: {section}", {"path": section}
                )
            return []

        cached = self.index.get(key, recursive)
        if cached is not None:
            return cached

        files = await asyncio.to_thread(self._load_all, key, recursive)
        self.index.put(key, recursive, files)
        return files

    def _load_all(self, section: str, recursive: bool) -> list[ContentFile]:
        files: list[ContentFile] = []
        for rel_path in self.lister.walk_markdown(section, recursive=recursive):
            try:
                files.append(self._read(self.root / rel_path))
            except (OSError, UnicodeError) as e:
                log.warning("Skipping unreadable content file %s: %s", rel_path, e)
        return files

    def _read(self, file_path: Path) -> ContentFile:
        rel_path = self.paths.relative(file_path)
        raw = file_path.read_text(encoding="utf-8")
        name = file_path.parent.name if file_path.stem == "index" else file_path.name
        fm, body = codec.decode(raw, default_title=codec.title_from_name(name))
        stats = file_path.stat()
        return ContentFile(
            path=rel_path,
            slug=self.paths.slug_for(rel_path),
            frontmatter=fm,
            body=body,
            last_modified=datetime.fromtimestamp(stats.st_mtime, tz=UTC),
        )

    # ─────────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def locked(self, *paths: str) -> AsyncIterator[None]:
        """Hold the per-path locks for ``paths`` (acquired in sorted order)."""
        keys = sorted({self.paths.slug_for(p) for p in paths})
        # A lock lives only while some caller holds or awaits it
        for key in keys:
            self._lock_users[key] = self._lock_users.get(key, 0) + 1
        acquired: list[asyncio.Lock] = []
        try:
            for key in keys:
                lock = self._locks.setdefault(key, asyncio.Lock())
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in keys:
                self._lock_users[key] -= 1
                if not self._lock_users[key]:
                    del self._lock_users[key]
                    del self._locks[key]

    def _target_for_new(self, path: str) -> Path:
        target = self.paths.resolve(path, allow_empty=False)
        if not is_markdown(target.name):
            target = target.with_name(target.name + ".md")
        return target

    def _write(self, target: Path, fm: Frontmatter, body: str, path: str) -> ContentFile:
        with wrap_os_errors("write", path):
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(codec.encode(fm, body), encoding="utf-8")
            self.index.invalidate()
            return self._read(target)

    async def create(
        self,
        path: str,
        frontmatter: Frontmatter | dict[str, Any] | None = None,
        body: str = "",
        overwrite: bool = False,
    ) -> ContentFile:
        """Create a content file, creating missing parent directories.

        ``.md`` is appended when the path has no Markdown extension. With
        ``overwrite`` an existing file for the path is replaced in place.

        Raises:
            ContentError: ALREADY_EXISTS unless ``overwrite``; INVALID_FRONTMATTER
                for values the Frontmatter model rejects.
        """
        target = self._target_for_new(path)
        with reject_invalid_frontmatter(path):
            fm = _as_frontmatter(frontmatter, default_title=codec.title_from_name(path))

        async with self.locked(path):
            existing = self.paths.locate(path)
            if existing is not None:
                if not overwrite:
                    raise ContentError.already_exists(self.paths.relative(existing))
                target = existing
            log.info("Creating content %s", self.paths.relative(target))
            return self._write(target, fm, body, path)

    async def update(
        self,
        path: str,
        frontmatter: dict[str, Any] | None = None,
        body: str | None = None,
        create_if_not_exists: bool = False,
    ) -> ContentFile:
        """Shallow-merge frontmatter keys and/or replace the body.

        Raises:
            ContentError: NOT_FOUND unless ``create_if_not_exists``; INVALID_FRONTMATTER
                for values the Frontmatter model rejects.
        """
        async with self.locked(path):
            existing_path = self.paths.locate(path)
            if existing_path is None:
                if not create_if_not_exists:
                    raise ContentError.not_found(path)
                target = self._target_for_new(path)
                with reject_invalid_frontmatter(path):
                    fm = _as_frontmatter(frontmatter, default_title=codec.title_from_name(path))
                log.info("Creating content %s on update", self.paths.relative(target))
                return self._write(target, fm, body or "", path)

            with wrap_os_errors("read", path):
                existing = self._read(existing_path)
            with reject_invalid_frontmatter(path):
                fm = existing.frontmatter.merged(frontmatter or {})
            if not fm.title:
                fm = fm.model_copy(update={"title": existing.frontmatter.title})
            new_body = existing.body if body is None else body
            log.info("Updating content %s", existing.path)
            return self._write(existing_path, fm, new_body, path)

    async def rename(self, path: str, new_name: str) -> ContentFile:
        """Change the title of a content file. The path is left unchanged."""
        if not new_name or not new_name.strip():
            raise ContentError(ErrorKind.MISSING_PARAMETER, "New name is required")
        return await self.update(path, frontmatter={"title": new_name.strip()})

    async def delete(self, path: str, recursive: bool = False) -> str:
        """Delete a content file, or a directory when ``recursive`` is set.

        Returns:
            The relative path that was removed.

        Raises:
            ContentError: NOT_FOUND if nothing exists; INVALID_OPERATION for a
                directory without ``recursive``.
        """
        async with self.locked(path):
            file_path = self.paths.locate(path)
            if file_path is not None:
                rel = self.paths.relative(file_path)
                with wrap_os_errors("delete", path):
                    file_path.unlink()
                self.index.invalidate()
                log.info("Deleted content %s", rel)
                return rel

            directory = self.paths.resolve(path, allow_empty=False)
            if not directory.is_dir():
                raise ContentError.not_found(path)
            if not recursive:
                raise ContentError(
                    ErrorKind.INVALID_OPERATION,
                    f"Path is a directory: {path}. Use recursive delete to remove it.",
                    {"path": path},
                )
            rel = self.paths.relative(directory)
            with wrap_os_errors("delete", path):
                shutil.rmtree(directory)
            self.index.invalidate()
            log.info("Deleted directory %s", rel)
            return rel

    async def move(self, source_path: str, destination_dir: str) -> MoveResult:
        """Move a content file into another directory, keeping its file name.

        Uses a rename so the move is as atomic as the filesystem allows.

        Raises:
            ContentError: NOT_FOUND if the source is missing, ALREADY_EXISTS if
                the destination is occupied.
        """
        source = self.paths.locate(source_path)
        if source is None:
            raise ContentError.not_found(source_path, ErrorKind.CONTENT_NOT_FOUND)

        destination = self.paths.resolve(destination_dir) / source.name
        source_rel = self.paths.relative(source)
        dest_rel = self.paths.relative(destination)

        async with self.locked(source_rel, dest_rel):
            if destination.exists():
                raise ContentError.already_exists(dest_rel)
            with wrap_os_errors("move", source_path):
                destination.parent.mkdir(parents=True, exist_ok=True)
                os.rename(source, destination)
            self.index.invalidate()

        log.info("Moved %s -> %s", source_rel, dest_rel)
        return MoveResult(
            source_path=self.paths.slug_for(source_rel),
            destination_path=self.paths.slug_for(dest_rel),
        )

    async def mkdir(self, path: str) -> str:
        """Create a directory (and missing parents).

        Raises:
            ContentError: ALREADY_EXISTS if the directory exists.
        """
        target = self.paths.resolve(path, allow_empty=False)
        if target.exists():
            raise ContentError.already_exists(path)
        with wrap_os_errors("create directory", path):
            target.mkdir(parents=True)
        return self.paths.relative(target)


def _as_frontmatter(value: Frontmatter | dict[str, Any] | None, default_title: str) -> Frontmatter:
    if isinstance(value, Frontmatter):
        fm = value
    else:
        fm = Frontmatter.model_validate(value or {})
    if not fm.title:
        fm = fm.model_copy(update={"title": default_title})
    return fm
