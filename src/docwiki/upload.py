"""Validation and persistence of uploaded files."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from pathlib import PurePosixPath

from . import frontmatter as codec
from .config import UPLOAD_ALLOWED_EXTENSIONS, UPLOAD_MAX_BYTES
from .errors import ContentError, ErrorKind
from .models import UploadResult
from .paths import extension, is_markdown
from .store import ContentStore, wrap_os_errors

log = logging.getLogger(__name__)


def _rejected(message: str, **details: object) -> ContentError:
    return ContentError(ErrorKind.UPLOAD_REJECTED, message, dict(details))


def check_size(size: int, max_size_bytes: int = UPLOAD_MAX_BYTES) -> None:
    """Raise UPLOAD_REJECTED when ``size`` exceeds the cap."""
    if size > max_size_bytes:
        raise _rejected(
            f"File too large: {size} bytes (limit {max_size_bytes})",
            size=size,
            maxSize=max_size_bytes,
        )


class UploadProcessor:
    """Check uploads against the whitelist and size cap, then write them below the root."""

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    def target_path(self, filename: str, destination: str = "") -> str:
        """Logical path an upload will be written to.

        A destination without an extension names a directory and receives the
        uploaded file name; otherwise it is the full target path.
        """
        name = PurePosixPath(filename.replace("\\", "/")).name
        if not name:
            raise ContentError(ErrorKind.MISSING_PARAMETER, "Uploaded file has no name")
        dest = self.store.paths.normalize(destination)
        if dest and extension(dest):
            return dest
        return f"{dest}/{name}" if dest else name

    async def process(
        self,
        filename: str,
        data: bytes,
        destination: str = "",
        overwrite: bool = False,
        allowed_extensions: Iterable[str] = UPLOAD_ALLOWED_EXTENSIONS,
        max_size_bytes: int = UPLOAD_MAX_BYTES,
        process_markdown: bool = False,
    ) -> UploadResult:
        """Validate and persist one uploaded file.

        Nothing is written unless the extension is allowed and the payload
        fits under ``max_size_bytes``.

        Raises:
            ContentError: UPLOAD_REJECTED, ALREADY_EXISTS or INVALID_PATH.
        """
        rel_path = self.target_path(filename, destination)

        allowed = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in allowed_extensions}
        ext = extension(rel_path)
        if ext not in allowed:
            raise _rejected(
                f"File type not allowed: {ext or '(none)'}. "
                f"Allowed types: {', '.join(sorted(allowed))}",
                extension=ext,
            )
        check_size(len(data), max_size_bytes)

        target = self.store.paths.resolve(rel_path, allow_empty=False)
        processed = False
        if process_markdown and is_markdown(target.name):
            data = self._normalize_markdown(data, target.name, rel_path)
            processed = True

        async with self.store.locked(rel_path):
            if target.exists() and not overwrite:
                raise ContentError.already_exists(rel_path)
            with wrap_os_errors("upload", rel_path):
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
            self.store.index.invalidate()

        log.info("Uploaded %s (%d bytes)", rel_path, len(data))
        return UploadResult(
            path=self.store.paths.relative(target),
            file=self.store.lister.file_info(rel_path),
            processed=processed,
        )

    @staticmethod
    def _normalize_markdown(data: bytes, name: str, rel_path: str) -> bytes:
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise _rejected(f"Markdown upload is not valid UTF-8: {rel_path}", path=rel_path) from e

        block, _ = codec.split(raw)
        fm, body = codec.decode(raw, default_title=codec.title_from_name(name))
        if block is None:
            fm = fm.model_copy(update={"last_updated": date.today().isoformat()})
        return codec.encode(fm, body).encode("utf-8")
