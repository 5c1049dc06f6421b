"""REST API for the docwiki content store."""

import logging
import os
from typing import Any

from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._logging import configure_logging
from ..config import UPLOAD_MAX_BYTES, ConfigurationError, is_debug
from ..errors import ContentError, ErrorKind
from ..listing import filter_items, sort_file_items
from ..models import CamelModel
from ..pagination import paginate, sort_items
from ..paths import is_markdown
from ..search import SearchEngine, normalize_tag_filter
from ..store import ContentStore
from ..upload import UploadProcessor, check_size

log = logging.getLogger(__name__)

app = FastAPI(
    title="docwiki",
    description="Markdown content store with search and pagination",
    version="0.1.0",
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

CACHE_HEADERS: dict[str, dict[str, str]] = {
    "NO_CACHE": {"Cache-Control": "no-store, must-revalidate"},
    "SHORT_CACHE": {"Cache-Control": "public, max-age=60, stale-while-revalidate=300"},
    "MEDIUM_CACHE": {"Cache-Control": "public, max-age=3600, stale-while-revalidate=86400"},
    "LONG_CACHE": {"Cache-Control": "public, max-age=86400, stale-while-revalidate=604800"},
}

# Lazy-initialized services
_store: ContentStore | None = None
_search: SearchEngine | None = None


def _get_store() -> ContentStore:
    """Get the ContentStore, initializing lazily."""
    global _store
    if _store is None:
        _store = ContentStore()
    return _store


def _get_search() -> SearchEngine:
    """Get the SearchEngine bound to the current store."""
    global _search
    store = _get_store()
    if _search is None or _search.store is not store:
        _search = SearchEngine(store)
    return _search


def api_success(data: Any, status: int = 200, cache: str = "NO_CACHE") -> JSONResponse:
    """Wrap ``data`` in the success envelope with a cache preset."""
    return JSONResponse(
        {"success": True, "data": jsonable_encoder(data, by_alias=True)},
        status_code=status,
        headers=CACHE_HEADERS.get(cache, CACHE_HEADERS["NO_CACHE"]),
    )


def api_error(error: ContentError) -> JSONResponse:
    """Error envelope; the status comes from the error kind."""
    return JSONResponse(
        {"success": False, "error": error.to_dict(include_details=is_debug())},
        status_code=error.status_code,
        headers=CACHE_HEADERS["NO_CACHE"],
    )


@app.exception_handler(ContentError)
async def _content_error_handler(request: Request, exc: ContentError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        log.debug("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return api_error(exc)


@app.exception_handler(ConfigurationError)
async def _configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    log.error("Content root is not configured: %s", exc)
    return api_error(ContentError(ErrorKind.OPERATION_FAILED, str(exc)))


def _as_kind(error: ContentError, source: ErrorKind, target: ErrorKind) -> ContentError:
    """Re-tag ``source`` errors as ``target`` for endpoint-specific codes."""
    if error.kind is source:
        return ContentError(target, error.message, error.details)
    return error


# Request models
class ContentCreateRequest(CamelModel):
    """Body for creating a content file."""
    content: str | None = None
    frontmatter: dict[str, Any] | None = None
    overwrite: bool = False


class ContentUpdateRequest(CamelModel):
    """Body for updating a content file."""
    content: str | None = None
    frontmatter: dict[str, Any] | None = None
    create_if_not_exists: bool = False


class OperationRequest(CamelModel):
    """Body for /api/content/operations."""
    operation: str | None = None
    params: dict[str, Any] = {}


# API Routes

@app.get("/api/content")
async def get_content(
    path: str | None = None,
    section: str | None = None,
    list_all: bool = Query(False, alias="list"),
    q: str | None = None,
    tag: str | None = None,
    tags: list[str] | None = Query(None),
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    after: str | None = None,
):
    """Get one content file by ``path``, or list a section (``list=true`` for all)."""
    store = _get_store()

    if list_all or section is not None:
        tag_filter = normalize_tag_filter(tag, tags)
        if (q or "").strip() or tag_filter:
            items: list[Any] = await _get_search().search(q, tag_filter, section or "")
        else:
            items = await store.list(section or "")
        items = sort_items(items, sort_by, sort_order)
        result = paginate(items, page=page, limit=limit, cursor=after, strict_cursor=True)
        return api_success(result, cache="SHORT_CACHE")

    if not path:
        raise ContentError(
            ErrorKind.MISSING_PARAMETER,
            "Please provide one of: path, section, or list=true",
        )

    content = await store.require(path, ErrorKind.CONTENT_NOT_FOUND)
    return api_success(
        {
            "frontmatter": content.frontmatter,
            "content": content.body,
            "path": content.path,
            "slug": content.slug,
        },
        cache="SHORT_CACHE",
    )


@app.get("/api/search")
async def search(
    q: str | None = None,
    tag: str | None = None,
    tags: list[str] | None = Query(None),
    section: str = "",
    page: int | None = None,
    limit: int | None = None,
    after: str | None = None,
):
    """Search content by query and/or tags."""
    tag_filter = normalize_tag_filter(tag, tags)
    if not (q or "").strip() and not tag_filter:
        raise ContentError(ErrorKind.MISSING_PARAMETER, "Provide a search query (q) or a tag")

    results = await _get_search().search(q, tag_filter, section)
    result = paginate(results, page=page, limit=limit, cursor=after, strict_cursor=True)
    data = jsonable_encoder(result, by_alias=True)
    data.update({"query": q or "", "tags": tag_filter})
    return api_success(data, cache="SHORT_CACHE")


@app.get("/api/files")
async def list_files(
    path: str = "",
    recursive: bool = False,
    sort_by: str = Query("name", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    file_type: str | None = Query(None, alias="fileType"),
    extension: str | None = None,
):
    """List files and directories with filtering and sorting."""
    lister = _get_store().lister
    contents = lister.list_directory(path, recursive=recursive)
    items = filter_items(contents.items, file_type=file_type, ext=extension)
    items = sort_file_items(items, sort_by, sort_order)
    return api_success(
        {
            "path": contents.path,
            "items": items,
            "filter": {"fileType": file_type, "extension": extension},
            "sort": {"field": sort_by, "order": sort_order},
            "total": len(items),
        },
        cache="SHORT_CACHE",
    )


@app.get("/api/files/{path:path}")
async def get_file(path: str):
    """Get a content file."""
    content = await _get_store().require(path, ErrorKind.FILE_NOT_FOUND)
    return api_success(content, cache="SHORT_CACHE")


@app.post("/api/files/{path:path}")
async def create_file(path: str, body: ContentCreateRequest):
    """Create a content file."""
    if not body.content:
        raise ContentError(ErrorKind.MISSING_CONTENT, "File content is required")
    content = await _get_store().create(
        path, body.frontmatter, body.content, overwrite=body.overwrite
    )
    return api_success(content, status=201)


@app.put("/api/files/{path:path}")
async def update_file(path: str, body: ContentUpdateRequest):
    """Update a content file's frontmatter and/or body."""
    if body.content is None and not body.frontmatter:
        raise ContentError(
            ErrorKind.MISSING_CONTENT, "Either content or frontmatter must be provided"
        )
    try:
        content = await _get_store().update(
            path,
            frontmatter=body.frontmatter,
            body=body.content,
            create_if_not_exists=body.create_if_not_exists,
        )
    except ContentError as e:
        raise _as_kind(e, ErrorKind.NOT_FOUND, ErrorKind.FILE_NOT_FOUND) from e
    return api_success(content)


@app.delete("/api/files/{path:path}")
async def delete_file(path: str, recursive: bool = False):
    """Delete a content file (or a directory with ``recursive=true``)."""
    try:
        removed = await _get_store().delete(path, recursive=recursive)
    except ContentError as e:
        raise _as_kind(e, ErrorKind.NOT_FOUND, ErrorKind.FILE_NOT_FOUND) from e
    return api_success({"path": removed})


@app.post("/api/content/operations")
async def content_operation(body: OperationRequest):
    """Run a move, rename or delete operation."""
    store = _get_store()
    params = body.params

    if not body.operation:
        raise ContentError(ErrorKind.MISSING_PARAMETER, "Operation parameter is required")

    if body.operation == "move":
        source, destination = params.get("sourcePath"), params.get("destinationPath")
        if not source or destination is None:
            raise ContentError(
                ErrorKind.MISSING_PARAMETER, "Source and destination paths are required"
            )
        moved = await store.move(source, destination)
        return api_success(
            {
                "message": "Content moved successfully",
                "sourcePath": moved.source_path,
                "destinationPath": moved.destination_path,
            }
        )

    if body.operation == "rename":
        path, new_name = params.get("path"), params.get("newName")
        if not path or not new_name:
            raise ContentError(ErrorKind.MISSING_PARAMETER, "Path and new name are required")
        try:
            content = await store.rename(path, new_name)
        except ContentError as e:
            raise _as_kind(e, ErrorKind.NOT_FOUND, ErrorKind.CONTENT_NOT_FOUND) from e
        return api_success(
            {
                "message": "Content renamed successfully",
                "path": path,
                "newName": new_name,
                "content": content,
            }
        )

    if body.operation == "delete":
        path = params.get("path")
        if not path:
            raise ContentError(ErrorKind.MISSING_PARAMETER, "Path is required")
        try:
            removed = await store.delete(path, recursive=bool(params.get("recursive")))
        except ContentError as e:
            raise _as_kind(e, ErrorKind.NOT_FOUND, ErrorKind.CONTENT_NOT_FOUND) from e
        return api_success({"message": "Content deleted successfully", "path": removed})

    raise ContentError(
        ErrorKind.INVALID_OPERATION,
        f"Unknown operation: {body.operation}",
        {"operation": body.operation},
    )


@app.post("/api/upload")
async def upload(
    file: UploadFile | None = File(None),
    path: str = Form(""),
    overwrite: bool = Form(False),
):
    """Upload a file into the content directory."""
    if file is None or not file.filename:
        raise ContentError(ErrorKind.MISSING_PARAMETER, "No file provided in the request")

    # Never buffer more than one byte past the cap
    if file.size is not None:
        check_size(file.size, UPLOAD_MAX_BYTES)
    data = await file.read(UPLOAD_MAX_BYTES + 1)
    result = await UploadProcessor(_get_store()).process(
        file.filename,
        data,
        destination=path,
        overwrite=overwrite,
        max_size_bytes=UPLOAD_MAX_BYTES,
        process_markdown=is_markdown(file.filename),
    )
    return api_success(result, status=201)


@app.get("/")
async def root():
    """API landing route."""
    return {"message": "docwiki API", "docs": "/docs"}


def main(host: str | None = None, port: int | None = None):
    """Run the API server."""
    import uvicorn

    configure_logging()
    host = host or os.environ.get("HOST", "127.0.0.1")
    port = port or int(os.environ.get("PORT", "8080"))

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
