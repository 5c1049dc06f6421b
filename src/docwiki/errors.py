"""Structured errors for docwiki.

Every failure raised by the store, search, pagination and upload layers is a
``ContentError`` carrying an explicit ``ErrorKind``. The HTTP and CLI
boundaries map the kind to a status code or exit message; they never inspect
the message text.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable error kinds."""

    INVALID_PATH = "INVALID_PATH"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    MISSING_CONTENT = "MISSING_CONTENT"
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    UPLOAD_REJECTED = "UPLOAD_REJECTED"
    OPERATION_FAILED = "OPERATION_FAILED"
    INVALID_CURSOR = "INVALID_CURSOR"
    INVALID_SORT = "INVALID_SORT"
    INVALID_OPERATION = "INVALID_OPERATION"
    INVALID_FRONTMATTER = "INVALID_FRONTMATTER"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_PATH: 400,
    ErrorKind.MISSING_PARAMETER: 400,
    ErrorKind.MISSING_CONTENT: 400,
    ErrorKind.CONTENT_NOT_FOUND: 404,
    ErrorKind.FILE_NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UPLOAD_REJECTED: 400,
    ErrorKind.OPERATION_FAILED: 500,
    ErrorKind.INVALID_CURSOR: 400,
    ErrorKind.INVALID_SORT: 400,
    ErrorKind.INVALID_OPERATION: 400,
    ErrorKind.INVALID_FRONTMATTER: 400,
}


class ContentError(Exception):
    """An error with an explicit kind, a human-readable message and optional details."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.kind, 500)

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.kind.value, "message": self.message}
        if include_details and self.details:
            error["details"] = self.details
        return error

    def to_json(self) -> str:
        return json.dumps({"error": self.to_dict()})

    # Convenience constructors for the common cases

    @classmethod
    def invalid_path(cls, path: str, reason: str) -> "ContentError":
        return cls(ErrorKind.INVALID_PATH, f"Invalid path '{path}': {reason}", {"path": path})

    @classmethod
    def not_found(cls, path: str, kind: ErrorKind = ErrorKind.NOT_FOUND) -> "ContentError":
        return cls(kind, f"Not found: {path}", {"path": path})

    @classmethod
    def already_exists(cls, path: str) -> "ContentError":
        return cls(ErrorKind.ALREADY_EXISTS, f"Already exists: {path}", {"path": path})

    @classmethod
    def invalid_frontmatter(cls, path: str, fields: list[str]) -> "ContentError":
        return cls(
            ErrorKind.INVALID_FRONTMATTER,
            f"Invalid frontmatter for {path}: {', '.join(fields)}",
            {"path": path, "fields": fields},
        )

    @classmethod
    def operation_failed(cls, action: str, path: str, cause: BaseException) -> "ContentError":
        return cls(
            ErrorKind.OPERATION_FAILED,
            f"Failed to {action} {path}: {cause}",
            {"path": path, "cause": type(cause).__name__},
        )
