"""Error taxonomy shared by the fetcher and the dispatchers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    UPSTREAM_HTTP_ERROR = "UPSTREAM_HTTP_ERROR"
    UPSTREAM_PARSE_ERROR = "UPSTREAM_PARSE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_RENDER_ERROR = "INTERNAL_RENDER_ERROR"


class TechBlogError(Exception):
    """Raised for every expected failure on the render path.

    ``recoverable`` tells the caller whether repeating the same request later
    could succeed (timeouts, 5xx) or not (404, malformed payload).
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        recoverable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }
