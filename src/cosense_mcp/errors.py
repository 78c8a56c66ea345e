"""Error taxonomy for cosense-mcp.

Domain errors never escape a tool call: the dispatcher renders them into an
error report. Only ConfigurationError (see config.py) is fatal.
"""

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable machine-readable error codes."""

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_DATE = "INVALID_DATE"
    INVALID_PATTERN = "INVALID_PATTERN"
    NO_TAGS = "NO_TAGS"
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    MISSING_CONFIGURATION = "MISSING_CONFIGURATION"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CosenseError(Exception):
    """Base class for errors surfaced to tool callers."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_json(self) -> str:
        return format_error_json(self.code, self.message, self.details)


class ValidationError(CosenseError):
    """Malformed tool arguments: bad dates, bad patterns, empty tag lists."""

    code = ErrorCode.INVALID_ARGUMENT


class PatternError(ValidationError):
    """A regular expression or its flags could not be compiled."""

    code = ErrorCode.INVALID_PATTERN

    def __init__(self, pattern: str, diagnostic: str):
        self.pattern = pattern
        super().__init__(
            f'Invalid regex pattern "{pattern}". {diagnostic}'.rstrip(),
            details={"pattern": pattern},
        )


class NotFoundError(CosenseError):
    """A page title did not resolve."""

    code = ErrorCode.PAGE_NOT_FOUND

    def __init__(self, title: str):
        self.title = title
        super().__init__(f'Unable to find page "{title}"', details={"title": title})


class CollaboratorError(CosenseError):
    """The page store failed (HTTP error status, timeout, network failure)."""

    code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message, details={"status_code": status_code} if status_code else None)


def format_error_json(code: ErrorCode, message: str, details: dict[str, Any] | None = None) -> str:
    """Format an error as a JSON envelope for programmatic consumers."""
    payload: dict[str, Any] = {"error": code.value, "message": message}
    if details:
        payload["details"] = details
    return json.dumps(payload)
