"""Error types for linkweave.

Every user-visible failure carries an ``ErrorCode`` so that the CLI can
print either a readable message or a structured JSON error.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes used in logs and JSON error output."""

    CORPUS_ROOT_MISSING = "CORPUS_ROOT_MISSING"
    DOCUMENT_PARSE_FAILURE = "DOCUMENT_PARSE_FAILURE"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    TARGET_FILE_ABSENT = "TARGET_FILE_ABSENT"
    MISSING_EXTERNAL_TOOL = "MISSING_EXTERNAL_TOOL"
    EXTERNAL_TOOL_FAILED = "EXTERNAL_TOOL_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class LinkweaveError(Exception):
    """Base class for errors reported to the user."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class ConfigurationError(LinkweaveError):
    """Raised when no corpus root or an invalid setting is configured."""

    code = ErrorCode.CONFIGURATION_ERROR


class DocumentParseFailure(LinkweaveError):
    """Raised when a single document cannot be read or parsed."""

    code = ErrorCode.DOCUMENT_PARSE_FAILURE

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}", details={"path": str(path)})


class DocumentNotFound(LinkweaveError):
    """Raised when an id does not name a document inside the corpus."""

    code = ErrorCode.DOCUMENT_NOT_FOUND


class MissingExternalTool(LinkweaveError):
    """Raised when the graph renderer or viewer cannot be resolved."""

    code = ErrorCode.MISSING_EXTERNAL_TOOL

    def __init__(self, tool: str, purpose: str) -> None:
        self.tool = tool
        super().__init__(
            f"Cannot find '{tool}' to {purpose}",
            details={"tool": tool, "suggestion": f"Install '{tool}' or configure another executable"},
        )


class ExternalToolFailed(LinkweaveError):
    """Raised when the graph renderer exits with an error."""

    code = ErrorCode.EXTERNAL_TOOL_FAILED


def format_error_json(code: ErrorCode | str, message: str, details: dict | None = None) -> str:
    """Format an arbitrary error as JSON for --json-errors output."""
    value = code.value if isinstance(code, ErrorCode) else code
    error: dict[str, Any] = {"code": value, "message": message}
    if details:
        error["details"] = details
    return json.dumps({"error": error}, default=str)
