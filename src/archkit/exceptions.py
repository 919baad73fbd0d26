"""Error taxonomy for archkit.

Every error raised deliberately by the toolkit derives from ``ToolkitError``.
The command boundary maps each kind to a distinct process exit code.
"""

from __future__ import annotations

from typing import Mapping


class ToolkitError(Exception):
    code = "TOOLKIT_ERROR"
    exit_code = 1

    def __init__(self, message: str, *, context: Mapping[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = dict(context or {})

    def to_payload(self) -> dict[str, object]:
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }


class ValidationError(ToolkitError):
    """Malformed input; the caller must correct it."""

    code = "VALIDATION_ERROR"
    exit_code = 2

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        context: Mapping[str, object] | None = None,
    ):
        merged = dict(context or {})
        if field is not None:
            merged["field"] = field
        super().__init__(message, context=merged)
        self.field = field


class SecurityError(ToolkitError):
    """Unsafe identifier or path. Never coerced, always rejected."""

    code = "SECURITY_ERROR"
    exit_code = 3


class NotFoundError(ToolkitError):
    code = "NOT_FOUND"
    exit_code = 4

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            f"{resource_type} not found: {identifier}",
            context={"resource_type": resource_type, "id": identifier},
        )
        self.resource_type = resource_type
        self.identifier = identifier


class StorageError(ToolkitError):
    code = "STORAGE_ERROR"
    exit_code = 5


class SerializationError(ToolkitError):
    code = "SERIALIZATION_ERROR"
    exit_code = 6

    def __init__(self, message: str, *, line: int | None = None):
        text = message if line is None else f"{message} at line {line}"
        super().__init__(text, context={"line": line})
        self.line = line


def exit_code_for(error: BaseException) -> int:
    if isinstance(error, ToolkitError):
        return error.exit_code
    return 1
