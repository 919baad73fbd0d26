from __future__ import annotations

from archkit.exceptions import (
    NotFoundError,
    SecurityError,
    SerializationError,
    StorageError,
    ToolkitError,
    ValidationError,
    exit_code_for,
)


def test_each_error_kind_has_its_own_exit_code() -> None:
    codes = [
        exit_code_for(ValidationError("bad")),
        exit_code_for(SecurityError("unsafe")),
        exit_code_for(NotFoundError("RFC", "RFC-0001")),
        exit_code_for(StorageError("disk")),
        exit_code_for(SerializationError("corrupt")),
        exit_code_for(ToolkitError("other")),
        exit_code_for(RuntimeError("unexpected")),
    ]
    assert codes == [2, 3, 4, 5, 6, 1, 1]


def test_payload_carries_context() -> None:
    payload = NotFoundError("ADR", "ADR-0009").to_payload()
    assert payload == {
        "name": "NotFoundError",
        "code": "NOT_FOUND",
        "message": "ADR not found: ADR-0009",
        "context": {"resource_type": "ADR", "id": "ADR-0009"},
    }
    assert ValidationError("bad", field="title").to_payload()["context"] == {"field": "title"}


def test_serialization_error_mentions_line() -> None:
    error = SerializationError("Invalid YAML", line=3)
    assert error.message == "Invalid YAML at line 3"
    assert error.line == 3
