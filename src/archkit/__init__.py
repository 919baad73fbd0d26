"""Architecture documentation toolkit: RFCs, ADRs and decomposition plans."""

from archkit.exceptions import (
    NotFoundError,
    SecurityError,
    SerializationError,
    StorageError,
    ToolkitError,
    ValidationError,
)

__all__ = [
    "__version__",
    "NotFoundError",
    "SecurityError",
    "SerializationError",
    "StorageError",
    "ToolkitError",
    "ValidationError",
]

__version__ = "0.1.0"
