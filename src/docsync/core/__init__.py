"""Core module exports."""

from docsync.core.errors import (
    ConfigError,
    DocSyncError,
    ErrorCode,
    ExtractionError,
    IndexNotInitializedError,
    InvalidQueryError,
    PersistenceError,
    UnsupportedFileTypeError,
)
from docsync.core.logging import (
    clear_event_id,
    configure_logging,
    get_event_id,
    get_logger,
    set_event_id,
)

__all__ = [
    # Errors
    "ConfigError",
    "DocSyncError",
    "ErrorCode",
    "ExtractionError",
    "IndexNotInitializedError",
    "InvalidQueryError",
    "PersistenceError",
    "UnsupportedFileTypeError",
    # Logging
    "clear_event_id",
    "configure_logging",
    "get_event_id",
    "get_logger",
    "set_event_id",
]
