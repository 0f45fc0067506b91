"""docsync error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index
- 4xxx: Extraction
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Index (3xxx)
    INDEX_NOT_INITIALIZED = 3001
    INDEX_LOAD_FAILED = 3002
    INDEX_SAVE_FAILED = 3003
    INVALID_QUERY = 3004

    # Extraction (4xxx)
    EXTRACTION_FAILED = 4001
    UNSUPPORTED_FILE_TYPE = 4002


@dataclass(eq=False)
class DocSyncError(Exception):
    """Base error with structured context for logging and tool responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(DocSyncError):
    """Configuration-related errors. Always fatal at startup."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class IndexNotInitializedError(DocSyncError):
    """Raised when querying a store that has never received documents."""

    @classmethod
    def create(cls) -> "IndexNotInitializedError":
        return cls(
            code=ErrorCode.INDEX_NOT_INITIALIZED,
            message="Vector store not initialized",
        )


class PersistenceError(DocSyncError):
    """Saving or loading the persisted index failed."""

    @classmethod
    def load_failed(cls, path: str, reason: str) -> "PersistenceError":
        return cls(
            code=ErrorCode.INDEX_LOAD_FAILED,
            message=f"Failed to load vector store from {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def save_failed(cls, path: str, reason: str) -> "PersistenceError":
        return cls(
            code=ErrorCode.INDEX_SAVE_FAILED,
            message=f"Failed to save vector store to {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )


class InvalidQueryError(DocSyncError):
    """A query argument could not be interpreted."""

    @classmethod
    def invalid_date(cls, field: str, value: str) -> "InvalidQueryError":
        return cls(
            code=ErrorCode.INVALID_QUERY,
            message=f"Invalid '{field}' date: {value}",
            details={"field": field, "value": value},
        )


class ExtractionError(DocSyncError):
    """A converter or content processor could not produce text."""

    @classmethod
    def failed(cls, path: str, reason: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"Extraction failed for {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class UnsupportedFileTypeError(DocSyncError):
    """No content processor accepts the file."""

    @classmethod
    def for_path(cls, path: str) -> "UnsupportedFileTypeError":
        return cls(
            code=ErrorCode.UNSUPPORTED_FILE_TYPE,
            message=f"Unsupported file type: {path}",
            details={"path": path},
        )

