"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (DOCSYNC__SECTION__KEY)
3. Global YAML (~/.config/docsync/config.yaml)
4. Built-in defaults (this file)

Examples:
    DOCSYNC__LOGGING__LEVEL=DEBUG
    DOCSYNC__WATCH__DIRECTORIES=/home/me/notes,/home/me/papers
    DOCSYNC__WATCH__CONFIG_FILE=/home/me/.docsync-watch.json
    DOCSYNC__INDEX__CHUNK_SIZE=800
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from docsync.config.constants import (
    DEFAULT_INGESTION_LOG_PATH,
    DEFAULT_PERSIST_DIR,
    WATCH_LIST_KEY,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        DOCSYNC__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every dropped duplicate event.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class WatchConfig(BaseModel):
    """Which directory trees to watch and what to skip.

    Env vars:
        DOCSYNC__WATCH__DIRECTORIES: Comma-separated directories
        DOCSYNC__WATCH__CONFIG_FILE: JSON file with {"watchList": [...]}
        DOCSYNC__WATCH__IGNORE_FILE: gitignore-style pattern file
    """

    directories: str | None = Field(
        default=None,
        description="Comma-separated directories to watch. "
        "Ignored when config_file is also set.",
    )
    config_file: Path | None = Field(
        default=None,
        description="JSON watch list file. Takes precedence over directories.",
    )
    ignore_file: Path | None = Field(
        default=None,
        description="Optional ignore pattern file, one pattern per line.",
    )

    @property
    def directories_list(self) -> list[str]:
        if not self.directories:
            return []
        return [d.strip() for d in self.directories.split(",") if d.strip()]


class IndexConfig(BaseModel):
    """Chunking, persistence and embedding configuration.

    Env vars:
        DOCSYNC__INDEX__CHUNK_SIZE: Characters per chunk
        DOCSYNC__INDEX__CHUNK_OVERLAP: Characters shared by adjacent chunks
        DOCSYNC__INDEX__PERSIST_DIR: Where the index is saved
        DOCSYNC__INDEX__INGESTION_LOG_PATH: Append-only ingestion log
        DOCSYNC__INDEX__SAVE_DELAY_SEC: Persistence debounce delay
        DOCSYNC__INDEX__EMBEDDING_MODEL: fastembed model name
    """

    chunk_size: int = Field(default=1000, description="Characters per chunk.")
    chunk_overlap: int = Field(
        default=200,
        description="Characters shared by adjacent chunks. Must be below chunk_size.",
    )
    persist_dir: Path = Field(
        default=DEFAULT_PERSIST_DIR,
        description="Directory holding embeddings.npz, docstore.json and stats.json.",
    )
    ingestion_log_path: Path = Field(
        default=DEFAULT_INGESTION_LOG_PATH,
        description="Append-only log with one line per ADD/REMOVE outcome.",
    )
    save_delay_sec: float = Field(
        default=5.0,
        description="Quiet period after the last mutation before the index is saved. "
        "Removal rebuilds are O(total documents), so keep this above a few seconds.",
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="fastembed model used for chunk and query embeddings.",
    )

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"chunk_size must be positive, got {v}")
        return v

    @field_validator("save_delay_sec")
    @classmethod
    def validate_save_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"save_delay_sec must be >= 0, got {v}")
        return v

    @field_validator("persist_dir", "ingestion_log_path")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()

    @model_validator(mode="after")
    def validate_overlap(self) -> "IndexConfig":
        if not (0 <= self.chunk_overlap < self.chunk_size):
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {self.chunk_overlap}"
            )
        return self


class WatchListFile(BaseModel):
    """Schema of the JSON watch config file."""

    model_config = ConfigDict(populate_by_name=True)

    watch_list: list[str] = Field(alias=WATCH_LIST_KEY, min_length=1)

    @field_validator("watch_list")
    @classmethod
    def validate_entries(cls, v: list[str]) -> list[str]:
        if any(not entry.strip() for entry in v):
            raise ValueError("watch list entries must be non-empty strings")
        return v


class DocSyncConfig(BaseModel):
    """Root configuration, built once at startup and passed to each component."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
