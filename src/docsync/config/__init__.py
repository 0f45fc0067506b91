"""Config module exports."""

from docsync.config.loader import load_config, load_watch_list, resolve_watch_roots
from docsync.config.models import (
    DocSyncConfig,
    IndexConfig,
    LoggingConfig,
    WatchConfig,
)

__all__ = [
    "load_config",
    "load_watch_list",
    "resolve_watch_roots",
    "DocSyncConfig",
    "IndexConfig",
    "LoggingConfig",
    "WatchConfig",
]
