"""docsync daemon - directory watching and incremental indexing."""

from docsync.daemon.lifecycle import IndexingService, run_service
from docsync.daemon.watcher import (
    ChangeKind,
    DirectoryWatcher,
    FileEvent,
    ProcessingCoordinator,
    RawChange,
    WatchBackend,
    WatchfilesBackend,
    classify_change,
)

__all__ = [
    "ChangeKind",
    "DirectoryWatcher",
    "FileEvent",
    "IndexingService",
    "ProcessingCoordinator",
    "RawChange",
    "WatchBackend",
    "WatchfilesBackend",
    "classify_change",
    "run_service",
]
