"""Directory watching, event classification and per-path deduplication.

Design:
- A WatchBackend turns OS notifications into RawChange records
  (root, path, created). WatchfilesBackend runs one recursive awatch per root.
- classify_change() stats the path and yields a FileEvent (add/change/unlink)
  or nothing for directories and ignored paths
- ProcessingCoordinator gates each path through an in-flight set: while a
  path is being handled, further events for it are dropped, not queued
- DirectoryWatcher arms watches first, then crawls each root in the
  background so startup never blocks on a full scan
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import stat
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

import structlog
from watchfiles import Change, awatch

from docsync.core.logging import clear_event_id, set_event_id
from docsync.index._internal.ignore import IgnoreMatcher

logger = structlog.get_logger()

PathCallback = Callable[[Path], Awaitable[None]]


class ChangeKind(StrEnum):
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"


@dataclass(frozen=True)
class FileEvent:
    """A classified filesystem change for one regular file."""

    path: Path
    kind: ChangeKind


@dataclass(frozen=True)
class RawChange:
    """An unclassified notification from a watch backend.

    ``created`` is True when the backend reported a creation or rename.
    """

    root: Path
    path: Path
    created: bool = False


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class WatchBackend(Protocol):
    """Source of raw change notifications for watched roots."""

    async def start(self, root: Path) -> Any:
        """Begin watching ``root`` recursively. Returns an opaque handle."""
        ...

    def events(self) -> AsyncIterator[RawChange]:
        """Notifications from every started root, in arrival order."""
        ...

    async def stop(self, handle: Any) -> None:
        """Stop the watch identified by ``handle``."""
        ...


@dataclass
class _WatchHandle:
    root: Path
    task: asyncio.Task[None]
    stop_event: asyncio.Event


@dataclass
class WatchfilesBackend:
    """WatchBackend over ``watchfiles.awatch``, one recursive watch per root."""

    debounce_ms: int = 200
    _queue: asyncio.Queue[RawChange] = field(default_factory=asyncio.Queue, init=False)

    async def start(self, root: Path) -> _WatchHandle:
        stop_event = asyncio.Event()
        task = asyncio.create_task(self._watch(root, stop_event), name=f"watch:{root}")
        logger.info("watch_started", root=str(root))
        return _WatchHandle(root=root, task=task, stop_event=stop_event)

    async def events(self) -> AsyncIterator[RawChange]:
        while True:
            yield await self._queue.get()

    async def stop(self, handle: _WatchHandle) -> None:
        handle.stop_event.set()
        handle.task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await handle.task
        logger.info("watch_stopped", root=str(handle.root))

    async def _watch(self, root: Path, stop_event: asyncio.Event) -> None:
        try:
            async for changes in awatch(
                root,
                recursive=True,
                debounce=self.debounce_ms,
                stop_event=stop_event,
                ignore_permission_denied=True,
            ):
                for change, raw_path in changes:
                    self._queue.put_nowait(
                        RawChange(root=root, path=Path(raw_path), created=change == Change.added)
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not stop_event.is_set():
                logger.error("watcher_error", root=str(root), error=str(e))


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_change(
    change: RawChange,
    matcher: IgnoreMatcher,
    is_tracked: Callable[[Path], bool] | None = None,
) -> FileEvent | None:
    """Turn a raw notification into a FileEvent, or None when nothing to do.

    Missing paths become ``unlink``. Present paths are stat'ed: directories,
    special files and ignored paths yield nothing; a regular file is ``add``
    when the notification was a creation and the path is not yet tracked,
    otherwise ``change``. Calls ``stat``; keep it off the event loop.
    """
    path = change.path if change.path.is_absolute() else change.root / change.path
    try:
        st = path.stat()
    except FileNotFoundError:
        return FileEvent(path, ChangeKind.UNLINK)
    except OSError as e:
        logger.debug("stat_failed", path=str(path), error=str(e))
        return None

    is_dir = stat.S_ISDIR(st.st_mode)
    if matcher.should_ignore_tree(path, is_directory=is_dir):
        return None
    if not stat.S_ISREG(st.st_mode):
        return None
    if change.created and not (is_tracked and is_tracked(path)):
        return FileEvent(path, ChangeKind.ADD)
    return FileEvent(path, ChangeKind.CHANGE)


# ---------------------------------------------------------------------------
# Coordination
# ---------------------------------------------------------------------------


class ProcessingCoordinator:
    """Ensures at most one handler runs per path at a time.

    The path is marked in-flight before the first await, so two events for
    the same path delivered back to back can never both start work.
    """

    def __init__(self, on_ingest: PathCallback, on_remove: PathCallback) -> None:
        self._on_ingest = on_ingest
        self._on_remove = on_remove
        self._in_flight: set[Path] = set()
        self._tracked: set[Path] = set()

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def tracked(self) -> frozenset[Path]:
        return frozenset(self._tracked)

    def is_processing(self, path: Path) -> bool:
        return path in self._in_flight

    def is_tracked(self, path: Path) -> bool:
        return path in self._tracked

    async def handle_file_change(self, event: FileEvent) -> bool:
        """Run the callback for ``event``.

        Returns False when the event was dropped because its path is already
        in flight. Callback exceptions propagate once the path is released.
        """
        path = event.path
        if path in self._in_flight:
            logger.debug("event_dropped_in_flight", path=str(path), kind=event.kind.value)
            return False

        self._in_flight.add(path)
        set_event_id()
        try:
            if event.kind is ChangeKind.UNLINK:
                await self._on_remove(path)
                self._tracked.discard(path)
            else:
                await self._on_ingest(path)
                self._tracked.add(path)
        finally:
            self._in_flight.discard(path)
            clear_event_id()
        return True

    def clear(self) -> None:
        self._in_flight.clear()
        self._tracked.clear()


# ---------------------------------------------------------------------------
# Watcher
# ---------------------------------------------------------------------------


def _list_dir(directory: Path) -> list[tuple[Path, bool, bool]]:
    """(path, is_dir, is_file) for each entry, symlinks not followed for dirs."""
    entries: list[tuple[Path, bool, bool]] = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file()
            except OSError:
                continue
            entries.append((Path(entry.path), is_dir, is_file))
    entries.sort(key=lambda e: e[0].name)
    return entries


class DirectoryWatcher:
    """Watches roots, crawls their existing files and feeds the coordinator."""

    def __init__(
        self,
        matcher: IgnoreMatcher,
        coordinator: ProcessingCoordinator,
        backend: WatchBackend | None = None,
    ) -> None:
        self._matcher = matcher
        self._coordinator = coordinator
        self._backend: WatchBackend = backend or WatchfilesBackend()
        self._handles: list[Any] = []
        self._roots: list[Path] = []
        self._dispatch_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    @property
    def coordinator(self) -> ProcessingCoordinator:
        return self._coordinator

    async def start(self, roots: Iterable[Path]) -> None:
        """Arm a watch per root, then crawl each root in the background."""
        roots = list(roots)
        for root in roots:
            self._handles.append(await self._backend.start(root))
            self._roots.append(root)

        if self._dispatch_task is None:
            self._dispatch_task = asyncio.create_task(self._dispatch_loop(), name="dispatch")

        for root in roots:
            self._spawn(self._crawl(root), name=f"crawl:{root}")

    async def process_existing_files(self, directory: Path) -> None:
        """Synthesize ``add`` events for every non-ignored file under ``directory``."""
        if self._closed:
            return
        try:
            entries = await asyncio.to_thread(_list_dir, directory)
        except OSError as e:
            logger.warning("directory_list_failed", path=str(directory), error=str(e))
            return

        for path, is_dir, is_file in entries:
            if self._closed:
                return
            if self._matcher.should_ignore(path, is_directory=is_dir):
                continue
            if is_dir:
                await self.process_existing_files(path)
            elif is_file:
                await self._handle(FileEvent(path, ChangeKind.ADD))

    async def close(self) -> None:
        """Stop every watch and pending task. No events are handled afterwards."""
        self._closed = True

        for handle in self._handles:
            try:
                await self._backend.stop(handle)
            except Exception as e:
                logger.warning("watch_stop_failed", error=str(e))
        self._handles.clear()

        tasks = list(self._tasks)
        if self._dispatch_task is not None:
            tasks.append(self._dispatch_task)
            self._dispatch_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        self._coordinator.clear()
        logger.info("directory_watcher_closed", roots=len(self._roots))

    async def _crawl(self, root: Path) -> None:
        logger.info("initial_scan_started", root=str(root))
        await self.process_existing_files(root)
        logger.info("initial_scan_finished", root=str(root))

    async def _dispatch_loop(self) -> None:
        async for change in self._backend.events():
            if self._closed:
                return
            event = await asyncio.to_thread(
                classify_change, change, self._matcher, self._coordinator.is_tracked
            )
            if event is None:
                continue
            self._spawn(self._handle(event), name=f"event:{event.path}")

    async def _handle(self, event: FileEvent) -> None:
        if self._closed:
            return
        try:
            await self._coordinator.handle_file_change(event)
        except Exception:
            logger.error(
                "file_event_failed",
                path=str(event.path),
                kind=event.kind.value,
                exc_info=True,
            )

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
