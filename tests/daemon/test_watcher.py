"""Tests for daemon watcher module.

Tests cover:
- classify_change() event classification
- ProcessingCoordinator in-flight deduplication
- DirectoryWatcher initial crawl, dispatch and close
- WatchfilesBackend against the real filesystem (slow)
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest

from docsync.daemon.watcher import (
    ChangeKind,
    DirectoryWatcher,
    FileEvent,
    ProcessingCoordinator,
    RawChange,
    WatchfilesBackend,
    classify_change,
)
from docsync.index._internal.ignore import IgnoreMatcher


class FakeBackend:
    """In-memory WatchBackend driven by the test."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[RawChange] = asyncio.Queue()
        self.started: list[Path] = []
        self.stopped: list[Path] = []

    async def start(self, root: Path) -> Path:
        self.started.append(root)
        return root

    async def events(self) -> AsyncIterator[RawChange]:
        while True:
            yield await self.queue.get()

    async def stop(self, handle: Path) -> None:
        self.stopped.append(handle)

    def emit(self, root: Path, path: Path, created: bool = False) -> None:
        self.queue.put_nowait(RawChange(root=root, path=path, created=created))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


class Recorder:
    """Collects ingest/remove callbacks."""

    def __init__(self) -> None:
        self.ingested: list[Path] = []
        self.removed: list[Path] = []

    async def on_ingest(self, path: Path) -> None:
        self.ingested.append(path)

    async def on_remove(self, path: Path) -> None:
        self.removed.append(path)


class TestClassifyChange:
    """Tests for classify_change."""

    def test_missing_path_is_unlink(self, tmp_path: Path) -> None:
        # Given
        change = RawChange(root=tmp_path, path=tmp_path / "gone.txt")

        # When
        event = classify_change(change, IgnoreMatcher())

        # Then
        assert event == FileEvent(tmp_path / "gone.txt", ChangeKind.UNLINK)

    def test_directory_yields_nothing(self, tmp_path: Path) -> None:
        (tmp_path / "sub").mkdir()
        change = RawChange(root=tmp_path, path=tmp_path / "sub", created=True)
        assert classify_change(change, IgnoreMatcher()) is None

    def test_ignored_file_yields_nothing(self, tmp_path: Path) -> None:
        # Given
        (tmp_path / "run.log").write_text("x")
        matcher = IgnoreMatcher(extra_patterns=["*.log"])

        # When
        event = classify_change(RawChange(tmp_path, tmp_path / "run.log", True), matcher)

        # Then
        assert event is None

    def test_file_inside_ignored_directory_yields_nothing(self, tmp_path: Path) -> None:
        # Given
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "x.js").write_text("x")
        matcher = IgnoreMatcher(extra_patterns=["node_modules"])
        matcher.set_roots([tmp_path])

        # When
        event = classify_change(
            RawChange(tmp_path, tmp_path / "node_modules" / "x.js", True), matcher
        )

        # Then
        assert event is None

    @pytest.mark.parametrize(
        ("created", "tracked", "expected"),
        [
            (True, False, ChangeKind.ADD),
            (True, True, ChangeKind.CHANGE),
            (False, False, ChangeKind.CHANGE),
            (False, True, ChangeKind.CHANGE),
        ],
    )
    def test_present_file_kind(
        self, tmp_path: Path, created: bool, tracked: bool, expected: ChangeKind
    ) -> None:
        # Given
        path = tmp_path / "a.txt"
        path.write_text("hello")
        tracked_set = {path} if tracked else set()

        # When
        event = classify_change(
            RawChange(tmp_path, path, created), IgnoreMatcher(), tracked_set.__contains__
        )

        # Then
        assert event == FileEvent(path, expected)

    def test_relative_path_resolved_against_root(self, tmp_path: Path) -> None:
        (tmp_path / "a.txt").write_text("x")
        event = classify_change(RawChange(tmp_path, Path("a.txt"), True), IgnoreMatcher())
        assert event == FileEvent(tmp_path / "a.txt", ChangeKind.ADD)

    @pytest.mark.asyncio
    async def test_creation_of_coordinator_tracked_path_is_change(self, tmp_path: Path) -> None:
        # Given
        path = tmp_path / "renamed.txt"
        path.write_text("moved here")
        recorder = Recorder()
        coordinator = ProcessingCoordinator(recorder.on_ingest, recorder.on_remove)
        await coordinator.handle_file_change(FileEvent(path, ChangeKind.ADD))

        # When
        event = classify_change(
            RawChange(tmp_path, path, created=True), IgnoreMatcher(), coordinator.is_tracked
        )

        # Then
        assert event == FileEvent(path, ChangeKind.CHANGE)


class TestProcessingCoordinator:
    """Tests for per-path deduplication."""

    @pytest.mark.asyncio
    async def test_duplicate_in_flight_events_run_callback_once(self, tmp_path: Path) -> None:
        # Given
        release = asyncio.Event()
        calls: list[Path] = []

        async def slow_ingest(path: Path) -> None:
            calls.append(path)
            await release.wait()

        coordinator = ProcessingCoordinator(slow_ingest, Recorder().on_remove)
        event = FileEvent(tmp_path / "a.txt", ChangeKind.CHANGE)

        # When
        first = asyncio.create_task(coordinator.handle_file_change(event))
        await asyncio.sleep(0)
        second = await coordinator.handle_file_change(event)
        third = await coordinator.handle_file_change(FileEvent(event.path, ChangeKind.ADD))
        assert coordinator.is_processing(event.path)
        release.set()
        handled = await first

        # Then
        assert calls == [event.path]
        assert handled is True
        assert second is False
        assert third is False
        assert coordinator.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_marks_in_flight_before_first_await(self, tmp_path: Path) -> None:
        """Two tasks started back to back never both run the callback."""
        # Given
        calls: list[Path] = []

        async def ingest(path: Path) -> None:
            calls.append(path)
            await asyncio.sleep(0.01)

        coordinator = ProcessingCoordinator(ingest, Recorder().on_remove)
        event = FileEvent(tmp_path / "a.txt", ChangeKind.ADD)

        # When
        results = await asyncio.gather(
            coordinator.handle_file_change(event),
            coordinator.handle_file_change(event),
        )

        # Then
        assert sorted(results) == [False, True]
        assert calls == [event.path]

    @pytest.mark.asyncio
    async def test_flag_cleared_when_callback_raises(self, tmp_path: Path) -> None:
        # Given
        async def failing(path: Path) -> None:
            raise RuntimeError("boom")

        coordinator = ProcessingCoordinator(failing, failing)
        event = FileEvent(tmp_path / "a.txt", ChangeKind.CHANGE)

        # When
        with pytest.raises(RuntimeError, match="boom"):
            await coordinator.handle_file_change(event)

        # Then
        assert not coordinator.is_processing(event.path)
        assert not coordinator.is_tracked(event.path)

    @pytest.mark.asyncio
    async def test_tracking_follows_ingest_and_unlink(self, tmp_path: Path) -> None:
        # Given
        recorder = Recorder()
        coordinator = ProcessingCoordinator(recorder.on_ingest, recorder.on_remove)
        path = tmp_path / "a.txt"

        # When
        await coordinator.handle_file_change(FileEvent(path, ChangeKind.ADD))
        tracked_after_add = coordinator.is_tracked(path)
        await coordinator.handle_file_change(FileEvent(path, ChangeKind.UNLINK))

        # Then
        assert tracked_after_add is True
        assert not coordinator.is_tracked(path)
        assert recorder.removed == [path]


class TestDirectoryWatcher:
    """Tests for crawl, dispatch and close."""

    @pytest.fixture
    def tree(self, tmp_path: Path) -> Path:
        root = tmp_path / "root"
        (root / "sub").mkdir(parents=True)
        (root / "node_modules" / "pkg").mkdir(parents=True)
        (root / "a.txt").write_text("a")
        (root / "run.log").write_text("log")
        (root / "sub" / "b.md").write_text("b")
        (root / "node_modules" / "pkg" / "index.js").write_text("js")
        return root

    @pytest.mark.asyncio
    async def test_initial_crawl_skips_ignored(self, tree: Path) -> None:
        # Given
        recorder = Recorder()
        matcher = IgnoreMatcher(extra_patterns=["node_modules", "*.log"])
        matcher.set_roots([tree])
        backend = FakeBackend()
        watcher = DirectoryWatcher(
            matcher, ProcessingCoordinator(recorder.on_ingest, recorder.on_remove), backend
        )

        # When
        await watcher.start([tree])
        await wait_until(lambda: len(recorder.ingested) == 2)
        await asyncio.sleep(0.05)
        await watcher.close()

        # Then
        assert backend.started == [tree]
        assert sorted(recorder.ingested) == [tree / "a.txt", tree / "sub" / "b.md"]

    @pytest.mark.asyncio
    async def test_notifications_are_dispatched(self, tmp_path: Path) -> None:
        # Given
        recorder = Recorder()
        backend = FakeBackend()
        coordinator = ProcessingCoordinator(recorder.on_ingest, recorder.on_remove)
        watcher = DirectoryWatcher(IgnoreMatcher(), coordinator, backend)
        await watcher.start([tmp_path])
        await asyncio.sleep(0.05)
        new_file = tmp_path / "new.txt"
        new_file.write_text("fresh")

        # When
        backend.emit(tmp_path, new_file, created=True)
        await wait_until(lambda: new_file in recorder.ingested)
        new_file.unlink()
        backend.emit(tmp_path, new_file)
        await wait_until(lambda: new_file in recorder.removed)
        await watcher.close()

        # Then
        assert not coordinator.is_tracked(new_file)

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_stop_dispatch(self, tmp_path: Path) -> None:
        # Given
        seen: list[Path] = []

        async def flaky(path: Path) -> None:
            seen.append(path)
            if path.name == "bad.txt":
                raise RuntimeError("cannot index")

        backend = FakeBackend()
        watcher = DirectoryWatcher(IgnoreMatcher(), ProcessingCoordinator(flaky, flaky), backend)
        await watcher.start([tmp_path])
        await asyncio.sleep(0.05)
        bad, good = tmp_path / "bad.txt", tmp_path / "good.txt"
        bad.write_text("x")
        good.write_text("y")

        # When
        backend.emit(tmp_path, bad, created=True)
        backend.emit(tmp_path, good, created=True)
        await wait_until(lambda: good in seen)
        await watcher.close()

        # Then
        assert bad in seen

    @pytest.mark.asyncio
    async def test_close_stops_watches_and_ignores_later_events(self, tmp_path: Path) -> None:
        # Given
        recorder = Recorder()
        backend = FakeBackend()
        coordinator = ProcessingCoordinator(recorder.on_ingest, recorder.on_remove)
        watcher = DirectoryWatcher(IgnoreMatcher(), coordinator, backend)
        await watcher.start([tmp_path])
        await asyncio.sleep(0.05)

        # When
        await watcher.close()
        late = tmp_path / "late.txt"
        late.write_text("too late")
        backend.emit(tmp_path, late, created=True)
        await asyncio.sleep(0.05)

        # Then
        assert backend.stopped == [tmp_path]
        assert recorder.ingested == []
        assert coordinator.in_flight_count == 0
        assert coordinator.tracked == frozenset()

    @pytest.mark.asyncio
    async def test_unreadable_root_is_logged(self, tmp_path: Path) -> None:
        recorder = Recorder()
        watcher = DirectoryWatcher(
            IgnoreMatcher(),
            ProcessingCoordinator(recorder.on_ingest, recorder.on_remove),
            FakeBackend(),
        )
        await watcher.process_existing_files(tmp_path / "missing")
        assert recorder.ingested == []


@pytest.mark.slow
class TestWatchfilesBackend:
    """Real watchfiles notifications on a temporary directory."""

    @pytest.mark.asyncio
    async def test_create_modify_delete_reported(self, tmp_path: Path) -> None:
        # Given
        backend = WatchfilesBackend(debounce_ms=50)
        seen: list[RawChange] = []

        async def collect() -> None:
            async for change in backend.events():
                seen.append(change)

        collector = asyncio.create_task(collect())
        handle = await backend.start(tmp_path)
        await asyncio.sleep(0.5)
        target = tmp_path / "note.txt"

        def mine() -> list[RawChange]:
            return [c for c in seen if c.path == target]

        # When
        target.write_text("first")
        await wait_until(lambda: len(mine()) > 0, timeout=5.0)
        await asyncio.sleep(0.3)
        after_create = len(mine())
        with target.open("a") as f:
            f.write(" and more")
        await wait_until(lambda: len(mine()) > after_create, timeout=5.0)
        await asyncio.sleep(0.3)
        before_delete = len(mine())
        target.unlink()
        await wait_until(lambda: len(mine()) > before_delete, timeout=5.0)
        await backend.stop(handle)
        collector.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await collector

        # Then
        events = mine()
        assert all(c.root == tmp_path for c in events)
        assert any(c.created for c in events[:after_create])
        assert not any(c.created for c in events[after_create:])
        assert handle.task.done()
