"""Service lifecycle: wires config, matcher, extraction, store and watcher."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path

import structlog

from docsync.config.loader import resolve_watch_roots
from docsync.config.models import DocSyncConfig
from docsync.core.errors import PersistenceError, UnsupportedFileTypeError
from docsync.daemon.watcher import DirectoryWatcher, ProcessingCoordinator, WatchBackend
from docsync.extraction.ingest_log import IngestAction, IngestionLog
from docsync.extraction.pipeline import FileProcessor
from docsync.index._internal.embedding import Embedder, FastEmbedEmbedder
from docsync.index._internal.ignore import IgnoreMatcher
from docsync.index.ops import SearchService, in_folder
from docsync.index.store import IndexStore

logger = structlog.get_logger()

STOP_TIMEOUT_SEC = 30.0


class IndexingService:
    """
    Orchestrates the indexing components.

    Components:
    - IgnoreMatcher: path exclusion
    - FileProcessor: extraction and chunking
    - IndexStore: per-source chunks, embeddings, debounced persistence
    - DirectoryWatcher: notifications, initial crawl, per-path dedup
    """

    def __init__(
        self,
        config: DocSyncConfig,
        *,
        embedder: Embedder | None = None,
        backend: WatchBackend | None = None,
    ) -> None:
        self.config = config
        index_config = config.index

        self.matcher = IgnoreMatcher(config.watch.ignore_file)
        self.processor = FileProcessor(
            chunk_size=index_config.chunk_size,
            chunk_overlap=index_config.chunk_overlap,
            ingestion_log=IngestionLog(index_config.ingestion_log_path),
        )
        self.store = IndexStore(
            embedder or FastEmbedEmbedder(index_config.embedding_model),
            index_config.persist_dir,
            save_delay=index_config.save_delay_sec,
        )
        self.coordinator = ProcessingCoordinator(self._on_ingest, self._on_remove)
        self.watcher = DirectoryWatcher(self.matcher, self.coordinator, backend)
        self.search = SearchService(self.store)
        self.roots: list[Path] = []

    async def start(self) -> None:
        """Load persisted state, resolve roots and start watching.

        Raises:
            ConfigError: No usable watch configuration.
        """
        self.roots = resolve_watch_roots(self.config.watch)

        try:
            await self.store.load()
        except PersistenceError as e:
            logger.info("starting_with_empty_index", reason=e.details.get("reason"))

        self.matcher.load()
        self.matcher.set_roots(self.roots)
        self.store.set_watched_directories(self.roots)

        await self.watcher.start(self.roots)
        logger.info("indexing_service_started", roots=[str(r) for r in self.roots])

    async def stop(self) -> None:
        """Stop watching and flush any pending save."""
        logger.info("indexing_service_stopping")
        try:
            async with asyncio.timeout(STOP_TIMEOUT_SEC):
                await self.watcher.close()
                await self.store.close()
        except TimeoutError:
            logger.warning("service_stop_timeout", timeout=STOP_TIMEOUT_SEC)
        logger.info("indexing_service_stopped")

    async def _on_ingest(self, path: Path) -> None:
        source = str(path)
        self.store.increment_processing_count(source)
        try:
            chunks = await self.processor.process_file(path)
            await self.store.update_documents(chunks)
        except UnsupportedFileTypeError:
            logger.debug("unsupported_file_skipped", path=source)
        except FileNotFoundError:
            logger.debug("file_vanished", path=source)
            if source in self.store.sources():
                await self._remove_source(source)
        finally:
            self.store.decrement_processing_count(source)

    async def _on_remove(self, path: Path) -> None:
        source = str(path)
        sources = self.store.sources()
        if source in sources:
            await self._remove_source(source)
            return

        # A moved or deleted directory arrives as one unlink for the directory.
        nested = [s for s in sources if in_folder(s, source)]
        if nested:
            logger.info("directory_removed", path=source, sources=len(nested))
        for nested_source in nested or [source]:
            await self._remove_source(nested_source)

    async def _remove_source(self, source: str) -> None:
        await self.store.remove_documents_by_source(source)
        await self.processor.record(source, IngestAction.REMOVE)


async def run_service(config: DocSyncConfig) -> None:
    """Run the indexing service until SIGINT/SIGTERM."""
    service = IndexingService(config)

    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    def signal_handler() -> None:
        logger.info("shutdown_signal_received")
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await service.start()
        await shutdown.wait()
    finally:
        await service.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
