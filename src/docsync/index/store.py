"""Per-source document lifecycle over the vector index, with debounced saves.

IndexStore owns three views of the same data that must stay consistent:
- the backing VectorIndex (embeddings + docstore)
- the in-memory source → chunks map (insertion ordered)
- StoreStats, updated incrementally on every mutation

All mutation happens on the event loop thread. Embedding and disk I/O are
pushed to worker threads; the index itself is only touched between awaits.
"""

from __future__ import annotations

import asyncio
import json
from collections import Counter
from collections.abc import Iterable, Sequence
from pathlib import Path

import structlog

from docsync.config.constants import GET_ALL_DEFAULT_LIMIT, SEARCH_DEFAULT_LIMIT, STATS_FILENAME
from docsync.core.errors import IndexNotInitializedError, PersistenceError
from docsync.core.scheduler import DebounceScheduler
from docsync.index._internal.embedding import Embedder
from docsync.index._internal.vectors import VectorIndex
from docsync.index.models import DocumentChunk, SearchHit, StoreStats

logger = structlog.get_logger()

DEFAULT_SAVE_DELAY_SEC = 5.0
UNRANKED_SCORE = 1.0
_SAVE_KEY = "persist"


class IndexStore:
    """Searchable chunk store keyed by source path."""

    def __init__(
        self,
        embedder: Embedder,
        persist_dir: Path,
        *,
        save_delay: float = DEFAULT_SAVE_DELAY_SEC,
        scheduler: DebounceScheduler | None = None,
    ) -> None:
        self._embedder = embedder
        self._persist_dir = persist_dir
        self._save_delay = save_delay
        self._scheduler = scheduler or DebounceScheduler()

        self._index: VectorIndex | None = None
        self._by_source: dict[str, list[DocumentChunk]] = {}
        self._processing: set[str] = set()
        self._stats = StoreStats()

    @property
    def persist_dir(self) -> Path:
        return self._persist_dir

    def is_initialized(self) -> bool:
        return self._index is not None

    def sources(self) -> list[str]:
        return list(self._by_source)

    def documents_for(self, source: str) -> list[DocumentChunk]:
        return list(self._by_source.get(source, ()))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_documents(self, chunks: Sequence[DocumentChunk]) -> None:
        """Embed and insert chunks, creating the backing index on first use."""
        if not chunks:
            return

        texts = [c.content for c in chunks]
        vectors = await asyncio.to_thread(self._embedder.embed_documents, texts)

        if self._index is None:
            self._index = VectorIndex.create(chunks, vectors, self._embedder.model_name)
            logger.info("vector_index.created", chunks=len(chunks))
        else:
            self._index.add(chunks, vectors)

        for chunk in chunks:
            self._by_source.setdefault(chunk.source, []).append(chunk)

        self._stats.total_documents += len(chunks)
        by_type = self._stats.documents_by_type
        for file_type, count in Counter(c.file_type for c in chunks).items():
            by_type[file_type] = by_type.get(file_type, 0) + count

        self.schedule_save()

    async def remove_documents_by_source(self, source: str) -> None:
        """Drop every chunk for ``source``. Unknown sources are a no-op."""
        removed = self._by_source.pop(source, None)
        if not removed:
            return

        if self._index is not None:
            self._index.delete_by_source(source)

        self._stats.total_documents = max(0, self._stats.total_documents - len(removed))
        by_type = self._stats.documents_by_type
        for file_type, count in Counter(c.file_type for c in removed).items():
            remaining = max(0, by_type.get(file_type, 0) - count)
            if remaining:
                by_type[file_type] = remaining
            else:
                by_type.pop(file_type, None)

        logger.debug("source_removed", source=source, chunks=len(removed))
        self.schedule_save()

    async def update_documents(self, chunks: Sequence[DocumentChunk]) -> None:
        """Replace each source's chunks with the given ones (remove, then add)."""
        if not chunks:
            return

        grouped: dict[str, list[DocumentChunk]] = {}
        for chunk in chunks:
            grouped.setdefault(chunk.source, []).append(chunk)

        for source, source_chunks in grouped.items():
            await self.remove_documents_by_source(source)
            await self.add_documents(source_chunks)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def similarity_search(
        self,
        query: str,
        limit: int = SEARCH_DEFAULT_LIMIT,
    ) -> list[SearchHit]:
        """Best-first semantic matches.

        Raises:
            IndexNotInitializedError: No documents were ever added or loaded.
        """
        if self._index is None:
            raise IndexNotInitializedError.create()
        if len(self._index) == 0:
            return []

        query_vector = await asyncio.to_thread(self._embedder.embed_query, query)
        return [SearchHit(chunk, score) for chunk, score in self._index.search(query_vector, limit)]

    def get_all_documents(self, limit: int = GET_ALL_DEFAULT_LIMIT) -> list[SearchHit]:
        """Up to ``limit`` chunks in source insertion order, unranked."""
        hits: list[SearchHit] = []
        for source_chunks in self._by_source.values():
            for chunk in source_chunks:
                if len(hits) >= limit:
                    return hits
                hits.append(SearchHit(chunk, UNRANKED_SCORE))
        return hits

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def increment_processing_count(self, path: str) -> None:
        self._processing.add(path)
        self._stats.files_being_processed = len(self._processing)

    def decrement_processing_count(self, path: str) -> None:
        self._processing.discard(path)
        self._stats.files_being_processed = len(self._processing)

    def set_watched_directories(self, directories: Iterable[str | Path]) -> None:
        self._stats.watched_directories = [str(d) for d in directories]

    def get_stats(self) -> StoreStats:
        return self._stats.copy()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def schedule_save(self) -> None:
        """(Re)arm the single persistence timer."""
        self._scheduler.arm(_SAVE_KEY, self._save_delay, self._persist)

    @property
    def save_pending(self) -> bool:
        return self._scheduler.is_armed(_SAVE_KEY)

    async def flush(self) -> None:
        """Run a pending debounced save immediately, if one is armed."""
        await self._scheduler.flush(_SAVE_KEY)

    async def close(self) -> None:
        """Flush any pending save and stop the scheduler."""
        await self.flush()
        await self._scheduler.close()

    async def _persist(self) -> None:
        if self._index is None:
            return
        try:
            await self.save(self._persist_dir)
        except PersistenceError as e:
            logger.error("vector_store_save_failed", **e.to_dict())
            return
        logger.info("vector_store_saved", path=str(self._persist_dir))

    async def save(self, directory: Path | None = None) -> None:
        """Write the backing index and stats.json into ``directory``.

        Raises:
            IndexNotInitializedError: Nothing to save yet.
            PersistenceError: The state could not be written.
        """
        if self._index is None:
            raise IndexNotInitializedError.create()
        target = directory or self._persist_dir
        snapshot = self._index.snapshot()
        stats = self._stats.to_dict()
        try:
            await asyncio.to_thread(_write_state, target, snapshot, stats)
        except (OSError, ValueError, TypeError) as e:
            raise PersistenceError.save_failed(str(target), str(e)) from e

    async def load(self, directory: Path | None = None) -> None:
        """Restore the backing index, the source map and stats from ``directory``.

        Raises:
            PersistenceError: Missing or unreadable state. Callers decide
                whether starting empty is acceptable.
        """
        source = directory or self._persist_dir
        try:
            index, saved = await asyncio.to_thread(_read_state, source)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise PersistenceError.load_failed(str(source), str(e)) from e

        by_source: dict[str, list[DocumentChunk]] = {}
        for chunk in index.chunks:
            by_source.setdefault(chunk.source, []).append(chunk)

        derived = Counter(c.file_type for c in index.chunks)
        if saved.total_documents != len(index) or saved.documents_by_type != dict(derived):
            logger.warning(
                "stats_mismatch_on_load",
                saved_total=saved.total_documents,
                derived_total=len(index),
            )

        self._index = index
        self._by_source = by_source
        self._stats = StoreStats(
            total_documents=len(index),
            documents_by_type=dict(derived),
            watched_directories=self._stats.watched_directories or saved.watched_directories,
            files_being_processed=len(self._processing),
        )
        logger.info("vector_store_loaded", path=str(source), documents=len(index))


def _write_state(directory: Path, index: VectorIndex, stats: dict[str, object]) -> None:
    index.save(directory)
    with (directory / STATS_FILENAME).open("w", encoding="utf-8") as f:
        json.dump(stats, f, indent=2)


def _read_state(directory: Path) -> tuple[VectorIndex, StoreStats]:
    index = VectorIndex.load(directory)
    with (directory / STATS_FILENAME).open(encoding="utf-8") as f:
        stats = StoreStats.from_dict(json.load(f))
    return index, stats
