"""Query surface over the IndexStore.

SearchService is what a request/response front end calls: semantic search
with an optional folder scope, modification-date filtering and stats.
Results are SearchHit records; ``SearchHit.to_dict()`` is the wire shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

from docsync.config.constants import GET_ALL_DEFAULT_LIMIT, SEARCH_DEFAULT_LIMIT, SEARCH_MAX_LIMIT
from docsync.core.errors import InvalidQueryError
from docsync.index.models import SearchHit, StoreStats
from docsync.index.store import IndexStore

logger = structlog.get_logger()


def parse_date(field: str, value: str) -> float:
    """Parse an ISO-8601 date or datetime into epoch milliseconds.

    Naive values are read as UTC, so ``"2024-01-01"`` is midnight UTC.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidQueryError.invalid_date(field, value) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.timestamp() * 1000


def in_folder(source: str, folder: str) -> bool:
    """True when ``source`` is ``folder`` itself or lies beneath it."""
    base = folder.rstrip("/\\")
    if not base:
        return True
    if source == base:
        return True
    return Path(source).is_relative_to(base)


def _clamp(limit: int) -> int:
    return max(1, min(limit, SEARCH_MAX_LIMIT))


@dataclass
class SearchService:
    """Read-only queries against a live (or freshly loaded) IndexStore."""

    store: IndexStore

    async def search(
        self,
        query: str,
        limit: int = SEARCH_DEFAULT_LIMIT,
        folder: str | None = None,
    ) -> list[SearchHit]:
        """Semantic search, optionally restricted to sources under ``folder``.

        Raises:
            IndexNotInitializedError: The store has never held documents.
        """
        limit = _clamp(limit)
        if folder is None:
            return await self.store.similarity_search(query, limit)

        # Over-fetch so folder filtering can still fill the page
        hits = await self.store.similarity_search(query, SEARCH_MAX_LIMIT)
        scoped = [hit for hit in hits if in_folder(hit.source, folder)]
        logger.debug("folder_filter", folder=folder, fetched=len(hits), kept=len(scoped))
        return scoped[:limit]

    async def search_by_date(
        self,
        after: str | None = None,
        before: str | None = None,
        query: str | None = None,
        limit: int = SEARCH_DEFAULT_LIMIT,
    ) -> list[SearchHit]:
        """Chunks whose source was modified strictly between ``after`` and ``before``.

        With a query the candidates are semantic matches, best first; without
        one they are the unranked listing.

        Raises:
            InvalidQueryError: ``after`` or ``before`` is not an ISO date.
            IndexNotInitializedError: A query was given but the store has
                never held documents.
        """
        after_ms = parse_date("after", after) if after else None
        before_ms = parse_date("before", before) if before else None
        limit = _clamp(limit)

        if query:
            candidates = await self.store.similarity_search(query, SEARCH_MAX_LIMIT)
        else:
            candidates = self.store.get_all_documents(GET_ALL_DEFAULT_LIMIT)

        def keep(hit: SearchHit) -> bool:
            if after_ms is not None and hit.last_modified <= after_ms:
                return False
            return not (before_ms is not None and hit.last_modified >= before_ms)

        return [hit for hit in candidates if keep(hit)][:limit]

    def get_stats(self) -> StoreStats:
        return self.store.get_stats()
