"""Index module - per-source document store over a dense vector index.

Public API:
- IndexStore: add/replace/remove by source, search, debounced persistence
- SearchService: query surface (search, search_by_date, get_stats)
- DocumentChunk, SearchHit, StoreStats: data types

Internal implementations (ignore matching, embedding, the numpy index) are
in `docsync.index._internal/`.
"""

from docsync.index.models import DocumentChunk, SearchHit, StoreStats
from docsync.index.ops import SearchService
from docsync.index.store import IndexStore

__all__ = [
    "DocumentChunk",
    "IndexStore",
    "SearchHit",
    "SearchService",
    "StoreStats",
]
