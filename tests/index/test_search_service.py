"""Tests for the query surface: folder scoping, date filtering, stats."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio

from docsync.core.errors import IndexNotInitializedError, InvalidQueryError
from docsync.index.models import SearchHit
from docsync.index.ops import SearchService, in_folder, parse_date
from docsync.index.store import IndexStore


def _ms(year: int, month: int, day: int) -> float:
    return datetime(year, month, day, tzinfo=UTC).timestamp() * 1000


@pytest_asyncio.fixture
async def service(tmp_path: Path, embedder, make_chunk) -> AsyncIterator[SearchService]:
    store = IndexStore(embedder, tmp_path / "store", save_delay=60.0)
    await store.add_documents(
        [
            make_chunk(
                "/docs/notes/jan.md", "budget planning notes", last_modified=_ms(2024, 1, 10)
            ),
            make_chunk("/docs/notes/jun.md", "budget review notes", last_modified=_ms(2024, 6, 10)),
            make_chunk("/docs/documents/x.md", "budget appendix", last_modified=_ms(2024, 3, 1)),
            make_chunk("/other/dec.txt", "holiday schedule", last_modified=_ms(2024, 12, 1)),
        ]
    )
    yield SearchService(store)
    await store.close()


class TestParseDate:
    def test_date_only_is_midnight_utc(self) -> None:
        assert parse_date("after", "2024-01-01") == _ms(2024, 1, 1)

    def test_zulu_suffix(self) -> None:
        assert parse_date("before", "2024-01-01T00:00:00Z") == _ms(2024, 1, 1)

    def test_invalid_raises_typed_error(self) -> None:
        with pytest.raises(InvalidQueryError, match="Invalid 'after' date"):
            parse_date("after", "last tuesday")


class TestInFolder:
    @pytest.mark.parametrize(
        ("source", "folder", "expected"),
        [
            ("/docs/notes/a.md", "/docs/notes", True),
            ("/docs/notes/a.md", "/docs/notes/", True),
            ("/docs/notes", "/docs/notes", True),
            ("/docs/documents/x.md", "/docs/doc", False),
            ("/docs/notes-old/a.md", "/docs/notes", False),
        ],
    )
    def test_prefix_semantics(self, source: str, folder: str, expected: bool) -> None:
        assert in_folder(source, folder) is expected


class TestSearch:
    @pytest.mark.asyncio
    async def test_folder_scope_uses_path_prefix(self, service: SearchService) -> None:
        # When
        hits = await service.search("budget notes", limit=5, folder="/docs/notes")

        # Then
        assert {h.source for h in hits} == {"/docs/notes/jan.md", "/docs/notes/jun.md"}

    @pytest.mark.asyncio
    async def test_limit_respected(self, service: SearchService) -> None:
        hits = await service.search("budget", limit=1)
        assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_search_uninitialized(self, tmp_path: Path, embedder) -> None:
        service = SearchService(IndexStore(embedder, tmp_path))
        with pytest.raises(IndexNotInitializedError):
            await service.search("x")

    @pytest.mark.asyncio
    async def test_result_wire_shape(self, service: SearchService) -> None:
        # When
        hit = (await service.search("holiday schedule", limit=1))[0]

        # Then
        assert isinstance(hit, SearchHit)
        assert hit.to_dict() == {
            "content": "holiday schedule",
            "source": "/other/dec.txt",
            "fileType": "txt",
            "score": hit.score,
            "lastModified": _ms(2024, 12, 1),
            "lastModifiedDate": "2024-12-01T00:00:00Z",
        }


class TestSearchByDate:
    @pytest.mark.asyncio
    async def test_after_and_before_are_exclusive(self, service: SearchService) -> None:
        # When
        hits = await service.search_by_date(after="2024-01-10", before="2024-12-01", limit=10)

        # Then
        assert {h.source for h in hits} == {"/docs/notes/jun.md", "/docs/documents/x.md"}

    @pytest.mark.asyncio
    async def test_without_query_uses_unranked_listing(self, service: SearchService) -> None:
        hits = await service.search_by_date(after="2024-05-01")
        assert {h.source for h in hits} == {"/docs/notes/jun.md", "/other/dec.txt"}
        assert all(h.score == 1.0 for h in hits)

    @pytest.mark.asyncio
    async def test_with_query_ranks(self, service: SearchService) -> None:
        hits = await service.search_by_date(before="2024-07-01", query="budget review")
        assert hits[0].source == "/docs/notes/jun.md"

    @pytest.mark.asyncio
    async def test_invalid_date(self, service: SearchService) -> None:
        with pytest.raises(InvalidQueryError):
            await service.search_by_date(before="not-a-date")


class TestStats:
    @pytest.mark.asyncio
    async def test_get_stats(self, service: SearchService) -> None:
        stats = service.get_stats()
        assert stats.total_documents == 4
        assert stats.documents_by_type == {"md": 3, "txt": 1}
