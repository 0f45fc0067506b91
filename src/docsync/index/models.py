"""Data model shared by the index store, the extraction pipeline and queries."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class DocumentChunk:
    """One indexed slice of a source's extracted text.

    ``last_modified`` is the source mtime in epoch milliseconds.
    """

    content: str
    source: str
    file_type: str
    last_modified: float
    chunk_index: int = 0
    total_chunks: int = 1

    def metadata(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "fileType": self.file_type,
            "lastModified": self.last_modified,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
        }

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "metadata": self.metadata()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentChunk:
        meta = data["metadata"]
        return cls(
            content=data["content"],
            source=meta["source"],
            file_type=meta["fileType"],
            last_modified=float(meta["lastModified"]),
            chunk_index=int(meta.get("chunkIndex", 0)),
            total_chunks=int(meta.get("totalChunks", 1)),
        )


@dataclass(frozen=True, slots=True)
class SearchHit:
    """A chunk returned by a query, with the backing index's score."""

    chunk: DocumentChunk
    score: float

    @property
    def source(self) -> str:
        return self.chunk.source

    @property
    def last_modified(self) -> float:
        return self.chunk.last_modified

    def to_dict(self) -> dict[str, Any]:
        modified = datetime.fromtimestamp(self.chunk.last_modified / 1000, tz=UTC)
        return {
            "content": self.chunk.content,
            "source": self.chunk.source,
            "fileType": self.chunk.file_type,
            "score": self.score,
            "lastModified": self.chunk.last_modified,
            "lastModifiedDate": modified.isoformat().replace("+00:00", "Z"),
        }


@dataclass
class StoreStats:
    """Aggregate counts derived from the current source groups."""

    total_documents: int = 0
    documents_by_type: dict[str, int] = field(default_factory=dict)
    watched_directories: list[str] = field(default_factory=list)
    files_being_processed: int = 0

    def copy(self) -> StoreStats:
        return StoreStats(
            total_documents=self.total_documents,
            documents_by_type=dict(self.documents_by_type),
            watched_directories=list(self.watched_directories),
            files_being_processed=self.files_being_processed,
        )

    def to_dict(self) -> dict[str, Any]:
        raw = asdict(self)
        return {
            "totalDocuments": raw["total_documents"],
            "documentsByType": raw["documents_by_type"],
            "watchedDirectories": raw["watched_directories"],
            "filesBeingProcessed": raw["files_being_processed"],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoreStats:
        return cls(
            total_documents=int(data.get("totalDocuments", 0)),
            documents_by_type={k: int(v) for k, v in data.get("documentsByType", {}).items()},
            watched_directories=list(data.get("watchedDirectories", [])),
            files_being_processed=int(data.get("filesBeingProcessed", 0)),
        )
