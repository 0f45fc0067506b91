"""Dense cosine-similarity index over document chunks.

Rows of an L2-normalised float32 matrix run parallel to a docstore list of
DocumentChunk records. Embedding happens outside this class; every method
here is synchronous and cheap enough to run on the event loop.

Storage (one directory):
  - embeddings.npz   (float32 matrix)
  - docstore.json    (chunks, model name, dim, version)
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import numpy as np
import structlog

from docsync.index.models import DocumentChunk

log = structlog.get_logger()

EMBEDDINGS_FILENAME = "embeddings.npz"
DOCSTORE_FILENAME = "docstore.json"
_DOCSTORE_VERSION = 1


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=np.float32)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms = np.maximum(norms, 1e-10)
    return matrix / norms


class VectorIndex:
    """Append-only matrix plus docstore, with mask-based deletion."""

    def __init__(
        self,
        matrix: np.ndarray,
        chunks: Sequence[DocumentChunk],
        model_name: str = "",
    ) -> None:
        if len(matrix) != len(chunks):
            raise ValueError(f"matrix has {len(matrix)} rows but {len(chunks)} chunks were given")
        self._matrix = _normalize_rows(matrix) if len(chunks) else np.zeros((0, 0), np.float32)
        self._chunks: list[DocumentChunk] = list(chunks)
        self.model_name = model_name

    @classmethod
    def create(
        cls,
        chunks: Sequence[DocumentChunk],
        vectors: np.ndarray,
        model_name: str = "",
    ) -> VectorIndex:
        """Build a fresh index from already-embedded chunks."""
        return cls(vectors, chunks, model_name=model_name)

    def snapshot(self) -> VectorIndex:
        """Copy safe to read from another thread while this index keeps mutating.

        The matrix is shared: mutations always rebind it, never write in place.
        """
        clone = object.__new__(VectorIndex)
        clone._matrix = self._matrix
        clone._chunks = list(self._chunks)
        clone.model_name = self.model_name
        return clone

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def dim(self) -> int:
        return int(self._matrix.shape[1]) if len(self._chunks) else 0

    @property
    def chunks(self) -> list[DocumentChunk]:
        return list(self._chunks)

    def add(self, chunks: Sequence[DocumentChunk], vectors: np.ndarray) -> None:
        if not chunks:
            return
        if len(vectors) != len(chunks):
            raise ValueError(f"got {len(vectors)} vectors for {len(chunks)} chunks")
        new_rows = _normalize_rows(vectors)
        if self._chunks:
            if new_rows.shape[1] != self.dim:
                raise ValueError(f"vector dim {new_rows.shape[1]} != index dim {self.dim}")
            self._matrix = np.vstack([self._matrix, new_rows])
        else:
            self._matrix = new_rows
        self._chunks.extend(chunks)

    def delete_by_source(self, source: str) -> int:
        """Drop every row whose chunk came from ``source``. Returns rows removed."""
        if not self._chunks:
            return 0
        keep_mask = np.array([c.source != source for c in self._chunks], dtype=bool)
        removed = int((~keep_mask).sum())
        if removed == 0:
            return 0
        self._matrix = self._matrix[keep_mask]
        self._chunks = [c for c, keep in zip(self._chunks, keep_mask, strict=True) if keep]
        if not self._chunks:
            self._matrix = np.zeros((0, 0), np.float32)
        return removed

    def search(self, query_vector: np.ndarray, k: int) -> list[tuple[DocumentChunk, float]]:
        """Return up to ``k`` (chunk, cosine similarity) pairs, best first."""
        if not self._chunks or k <= 0:
            return []
        query = _normalize_rows(query_vector)[0]
        if query.shape[0] != self.dim:
            raise ValueError(f"query dim {query.shape[0]} != index dim {self.dim}")

        scores = self._matrix @ query
        k = min(k, len(scores))
        if k < len(scores):
            top = np.argpartition(scores, -k)[-k:]
        else:
            top = np.arange(len(scores))
        # Stable tie-break on insertion order
        order = sorted(top.tolist(), key=lambda i: (-float(scores[i]), i))
        return [(self._chunks[i], float(scores[i])) for i in order]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, directory: Path) -> None:
        """Persist as a compressed numpy matrix plus a JSON docstore."""
        directory.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(directory / EMBEDDINGS_FILENAME, matrix=self._matrix)
        meta: dict[str, Any] = {
            "version": _DOCSTORE_VERSION,
            "model": self.model_name,
            "dim": self.dim,
            "count": len(self._chunks),
            "chunks": [c.to_dict() for c in self._chunks],
        }
        with (directory / DOCSTORE_FILENAME).open("w", encoding="utf-8") as f:
            json.dump(meta, f)

    @classmethod
    def load(cls, directory: Path) -> VectorIndex:
        """Load from disk.

        Raises:
            FileNotFoundError: Either file is missing.
            ValueError: Version mismatch or inconsistent contents.
        """
        npz_path = directory / EMBEDDINGS_FILENAME
        meta_path = directory / DOCSTORE_FILENAME

        with meta_path.open(encoding="utf-8") as f:
            meta = json.load(f)
        if meta.get("version") != _DOCSTORE_VERSION:
            raise ValueError(
                f"docstore version {meta.get('version')} != expected {_DOCSTORE_VERSION}"
            )

        with np.load(npz_path, allow_pickle=False) as data:
            matrix = data["matrix"]
        chunks = [DocumentChunk.from_dict(item) for item in meta.get("chunks", [])]
        if not chunks:
            matrix = np.zeros((0, 0), np.float32)
        index = cls(matrix, chunks, meta.get("model", ""))
        log.info("vector_index.loaded", chunks=len(chunks), dim=index.dim)
        return index
