"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides a deterministic embedder so no test downloads a model.
"""

import hashlib
import re
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import numpy as np
import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local docsync package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of docsync modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("docsync"):
        del sys.modules[module_name]

from docsync.index.models import DocumentChunk  # noqa: E402

_TOKEN = re.compile(r"[a-z0-9]+")


class HashingEmbedder:
    """Bag-of-words feature hashing. Texts sharing words score higher."""

    model_name = "test/hashing"

    def __init__(self, dim: int = 256) -> None:
        self.dim = dim
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    def _vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dim, dtype=np.float32)
        for token in _TOKEN.findall(text.lower()):
            digest = hashlib.md5(token.encode()).digest()
            vec[int.from_bytes(digest[:4], "little") % self.dim] += 1.0
        if not vec.any():
            vec[0] = 1.0
        return vec

    def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        self.document_calls.append(list(texts))
        return np.stack([self._vector(t) for t in texts])

    def embed_query(self, text: str) -> np.ndarray:
        self.query_calls.append(text)
        return self._vector(text)


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


ChunkFactory = Callable[..., DocumentChunk]


@pytest.fixture
def make_chunk() -> ChunkFactory:
    """Factory for DocumentChunk with sensible defaults."""

    def factory(
        source: str = "/docs/a.txt",
        content: str = "hello world",
        file_type: str | None = None,
        last_modified: float = 1_700_000_000_000.0,
        chunk_index: int = 0,
        total_chunks: int = 1,
    ) -> DocumentChunk:
        if file_type is None:
            suffix = Path(source).suffix.lower()
            file_type = suffix[1:] if suffix else "txt"
        return DocumentChunk(
            content=content,
            source=source,
            file_type=file_type,
            last_modified=last_modified,
            chunk_index=chunk_index,
            total_chunks=total_chunks,
        )

    return factory
