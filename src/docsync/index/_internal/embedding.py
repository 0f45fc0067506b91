"""Text embedding via fastembed (ONNX-based).

The model is loaded lazily on first use. Vectors come back as float32
arrays; callers run these methods off the event loop with
``asyncio.to_thread`` because inference is CPU-bound.
"""

from __future__ import annotations

import os
import threading
import time
from typing import Any, Protocol

import numpy as np
import structlog

log = structlog.get_logger()

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"
_EMBED_BATCH_SIZE = 64


class Embedder(Protocol):
    """Turns text into fixed-width vectors."""

    @property
    def model_name(self) -> str: ...

    def embed_documents(self, texts: list[str]) -> np.ndarray: ...

    def embed_query(self, text: str) -> np.ndarray: ...


def _detect_providers() -> list[str]:
    """Detect available ONNX Runtime execution providers."""
    try:
        import onnxruntime as ort  # type: ignore[import-not-found]

        available = set(ort.get_available_providers())
    except Exception:
        return []

    providers: list[str] = []
    if "CUDAExecutionProvider" in available:
        providers.append("CUDAExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


class FastEmbedEmbedder:
    """fastembed TextEmbedding wrapper with a thread-safe lazy load."""

    def __init__(self, model_name: str = DEFAULT_MODEL_NAME) -> None:
        self._model_name = model_name
        self._model: Any | None = None
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._model_name

    def embed_documents(self, texts: list[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        model = self._ensure_model()
        start = time.monotonic()
        vectors = list(model.embed(texts, batch_size=_EMBED_BATCH_SIZE))
        log.debug(
            "embedding.batch",
            count=len(texts),
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return np.asarray(vectors, dtype=np.float32)

    def embed_query(self, text: str) -> np.ndarray:
        model = self._ensure_model()
        vectors = list(model.query_embed(text))
        return np.asarray(vectors[0], dtype=np.float32)

    def _ensure_model(self) -> Any:
        """Lazy-load the fastembed model with GPU auto-detect."""
        with self._lock:
            if self._model is not None:
                return self._model

            from fastembed import TextEmbedding

            providers = _detect_providers()
            threads = max(1, (os.cpu_count() or 4) // 2)
            kwargs: dict[str, Any] = {"model_name": self._model_name, "threads": threads}
            if providers:
                kwargs["providers"] = providers

            start = time.monotonic()
            self._model = TextEmbedding(**kwargs)
            log.info(
                "embedding.model_loaded",
                model=self._model_name,
                providers=providers or ["CPUExecutionProvider"],
                threads=threads,
                elapsed_s=round(time.monotonic() - start, 2),
            )
            return self._model
