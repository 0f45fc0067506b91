"""Recursive character text splitting.

Text is split on the coarsest separator present (paragraphs, then lines,
then words, then characters), and the pieces are greedily merged back into
chunks of at most ``chunk_size`` characters, carrying up to
``chunk_overlap`` characters of trailing context into the next chunk.
Pieces that cannot be split further may exceed ``chunk_size``.
"""

from __future__ import annotations

from collections.abc import Sequence

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")


class RecursiveCharacterSplitter:
    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: Sequence[str] = DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = tuple(separators)

    def split_text(self, text: str) -> list[str]:
        return self._split(text, self.separators)

    def _split(self, text: str, separators: Sequence[str]) -> list[str]:
        separator = separators[-1]
        remaining: Sequence[str] = ()
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1 :]
                break

        pieces = text.split(separator) if separator else list(text)
        pieces = [p for p in pieces if p]

        chunks: list[str] = []
        small: list[str] = []
        for piece in pieces:
            if len(piece) < self.chunk_size:
                small.append(piece)
                continue
            if small:
                chunks.extend(self._merge(small, separator))
                small = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)
        if small:
            chunks.extend(self._merge(small, separator))
        return chunks

    def _merge(self, pieces: Sequence[str], separator: str) -> list[str]:
        sep_len = len(separator)
        merged: list[str] = []
        window: list[str] = []
        total = 0

        for piece in pieces:
            length = len(piece)
            if window and total + length + sep_len > self.chunk_size:
                joined = separator.join(window).strip()
                if joined:
                    merged.append(joined)
                # Shrink from the front until only the overlap remains and the
                # next piece fits.
                while window and (
                    total > self.chunk_overlap or total + length + sep_len > self.chunk_size
                ):
                    total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                    window.pop(0)
            total += length + (sep_len if window else 0)
            window.append(piece)

        joined = separator.join(window).strip()
        if joined:
            merged.append(joined)
        return merged
