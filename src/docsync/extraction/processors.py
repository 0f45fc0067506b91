"""Content processors: turn a file's raw text into indexable text.

Processors are plain objects in a caller-built list. The highest-priority
processor whose ``can_handle`` accepts a path wins; ties keep list order.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from bs4 import BeautifulSoup

from docsync.core.errors import UnsupportedFileTypeError

_BLANK_RUN = re.compile(r"\n\s*\n+")


class ContentProcessor(ABC):
    """Base class for format-specific text processing."""

    extensions: tuple[str, ...] = ()
    priority: int = 1

    def can_handle(self, path: Path) -> bool:
        return path.name.lower().endswith(self.extensions)

    @abstractmethod
    def process(self, content: str) -> str:
        """Return the text to index for ``content``."""


class HtmlProcessor(ContentProcessor):
    """Visible text of an HTML document, without scripts or styles."""

    extensions = (".html",)

    def process(self, content: str) -> str:
        soup = BeautifulSoup(content, "html.parser")
        for element in soup(["script", "style"]):
            element.decompose()
        text = soup.get_text("\n")
        lines = (line.strip() for line in text.splitlines())
        return _BLANK_RUN.sub("\n\n", "\n".join(lines)).strip()


class JsonProcessor(ContentProcessor):
    """Re-serializes JSON with two-space indentation."""

    extensions = (".json",)

    def process(self, content: str) -> str:
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError("Invalid JSON content") from e
        return json.dumps(parsed, indent=2, ensure_ascii=False)


class MarkdownProcessor(ContentProcessor):
    extensions = (".md",)

    def process(self, content: str) -> str:
        return content


class DefaultTextProcessor(ContentProcessor):
    """Fallback for any text file."""

    priority = 0

    def can_handle(self, path: Path) -> bool:
        return True

    def process(self, content: str) -> str:
        return content


def default_processors() -> list[ContentProcessor]:
    return [HtmlProcessor(), JsonProcessor(), MarkdownProcessor(), DefaultTextProcessor()]


def select_processor(processors: Sequence[ContentProcessor], path: Path) -> ContentProcessor:
    """Pick the processor for ``path``.

    Raises:
        UnsupportedFileTypeError: No processor accepts the path.
    """
    ranked = sorted(processors, key=lambda p: -p.priority)
    for processor in ranked:
        if processor.can_handle(path):
            return processor
    raise UnsupportedFileTypeError.for_path(str(path))
