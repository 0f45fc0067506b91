"""File → chunks extraction.

Order of attempts for one path:
1. External converter by extension (pandoc, pdftotext, tesseract). Converted
   text is indexed with file type ``txt``.
2. Otherwise the file must sniff as text and is read as UTF-8.
3. The selected content processor normalizes the text, which is then split
   into chunks.

Every outcome lands in the ingestion log. Extraction failures produce a
FAILED line and an empty result; a missing file raises FileNotFoundError so
the caller can tell deletion races apart from bad content.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from docsync.core.errors import ExtractionError, UnsupportedFileTypeError
from docsync.extraction.chunking import RecursiveCharacterSplitter
from docsync.extraction.ingest_log import IngestAction, IngestionLog
from docsync.extraction.processors import (
    ContentProcessor,
    default_processors,
    select_processor,
)
from docsync.index.models import DocumentChunk

logger = structlog.get_logger()

SNIFF_BYTES = 4096
CONVERTED_FILE_TYPE = "txt"


@dataclass(frozen=True)
class Converter:
    """An external program that prints a document's text to stdout."""

    label: str
    extensions: frozenset[str]
    argv: tuple[str, ...]
    strip: bool = True

    def command(self, path: Path) -> list[str]:
        return [str(path) if arg == "{path}" else arg for arg in self.argv]

    def handles(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions


PANDOC = Converter(
    label="Pandoc conversion",
    extensions=frozenset({".docx", ".odt", ".epub", ".rtf", ".tex", ".rst"}),
    argv=("pandoc", "{path}", "-t", "plain"),
    strip=False,
)
PDFTOTEXT = Converter(
    label="PDF extraction",
    extensions=frozenset({".pdf"}),
    argv=("pdftotext", "{path}", "-"),
)
TESSERACT = Converter(
    label="OCR extraction",
    extensions=frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp"}),
    argv=("tesseract", "{path}", "stdout"),
)
DEFAULT_CONVERTERS: tuple[Converter, ...] = (PANDOC, PDFTOTEXT, TESSERACT)


def file_type_for(path: Path) -> str:
    """Lowercase extension without the dot; ``txt`` when there is none."""
    suffix = path.suffix.lower()
    return suffix[1:] if suffix else "txt"


def looks_like_text(path: Path) -> bool:
    """Sniff the first bytes: no NUL and valid UTF-8 means text.

    Raises:
        FileNotFoundError: The path does not exist.
    """
    with path.open("rb") as f:
        head = f.read(SNIFF_BYTES)
    if b"\x00" in head:
        return False
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multibyte sequence cut at the sniff boundary is still text
        return e.start >= len(head) - 3 and e.reason == "unexpected end of data"
    return True


async def run_converter(converter: Converter, path: Path) -> str:
    """Run ``converter`` on ``path`` and return its stdout.

    Raises:
        ExtractionError: Missing executable, non-zero exit or empty output.
    """
    argv = converter.command(path)
    if shutil.which(argv[0]) is None:
        raise ExtractionError.failed(str(path), f"{converter.label} failed: {argv[0]} not found")

    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout_bytes, stderr_bytes = await proc.communicate()
    if proc.returncode != 0:
        logger.debug(
            "converter_failed",
            converter=argv[0],
            path=str(path),
            returncode=proc.returncode,
            stderr=stderr_bytes.decode(errors="replace")[:500],
        )
        raise ExtractionError.failed(str(path), f"{converter.label} failed")

    text = stdout_bytes.decode(errors="replace")
    if converter.strip:
        text = text.strip()
    if not text:
        raise ExtractionError.failed(str(path), f"{converter.label} failed")
    return text


class FileProcessor:
    """Extracts and chunks a single file."""

    def __init__(
        self,
        *,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        processors: Sequence[ContentProcessor] | None = None,
        converters: Sequence[Converter] = DEFAULT_CONVERTERS,
        ingestion_log: IngestionLog | None = None,
    ) -> None:
        self._splitter = RecursiveCharacterSplitter(chunk_size, chunk_overlap)
        self._processors = list(processors) if processors is not None else default_processors()
        self._converters = tuple(converters)
        self._log = ingestion_log

    async def process_file(self, path: Path) -> list[DocumentChunk]:
        """Extract, normalize and chunk ``path``.

        Returns an empty list when extraction fails (a FAILED line is logged).

        Raises:
            FileNotFoundError: The file vanished before or during processing.
            UnsupportedFileTypeError: No content processor accepts the file.
        """
        source = str(path)
        try:
            chunks = await self._process(path)
        except (FileNotFoundError, UnsupportedFileTypeError):
            raise
        except ExtractionError as e:
            await self.record(source, IngestAction.ADD, success=False, reason=e.details["reason"])
            return []
        except Exception as e:
            logger.warning("file_processing_failed", path=source, error=str(e))
            await self.record(
                source, IngestAction.ADD, success=False, reason=str(e) or "Unknown error"
            )
            return []

        await self.record(source, IngestAction.ADD)
        return chunks

    async def record(
        self,
        source: str,
        action: IngestAction,
        success: bool = True,
        reason: str | None = None,
    ) -> None:
        if self._log is not None:
            await self._log.record(source, action, success, reason)

    async def _process(self, path: Path) -> list[DocumentChunk]:
        source = str(path)
        file_type = file_type_for(path)

        converter = next((c for c in self._converters if c.handles(path)), None)
        if converter is not None:
            if not path.exists():
                raise FileNotFoundError(source)
            content = await run_converter(converter, path)
            file_type = CONVERTED_FILE_TYPE
        else:
            if not await asyncio.to_thread(looks_like_text, path):
                raise ExtractionError.failed(source, "Not a text file")
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")

        if not content:
            raise ExtractionError.failed(source, "No content extracted")

        mtime_ms = (await asyncio.to_thread(path.stat)).st_mtime_ns / 1_000_000
        processor = select_processor(self._processors, path)
        texts = await asyncio.to_thread(self._normalize_and_split, processor, content)

        logger.debug("file_chunked", path=source, file_type=file_type, chunks=len(texts))
        return [
            DocumentChunk(
                content=text,
                source=source,
                file_type=file_type,
                last_modified=mtime_ms,
                chunk_index=i,
                total_chunks=len(texts),
            )
            for i, text in enumerate(texts)
        ]

    def _normalize_and_split(self, processor: ContentProcessor, content: str) -> list[str]:
        return self._splitter.split_text(processor.process(content))
