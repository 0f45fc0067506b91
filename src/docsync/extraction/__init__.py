"""Extraction module - file content to indexable chunks.

- FileProcessor: converters, text sniffing, processors and chunking
- ContentProcessor and its HTML/JSON/Markdown/default implementations
- RecursiveCharacterSplitter: size-bounded chunking with overlap
- IngestionLog: append-only outcome log
"""

from docsync.extraction.chunking import RecursiveCharacterSplitter
from docsync.extraction.ingest_log import IngestAction, IngestionLog
from docsync.extraction.pipeline import Converter, FileProcessor, file_type_for
from docsync.extraction.processors import (
    ContentProcessor,
    DefaultTextProcessor,
    HtmlProcessor,
    JsonProcessor,
    MarkdownProcessor,
    default_processors,
    select_processor,
)

__all__ = [
    "ContentProcessor",
    "Converter",
    "DefaultTextProcessor",
    "FileProcessor",
    "HtmlProcessor",
    "IngestAction",
    "IngestionLog",
    "JsonProcessor",
    "MarkdownProcessor",
    "RecursiveCharacterSplitter",
    "default_processors",
    "file_type_for",
    "select_processor",
]
