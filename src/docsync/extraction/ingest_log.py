"""Append-only ingestion log: one line per processed or removed file.

Line format::

    2024-05-01T12:00:00.000Z | ADD | SUCCESS | /docs/a.md
    2024-05-01T12:00:01.000Z | ADD | FAILED | /docs/b.pdf | PDF extraction failed
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path

import structlog

logger = structlog.get_logger()


class IngestAction(StrEnum):
    ADD = "ADD"
    REMOVE = "REMOVE"


def format_entry(
    source: str,
    action: IngestAction,
    success: bool = True,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> str:
    stamp = (now or datetime.now(UTC)).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z")
    status = "SUCCESS" if success else "FAILED"
    line = f"{stamp} | {action.value} | {status} | {source}"
    if reason:
        line += f" | {reason}"
    return line + "\n"


class IngestionLog:
    """Writes ingestion outcomes to a text file. Write failures never propagate."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def record(
        self,
        source: str,
        action: IngestAction,
        success: bool = True,
        reason: str | None = None,
    ) -> None:
        entry = format_entry(source, action, success, reason)
        try:
            await asyncio.to_thread(self._append, entry)
        except OSError as e:
            logger.warning("ingestion_log_write_failed", path=str(self.path), error=str(e))

    def _append(self, entry: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry)
