"""gitignore-style exclusion for watched trees.

Pattern syntax (one per line in the ignore file, ``#`` comments):
- ``name``: matches any file or directory whose name, or any ancestor
  segment, equals ``name``
- ``*.log``: glob, matched at any depth and against the final segment
- ``/drafts/*``: anchored, matched against the path relative to each root
- ``build/``: directory-only, matches directories named ``build``

There is no negation. Matching is case-sensitive and dotfiles are ordinary
names.
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable
from pathlib import Path, PurePath

import structlog

logger = structlog.get_logger()

__all__ = ["IgnoreMatcher", "has_wildcard", "parse_patterns"]

_WILDCARDS = ("*", "?", "[")


def has_wildcard(pattern: str) -> bool:
    return any(ch in pattern for ch in _WILDCARDS)


def parse_patterns(content: str) -> list[str]:
    """Split ignore-file content into patterns, dropping blanks and comments."""
    patterns: list[str] = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)
    return patterns


def _normalize(path: str | os.PathLike[str]) -> str:
    return PurePath(os.path.normpath(os.fspath(path))).as_posix()


class IgnoreMatcher:
    """Decides whether a path under a watched root is excluded.

    Patterns are loaded once from ``ignore_file``. A missing or unreadable
    file leaves the matcher with zero patterns, in which case nothing is
    ignored.
    """

    def __init__(
        self,
        ignore_file: Path | None = None,
        extra_patterns: Iterable[str] | None = None,
    ) -> None:
        self._ignore_file = ignore_file
        self._patterns: list[str] = list(extra_patterns or [])
        self._roots: list[str] = []
        self._loaded = False

    @property
    def patterns(self) -> tuple[str, ...]:
        return tuple(self._patterns)

    @property
    def roots(self) -> tuple[str, ...]:
        return tuple(self._roots)

    def load(self) -> None:
        """Read the ignore file. Safe to call more than once."""
        if self._loaded:
            return
        self._loaded = True
        if self._ignore_file is None:
            return

        try:
            content = self._ignore_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                "ignore_file_load_failed",
                path=str(self._ignore_file),
                error=str(e),
            )
            return

        loaded = parse_patterns(content)
        self._patterns.extend(loaded)
        logger.info("ignore_patterns_loaded", path=str(self._ignore_file), count=len(loaded))

    def set_roots(self, roots: Iterable[str | os.PathLike[str]]) -> None:
        self._roots = [_normalize(r) for r in roots]

    def should_ignore(self, path: str | os.PathLike[str], is_directory: bool = False) -> bool:
        if not self._patterns:
            return False

        normalized = _normalize(path)
        basename = normalized.rsplit("/", 1)[-1]
        return any(
            self._matches(pattern, normalized, basename, is_directory)
            for pattern in self._patterns
        )

    def should_ignore_tree(
        self,
        path: str | os.PathLike[str],
        is_directory: bool = False,
    ) -> bool:
        """Like should_ignore, but also true when an ancestor directory below
        a watched root is ignored.

        Live notifications arrive for files inside directories the initial
        crawl would have pruned; this gives them the same outcome.
        """
        if self.should_ignore(path, is_directory):
            return True
        if not self._patterns:
            return False

        normalized = _normalize(path)
        root = self._root_for(normalized)
        if root is None:
            return False

        parent = PurePath(normalized).parent
        while parent.as_posix() != root and len(parent.as_posix()) > len(root):
            if self.should_ignore(parent, is_directory=True):
                return True
            parent = parent.parent
        return False

    def _root_for(self, normalized: str) -> str | None:
        for root in self._roots:
            if normalized == root or normalized.startswith(root.rstrip("/") + "/"):
                return root
        return None

    def _matches(self, pattern: str, normalized: str, basename: str, is_directory: bool) -> bool:
        if pattern.startswith("/"):
            if self._matches_anchored(pattern[1:], normalized, is_directory):
                return True
        elif self._matches_unanchored(pattern, normalized, basename):
            return True

        if is_directory and pattern.endswith("/"):
            return basename == pattern[:-1]
        return False

    @staticmethod
    def _matches_unanchored(pattern: str, normalized: str, basename: str) -> bool:
        if basename == pattern:
            return True
        if pattern in normalized.split("/"):
            return True
        # Multi-segment patterns ("build/cache") match as a run of components.
        if f"/{pattern}/" in f"{normalized}/":
            return True
        if has_wildcard(pattern):
            if fnmatch.fnmatchcase(normalized, f"*/{pattern}"):
                return True
            if fnmatch.fnmatchcase(basename, pattern):
                return True
        return False

    def _matches_anchored(self, remainder: str, normalized: str, is_directory: bool) -> bool:
        dir_only = remainder.endswith("/")
        if dir_only:
            if not is_directory:
                return False
            remainder = remainder.rstrip("/")

        for root in self._roots:
            prefix = root.rstrip("/") + "/"
            if not normalized.startswith(prefix):
                continue
            relative = normalized[len(prefix) :]
            if fnmatch.fnmatchcase(relative, remainder):
                return True
        return False
