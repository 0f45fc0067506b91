"""Configuration constants.

Values here are implementation details that should NOT be user-configurable.
For configurable values, see models.py.
"""

from pathlib import Path

ENV_PREFIX = "DOCSYNC__"
"""Prefix for environment variable overrides (nested with ``__``)."""

GLOBAL_CONFIG_PATH = Path("~/.config/docsync/config.yaml").expanduser()
"""Optional global YAML config, lowest precedence above defaults."""

DEFAULT_PERSIST_DIR = Path("~/.docsync-vectorstore").expanduser()
"""Where the index is persisted when no override is given."""

DEFAULT_INGESTION_LOG_PATH = Path("~/.local/share/docsync/ingestion.log").expanduser()
"""Append-only ingestion log location when no override is given."""

STATS_FILENAME = "stats.json"
"""Sibling file holding the serialized StoreStats."""

WATCH_LIST_KEY = "watchList"
"""Key of the directory list in a watch config file."""

SEARCH_DEFAULT_LIMIT = 5
"""Default number of results for search and search_by_date."""

SEARCH_MAX_LIMIT = 20
"""Hard cap on requested results."""

GET_ALL_DEFAULT_LIMIT = 20
"""Default number of chunks returned by a metadata-only listing."""
