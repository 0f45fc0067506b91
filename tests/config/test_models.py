"""Tests for config/models.py validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from docsync.config.models import (
    DocSyncConfig,
    IndexConfig,
    LogOutputConfig,
    WatchConfig,
    WatchListFile,
)


class TestIndexConfig:
    def test_defaults(self) -> None:
        config = IndexConfig()
        assert config.chunk_size == 1000
        assert config.chunk_overlap == 200
        assert config.embedding_model == "sentence-transformers/all-MiniLM-L6-v2"

    @pytest.mark.parametrize("size", [0, -5])
    def test_rejects_non_positive_chunk_size(self, size: int) -> None:
        with pytest.raises(ValidationError):
            IndexConfig(chunk_size=size, chunk_overlap=0)

    @pytest.mark.parametrize(("size", "overlap"), [(100, 100), (100, 150), (100, -1)])
    def test_rejects_overlap_outside_range(self, size: int, overlap: int) -> None:
        with pytest.raises(ValidationError):
            IndexConfig(chunk_size=size, chunk_overlap=overlap)

    def test_rejects_negative_save_delay(self) -> None:
        with pytest.raises(ValidationError):
            IndexConfig(save_delay_sec=-1)

    def test_expands_home_in_paths(self) -> None:
        config = IndexConfig(persist_dir=Path("~/store"))
        assert "~" not in str(config.persist_dir)


class TestWatchConfig:
    def test_directories_list_strips_and_skips_blanks(self) -> None:
        config = WatchConfig(directories=" /a ,, /b ")
        assert config.directories_list == ["/a", "/b"]

    def test_no_directories(self) -> None:
        assert WatchConfig().directories_list == []


class TestWatchListFile:
    def test_alias(self) -> None:
        parsed = WatchListFile.model_validate({"watchList": ["/docs"]})
        assert parsed.watch_list == ["/docs"]

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WatchListFile.model_validate({"watchList": []})


class TestLogOutputConfig:
    def test_relative_file_destination_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LogOutputConfig(destination="relative/log.txt")

    def test_console_destinations(self) -> None:
        assert LogOutputConfig(destination="stdout").destination == "stdout"


class TestDocSyncConfig:
    def test_sections_default(self) -> None:
        config = DocSyncConfig()
        assert config.logging.level == "INFO"
        assert config.watch.config_file is None
        assert config.index.save_delay_sec == 5.0
