"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (DOCSYNC__SECTION__KEY)
3. Global YAML (~/.config/docsync/config.yaml)
4. Built-in defaults (lowest priority)

Watch roots are resolved separately by resolve_watch_roots(): a JSON watch
list file wins over the comma-separated directories setting.
"""

import json
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from docsync.config.constants import ENV_PREFIX, GLOBAL_CONFIG_PATH
from docsync.config.models import (
    DocSyncConfig,
    IndexConfig,
    LoggingConfig,
    WatchConfig,
    WatchListFile,
)
from docsync.core.errors import ConfigError

logger = structlog.get_logger()


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with an instance-based YAML source."""

    class DocSyncSettings(BaseSettings):
        """Root config. Env vars: DOCSYNC__WATCH__DIRECTORIES, DOCSYNC__INDEX__CHUNK_SIZE, etc."""

        model_config = SettingsConfigDict(
            env_prefix=ENV_PREFIX,
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        watch: WatchConfig = WatchConfig()
        index: IndexConfig = IndexConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return DocSyncSettings


def load_config(config_path: Path | None = None, **kwargs: Any) -> DocSyncConfig:
    """Load config: defaults < yaml < env vars < kwargs.

    Args:
        config_path: YAML file to read. Defaults to GLOBAL_CONFIG_PATH.
        **kwargs: Override values (highest precedence), keyed by section.

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    yaml_config = _load_yaml(config_path or GLOBAL_CONFIG_PATH)
    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return DocSyncConfig.model_validate(settings.model_dump())


def load_watch_list(path: Path) -> list[str]:
    """Read a JSON watch config file and return its non-empty watch list.

    Raises:
        ConfigError: File missing, not JSON, or watchList absent/empty.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError.file_not_found(str(path)) from e
    except OSError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e

    try:
        return WatchListFile.model_validate(data).watch_list
    except ValidationError as e:
        raise ConfigError.invalid_value(
            "watchList",
            data.get("watchList") if isinstance(data, dict) else data,
            "must be a non-empty array of strings",
        ) from e


def resolve_watch_roots(config: WatchConfig) -> list[Path]:
    """Resolve the configured watch roots to absolute paths.

    The watch config file wins when both it and the directories list are set.

    Raises:
        ConfigError: No directories configured, or the watch file is invalid.
    """
    if config.config_file is not None:
        if config.directories:
            logger.warning(
                "watch_sources_conflict",
                using="config_file",
                config_file=str(config.config_file),
            )
        entries = load_watch_list(config.config_file.expanduser())
        logger.info("watch_list_loaded", source=str(config.config_file), count=len(entries))
    else:
        entries = config.directories_list

    if not entries:
        raise ConfigError.missing_required("watch.directories or watch.config_file")

    roots: list[Path] = []
    for entry in entries:
        root = Path(entry).expanduser().resolve()
        if root not in roots:
            roots.append(root)
    return roots
