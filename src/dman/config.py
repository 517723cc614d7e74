"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (DMAN__CACHE__TTL_DAYS=1)
  2. dman.yaml              (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional — all fields have sensible defaults.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("dman")


def _find_config_file() -> str | None:
    """Return the path of the first dman.yaml found, or None."""
    candidates = [
        Path("dman.yaml"),
        Path(platformdirs.user_config_dir("dman")) / "dman.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class FetchSettings(BaseModel):
    server: str = "https://dyn.manpages.debian.org"
    fallback_lang: str = "en"
    # Served with Content-Encoding: gzip. httpx decodes the body, so the cache
    # holds plain roff.
    suffix: str = ".gz"
    request_timeout_seconds: float = 10.0
    body_limit_bytes: int = 5 * 1024 * 1024
    user_agent: str = "dman/1.0"


class CacheSettings(BaseModel):
    root: str = _DEFAULT_CACHE_DIR
    ttl_days: float = 14

    @property
    def ttl(self) -> timedelta:
        return timedelta(days=self.ttl_days)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: DMAN__FETCH__SERVER=http://...
        env_prefix="DMAN__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    default_release: str = "stable"
    default_language: str = "en"
    fetch: FetchSettings = FetchSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
