# src/shoplocate/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/shoplocate/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `SHOPLOCATE_LOG_LEVEL`, `SHOPLOCATE_NOMINATIM_URL`)
- an external YAML file via `SHOPLOCATE_CONFIG_PATH`

Design rule:
- Tuning knobs (debounce window, minimum query length, provider URLs) live in YAML,
  not hard-coded in the coordinator classes.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from shoplocate.core.env import load_dotenv_if_present
from shoplocate.errors import ConfigError


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `shoplocate.config`."""
    text = resources.files("shoplocate.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "shoplocate"
    http_timeout_seconds: float = 10
    log_level: str = "INFO"


class SearchSettings(BaseModel):
    min_query_length: int = Field(2, ge=1)
    debounce_seconds: float = Field(0.3, ge=0)
    max_results: int = Field(8, ge=1, le=50)


class NominatimSettings(BaseModel):
    base_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "shoplocate/0.1.0 (+https://local)"
    country_codes: list[str] = Field(default_factory=list)
    language: str | None = None


class DeviceSettings(BaseModel):
    """Position reported by the configured (non-GPS) location capability."""

    permission: Literal["prompt", "granted", "denied"] = "prompt"
    grant_on_request: bool = True
    latitude: float | None = None
    longitude: float | None = None


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    nominatim: NominatimSettings = Field(default_factory=NominatimSettings)
    device: DeviceSettings = Field(default_factory=DeviceSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("SHOPLOCATE_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    nominatim_url = os.getenv("SHOPLOCATE_NOMINATIM_URL")
    if nominatim_url:
        data.setdefault("nominatim", {})["base_url"] = nominatim_url

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("SHOPLOCATE_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
