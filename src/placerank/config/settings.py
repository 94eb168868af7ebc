# src/placerank/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/placerank/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `PLACERANK_DATA_DIR`, `PLACERANK_LOG_LEVEL`)
- an external YAML file via `PLACERANK_CONFIG_PATH`

Design rule:
- Tuning knobs live in YAML, not hard-coded in business logic.
- Category score bands are NOT settings; they are fixed in `placerank.scoring.bands`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from placerank.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `placerank.config`."""
    text = resources.files("placerank.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "PlaceRank"
    timezone: str = "UTC"
    log_level: str = "INFO"


class StorageSettings(BaseModel):
    dir: str = ".data/placerank"
    session_ttl_seconds: int = Field(60 * 60 * 24, ge=1)


class GeographySettings(BaseModel):
    catalog_path: str = "data/geography.json"


class RankingSettings(BaseModel):
    collision_epsilon: float = Field(0.0001, gt=0)
    boundary_step: float = Field(1.0, ge=0)
    default_category: Literal["Bad", "Mid", "Good"] = "Good"


class SweeperSettings(BaseModel):
    interval_seconds: float = Field(60 * 15, gt=0)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    geography: GeographySettings = Field(default_factory=GeographySettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    sweeper: SweeperSettings = Field(default_factory=SweeperSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Only these keys can be set from the environment.
    """
    load_dotenv_if_present()
    data = dict(data)
    data_dir = os.getenv("PLACERANK_DATA_DIR")
    if data_dir:
        data.setdefault("storage", {})["dir"] = data_dir

    log_level = os.getenv("PLACERANK_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    geography_path = os.getenv("PLACERANK_GEOGRAPHY_PATH")
    if geography_path:
        data.setdefault("geography", {})["catalog_path"] = geography_path

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("PLACERANK_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
