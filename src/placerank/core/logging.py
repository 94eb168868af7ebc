"""
Logging setup for PlaceRank entry points (API app, CLI, sweeper script).

The packaged `config/logging.yaml` declares the handlers and the `placerank`
logger tree; `settings.app.log_level` (env `PLACERANK_LOG_LEVEL`) then sets the
level of the root logger, the handlers and every `placerank.*` logger. Third-party
loggers listed in the YAML (uvicorn) keep their own levels.
"""

from __future__ import annotations

import copy
import logging.config
from typing import Any

from placerank.config.settings import get_logging_config, get_settings

PROJECT_LOGGER = "placerank"


def build_logging_config(level: str) -> dict[str, Any]:
    """Return a dictConfig payload with PlaceRank loggers set to `level`."""
    # The YAML mapping is cached; work on a copy.
    config = copy.deepcopy(get_logging_config())
    level = level.upper()

    config.setdefault("root", {})["level"] = level
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict):
            handler["level"] = level
    for name, logger_cfg in config.setdefault("loggers", {}).items():
        if name == PROJECT_LOGGER or name.startswith(PROJECT_LOGGER + "."):
            logger_cfg["level"] = level
    return config


def configure_logging() -> None:
    """Apply the packaged logging config at the configured level."""
    logging.config.dictConfig(build_logging_config(get_settings().app.log_level))
