from __future__ import annotations

import logging
import os
from typing import Optional, Union

from pythonjsonlogger import jsonlogger

from scviz.core.exceptions import ConfigError

LOG_FORMAT_ENV = "SCVIZ_LOG_FORMAT"
LOG_LEVEL_ENV = "SCVIZ_LOG_LEVEL"

_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ConfigError(f"Unknown log level {level!r}")
    return resolved


def _make_formatter(format_mode: str) -> logging.Formatter:
    if format_mode == "json":
        return jsonlogger.JsonFormatter(_FIELDS)
    if format_mode == "plain":
        return logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    raise ConfigError(f"Unknown log format {format_mode!r}; expected 'json' or 'plain'")


def configure_logging(
        level: Union[int, str, None] = None,
        force_format: Optional[str] = None,
) -> logging.Handler:
    """
    Install one stream handler on the root logger

    Format is picked from force_format, then SCVIZ_LOG_FORMAT, then "json";
    level from the argument (int or name), then SCVIZ_LOG_LEVEL, then INFO.
    Records logged with extra= show up as JSON fields.

    Raises:
        ConfigError: on an unknown format or level name
    """
    format_mode = (force_format or os.getenv(LOG_FORMAT_ENV, "json")).lower()
    formatter = _make_formatter(format_mode)

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    # replaces handlers from earlier calls
    root.handlers.clear()
    root.addHandler(handler)
    return handler
