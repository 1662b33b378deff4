"""
ProposalPilot Logging

Structured logging for migration runs. Module code only ever calls
`logging.getLogger(__name__)`; handlers are installed once by the CLI or the
service through `configure_logging`.
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional


PP_LOG_LEVEL = os.getenv("PP_LOG_LEVEL", "INFO")
PP_LOG_FORMAT = os.getenv("PP_LOG_FORMAT", "text").lower()

ROOT_LOGGER = "proposalpilot"

_EXTRA_FIELDS = ("group_id", "batch", "run_id", "groups", "duration_ms")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Add extra fields if present
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> logging.Logger:
    """
    Install a single stream handler on the package logger.

    Args:
        level: Log level name, defaults to PP_LOG_LEVEL
        json_format: Emit JSON lines, defaults to PP_LOG_FORMAT == "json"

    Returns:
        The package root logger
    """
    level_name = (level or PP_LOG_LEVEL).upper()
    if json_format is None:
        json_format = PP_LOG_FORMAT == "json"

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )
    logger.addHandler(handler)
    return logger
