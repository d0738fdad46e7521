from __future__ import annotations

import logging
import sys
import time
from logging.handlers import TimedRotatingFileHandler

from streakbot.config import LoggingConfig

ROOT_LOGGER_NAME = "streakbot"
TRACE_LEVEL = 5
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

logging.addLevelName(TRACE_LEVEL, "TRACE")


def _level_number(level: str) -> int:
    if level == "TRACE":
        return TRACE_LEVEL
    return logging.getLevelName(level)


def _formatter(config: LoggingConfig) -> logging.Formatter:
    formatter = logging.Formatter(LOG_FORMAT)
    if config.utc:
        formatter.converter = time.gmtime
    return formatter


def configure_logging(config: LoggingConfig) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    level = _level_number(config.level)
    root.setLevel(level)
    root.propagate = False
    formatter = _formatter(config)

    if config.output in {"console", "both"}:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root.addHandler(console)

    if config.output in {"file", "both"}:
        config.directory.mkdir(parents=True, exist_ok=True)
        log_path = config.directory / config.filename
        file_handler: logging.Handler
        if config.daily_rotation:
            file_handler = TimedRotatingFileHandler(
                log_path,
                when="midnight",
                backupCount=config.retention_days,
                encoding="utf-8",
                utc=config.utc,
            )
        else:
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root


def get_logger(name: str) -> logging.Logger:
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
