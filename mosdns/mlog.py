"""Logger construction for the server."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime

ROOT_LOGGER_NAME = "mosdns"
DEFAULT_LOGGER_NAME = "mosdns.default"

_LEVELS = {
    "": logging.INFO,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "dpanic": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}


@dataclass
class LogConfig:
    """Logger settings.

    level is one of debug, info, warn, error, dpanic, panic, fatal (empty
    means info). file defaults to stderr. production selects JSON output,
    omit_time drops the time from every entry.
    """

    level: str = ""
    file: str = ""
    production: bool = False
    omit_time: bool = False


def _parse_level(text: str) -> int:
    level = _LEVELS.get(text, _LEVELS.get(text.lower()))
    if level is None:
        raise ValueError(f"invalid log level: unrecognized level: {text!r}")
    return level


def _level_name(record: logging.LogRecord) -> str:
    return _LEVEL_NAMES.get(record.levelno, record.levelname.lower())


def _format_time(record: logging.LogRecord) -> str:
    stamp = datetime.fromtimestamp(record.created).astimezone()
    return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(record.msecs):03d}" + stamp.strftime("%z")


class _ConsoleFormatter(logging.Formatter):
    def __init__(self, omit_time: bool) -> None:
        super().__init__()
        self._omit_time = omit_time

    def format(self, record: logging.LogRecord) -> str:
        parts = [] if self._omit_time else [_format_time(record)]
        parts += [_level_name(record), record.name, record.getMessage()]
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict) and fields:
            parts.append(json.dumps(fields, default=str))
        line = "\t".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class _JSONFormatter(logging.Formatter):
    def __init__(self, omit_time: bool) -> None:
        super().__init__()
        self._omit_time = omit_time

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {"level": _level_name(record)}
        if not self._omit_time:
            entry["time"] = _format_time(record)
        entry["logger"] = record.name
        entry["msg"] = record.getMessage()
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            entry.update(fields)
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _configure(
    logger: logging.Logger, handler: logging.Handler, formatter: logging.Formatter, level: int
) -> logging.Logger:
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def new_logger(config: LogConfig) -> logging.Logger:
    """Configure and return the server logger described by config."""
    level = _parse_level(config.level)
    if config.file:
        try:
            handler: logging.Handler = logging.FileHandler(config.file, mode="a", encoding="utf-8")
        except OSError as err:
            raise OSError(f"open log file: {err}") from err
    else:
        handler = logging.StreamHandler(sys.stderr)

    if config.production:
        formatter: logging.Formatter = _JSONFormatter(config.omit_time)
    else:
        formatter = _ConsoleFormatter(config.omit_time)
    return _configure(logging.getLogger(ROOT_LOGGER_NAME), handler, formatter, level)


def _make_default() -> logging.Logger:
    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not logger.handlers:
        _configure(logger, logging.StreamHandler(sys.stderr), _ConsoleFormatter(False), logging.INFO)
    return logger


_default = _make_default()


def default_logger() -> logging.Logger:
    """Return the process-wide logger used before a config is loaded."""
    return _default


def set_level(level: str | int) -> None:
    """Set the level of the default logger, by name or logging number."""
    _default.setLevel(_parse_level(level) if isinstance(level, str) else level)