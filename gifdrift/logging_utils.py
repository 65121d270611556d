"""Logging setup for GifDrift.

``setup_logging`` is called once by the CLI before the Qt application or the
headless simulator starts. It attaches a rotating file handler under the
per-user GifDrift directory and, optionally, a console handler.

Playback clocks and the boundary sweep fire far more often than anyone wants
to read about, so two tools keep the log usable:

- messages tagged ``[playback.trace]`` are dropped unless ``perf`` mode or
  ``GIFDRIFT_PLAYBACK_TRACE=1`` is active;
- :class:`BurstSampler` lets a hot path emit one summary line per window.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import time
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional


DEFAULT_LOG_FILENAME = "gifdrift.log"
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

PLAIN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
KEYED_FORMAT = "ts=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"

TRACE_TAGS = ("[playback.trace]",)
TRACE_ENV = "GIFDRIFT_PLAYBACK_TRACE"


class LogMode(str, Enum):
    """Verbosity presets selected with ``--log-mode``."""

    QUIET = "quiet"    # console shows warnings and errors only
    NORMAL = "normal"
    PERF = "perf"      # force DEBUG and keep trace lines


_active_mode: LogMode = LogMode.NORMAL


def set_log_mode(mode: LogMode | str | None) -> LogMode:
    """Remember the active preset; unknown names fall back to NORMAL."""
    global _active_mode
    if isinstance(mode, LogMode):
        _active_mode = mode
    else:
        try:
            _active_mode = LogMode(str(mode or "normal").lower())
        except ValueError:
            _active_mode = LogMode.NORMAL
    return _active_mode


def get_log_mode() -> LogMode:
    return _active_mode


def is_perf_logging_enabled() -> bool:
    return _active_mode is LogMode.PERF


def _log_dir_candidates() -> Iterable[Path]:
    local_appdata = os.environ.get("LOCALAPPDATA")
    if local_appdata:
        yield Path(local_appdata) / "GifDrift"
    yield Path.home() / ".gifdrift"


def get_default_log_dir() -> Path:
    """First writable per-user directory (%LOCALAPPDATA%/GifDrift, ~/.gifdrift), else cwd."""
    for candidate in _log_dir_candidates():
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        return candidate
    return Path.cwd()


def get_default_log_path() -> Path:
    return get_default_log_dir() / DEFAULT_LOG_FILENAME


def _trace_enabled() -> bool:
    if os.environ.get(TRACE_ENV, "").strip().lower() in ("1", "true", "yes", "on"):
        return True
    return is_perf_logging_enabled()


class _PlaybackTraceFilter(logging.Filter):
    """Suppresses per-tick trace records unless tracing is switched on."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if _trace_enabled():
            return True
        msg = record.msg if isinstance(record.msg, str) else ""
        return not any(tag in msg for tag in TRACE_TAGS)


_TRACE_FILTER = _PlaybackTraceFilter()


def _level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _file_handler(path: Path, formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8"
        )
    except OSError:
        # Unwritable location: console only
        return None
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    *,
    level: str | int = "INFO",
    log_file: Optional[str | Path] = None,
    json_format: bool = False,
    logger_name: Optional[str] = None,
    log_mode: LogMode | str | None = None,
    add_console: bool = True,
) -> logging.Logger:
    """Configure the root (or *logger_name*) logger and return it.

    Args:
        level: DEBUG/INFO/WARNING/ERROR or a numeric level
        log_file: Rotating log file; defaults to the per-user GifDrift directory
        json_format: Single-line ``key=value`` records instead of the plain layout
        logger_name: Configure a named logger instead of the root logger
        log_mode: quiet/normal/perf preset
        add_console: Also log to stderr

    Calling it again only adjusts levels; handlers are never duplicated.
    """
    mode = set_log_mode(log_mode) if log_mode is not None else get_log_mode()
    file_level = _level_number(level)
    if mode is LogMode.PERF:
        file_level = min(file_level, logging.DEBUG)
    console_level = max(file_level, logging.WARNING) if mode is LogMode.QUIET else file_level

    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    if _TRACE_FILTER not in logger.filters:
        logger.addFilter(_TRACE_FILTER)
    logger.setLevel(file_level)

    if logger.handlers:
        for handler in logger.handlers:
            is_console = (isinstance(handler, logging.StreamHandler)
                          and not isinstance(handler, logging.FileHandler))
            handler.setLevel(console_level if is_console else file_level)
        return logger

    formatter = logging.Formatter(KEYED_FORMAT if json_format else PLAIN_FORMAT, datefmt="%H:%M:%S")
    handlers: list[tuple[logging.Handler, int]] = []
    file_handler = _file_handler(Path(log_file) if log_file else get_default_log_path(), formatter)
    if file_handler is not None:
        handlers.append((file_handler, file_level))
    if add_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        handlers.append((console, console_level))
    for handler, handler_level in handlers:
        handler.setLevel(handler_level)
        handler.addFilter(_TRACE_FILTER)
        logger.addHandler(handler)
    return logger


class BurstSampler:
    """Counts events and reports the total once per time window.

    Example:
        sampler = BurstSampler(interval_s=5.0)
        total = sampler.record()
        if total is not None:
            logger.debug("%d playback ticks", total)
    """

    def __init__(self, interval_s: float = 2.0) -> None:
        self.interval_s = max(0.1, float(interval_s))
        self._count = 0
        self._deadline = time.monotonic() + self.interval_s

    def record(self, amount: int = 1) -> Optional[int]:
        """Add *amount* events; returns the window total when the window has closed."""
        self._count += max(0, amount)
        now = time.monotonic()
        if now < self._deadline:
            return None
        return self._reset(now)

    def flush(self) -> int:
        """Return the pending count now and start a new window."""
        return self._reset(time.monotonic())

    def _reset(self, now: float) -> int:
        total, self._count = self._count, 0
        self._deadline = now + self.interval_s
        return total
