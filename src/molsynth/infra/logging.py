"""Logging setup for the molsynth command line and embedding applications.

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
attached here, by the CLI or by an application that wants molsynth's format.

Design goals:
    * At most one file handler and one console handler on the root logger.
    * Header lines emitted once per session when de-duplication is enabled.

Environment variables:
    MOLSYNTH_LOG_LEVEL      Override root log level (default: INFO).
    MOLSYNTH_DEDUP_HEADERS  Suppress repeated identical header lines.

Public API:
    setup_logging(log_path=None, also_console=True, suppress_initial_message=False)
    log_run_header(command)
    enable_header_dedup(enable=True)
    reset_logging()
"""
from __future__ import annotations

import logging
import os
from logging.handlers import WatchedFileHandler
from pathlib import Path
from threading import RLock

from molsynth import __version__

_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
_TRUTHY = {"1", "true", "yes", "on"}

_header_cache: set[str] = set()
_dedup_headers_enabled: bool = str(os.getenv("MOLSYNTH_DEDUP_HEADERS", "0")).lower() in _TRUTHY
_header_lock = RLock()


def enable_header_dedup(enable: bool = True) -> None:
    """Enable/disable in-process header de-duplication.

    While enabled, a header line already emitted by :func:`log_run_header`
    is suppressed until :func:`reset_logging` clears the cache.
    """
    global _dedup_headers_enabled
    with _header_lock:
        _dedup_headers_enabled = bool(enable)
        if not enable:
            _header_cache.clear()


class ResilientWatchedFileHandler(WatchedFileHandler):
    """WatchedFileHandler that recreates a deleted log directory once.

    Temporary directories used by tests may vanish while the handler is still
    attached to the root logger; the next record would otherwise fail with
    FileNotFoundError inside ``emit``.
    """

    def emit(self, record):  # type: ignore[override]
        try:
            super().emit(record)
            return
        except FileNotFoundError:
            Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        try:
            super().emit(record)
        except Exception:
            self.handleError(record)


def _is_console(h: logging.Handler) -> bool:
    # exact type: capture handlers installed by test runners subclass StreamHandler
    return type(h) is logging.StreamHandler


def setup_logging(log_path=None, also_console: bool = True, suppress_initial_message: bool = False) -> None:
    """Configure the root logger.

    Parameters
    ----------
    log_path : str | Path | None
        Destination log file. ``None`` keeps logging console-only and removes
        any file handler left from an earlier call.
    also_console : bool, default True
        Ensure exactly one stderr handler; ``False`` removes console handlers.
    suppress_initial_message : bool, default False
        Skip the "Logging initialized" line.

    Behaviour
    ---------
    * File handlers for any other path are removed and closed.
    * A handler for the same file is kept (idempotent).
    * An already more verbose root level is not downgraded.
    """
    root = logging.getLogger()
    env_level = os.getenv("MOLSYNTH_LOG_LEVEL", "INFO").upper()
    desired_level = getattr(logging, env_level, logging.INFO)
    if root.level > desired_level or root.level == logging.NOTSET:
        root.setLevel(desired_level)
    effective_level = logging.getLevelName(root.level)

    path = Path(log_path).resolve() if log_path is not None else None
    existing_same = False
    for h in [h for h in root.handlers if isinstance(h, logging.FileHandler)]:
        existing_path = Path(h.baseFilename)
        if path is not None and existing_path.parent.exists() and existing_path.resolve() == path:
            existing_same = True
            continue
        root.removeHandler(h)
        h.close()

    consoles = [h for h in root.handlers if _is_console(h)]
    if also_console and not consoles:
        ch = logging.StreamHandler()
        ch.setLevel(root.level)
        ch.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(ch)
    elif not also_console:
        for h in consoles:
            root.removeHandler(h)
            h.close()

    if path is not None and not existing_same:
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = ResilientWatchedFileHandler(path, mode="a", encoding="utf-8", delay=False)
        fh.setLevel(root.level)
        fh.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(fh)
        if not suppress_initial_message:
            root.info(f"Logging initialized. Log file: {path} (level={effective_level})")


def log_run_header(command: str) -> None:
    """Emit ``molsynth <version> | cmd=<command>`` through the root logger."""
    header = f"molsynth {__version__} | cmd={command}"
    global _dedup_headers_enabled
    # env switch may be set after import (tests)
    if not _dedup_headers_enabled and str(os.getenv("MOLSYNTH_DEDUP_HEADERS", "0")).lower() in _TRUTHY:
        _dedup_headers_enabled = True
    if _dedup_headers_enabled:
        with _header_lock:
            if header in _header_cache:
                return
            _header_cache.add(header)
    logging.getLogger().info(header)


def reset_logging() -> None:
    """Remove and close every handler on the root logger and named loggers.

    Also clears the header cache so the next session logs its header again.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for name in list(logging.Logger.manager.loggerDict):
        logger = logging.getLogger(name)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
        logger.filters = []
    with _header_lock:
        _header_cache.clear()


__all__ = [
    "ResilientWatchedFileHandler",
    "enable_header_dedup",
    "log_run_header",
    "reset_logging",
    "setup_logging",
]
