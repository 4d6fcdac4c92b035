"""Helpers for command-prefixed log lines and selective config summaries.

Provides small helpers to:
    * Emit aligned ``[command][tag] key : value`` tables.
    * Log only the *relevant* subset of the loaded configuration for a command.

Environment variables:
    MOLSYNTH_LOG_TABLE       ``0`` disables the aligned table output.
    MOLSYNTH_LOG_TABLE_MODE  ``table`` (default), ``line`` or ``both``.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Callable, Iterable

StepLogFn = Callable[[str], None]

_FALSY = {"0", "false", "False"}


def _extract(obj: Any, path: str) -> Any:
    cur = obj
    for part in path.split("."):
        if cur is None:
            return None
        if isinstance(cur, dict):
            cur = cur.get(part)
        elif hasattr(cur, part):
            cur = getattr(cur, part)
        else:
            return None
    return cur


def tables_enabled() -> bool:
    return os.environ.get("MOLSYNTH_LOG_TABLE", "1") not in _FALSY


def log_table(step: str, tag: str, title: str, rows: list[tuple[str, Any]], log_fn: StepLogFn | None = None,
              width: int = 40) -> None:
    """Emit ``rows`` as ``[step][tag] key : value`` lines with aligned keys."""
    if not rows:
        return
    emit = log_fn or logging.info
    k_width = min(max(len(k) for k, _ in rows), width)
    emit(f"[{step}][{tag}] ── {title} ──")
    for k, v in rows:
        key = (k[: width - 3] + "...") if len(k) > width else k
        emit(f"[{step}][{tag}] {key.ljust(k_width)} : {v}")


def log_relevant_config(step: str, cfg: Any, fields: Iterable[str], log_fn: StepLogFn | None = None) -> dict[str, Any]:
    """Log only selected dotted attribute paths from cfg.

    Returns the mapping so callers can reuse the values.
    """
    summary = {f: _extract(cfg, f) for f in fields}
    mode = os.environ.get("MOLSYNTH_LOG_TABLE_MODE", "table").lower()
    emit_line = mode in {"both", "line", ""}
    emit_table = mode in {"both", "table"} and tables_enabled()

    if emit_line:
        formatted = ", ".join(f"{k}={v!r}" for k, v in summary.items())
        (log_fn or logging.info)(f"[{step}][cfg] {formatted}")
    if emit_table:
        log_table(step, "cfg", "configuration summary", [(k, repr(v)) for k, v in summary.items()], log_fn)
    return summary


__all__ = [
    "log_relevant_config",
    "log_table",
    "tables_enabled",
]
