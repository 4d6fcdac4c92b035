"""Common CLI helpers for molsynth commands."""
from __future__ import annotations
import argparse
import os

from molsynth.domain.errors import ParseError


def add_standard_flags(ap: argparse.ArgumentParser, project: bool = True, config: bool = True, log_console: bool = True):
    if project:
        ap.add_argument("--project", default=os.environ.get("MOLSYNTH_PROJECT_PATH", os.getcwd()),
                        help="Directory searched for molsynth.toml (default: current directory)")
    if config:
        ap.add_argument("--config", help="Optional molsynth.toml overrides (highest precedence)")
    if log_console:
        ap.add_argument("--log-console", action="store_true", help="Echo logs to stderr")
        ap.add_argument("--log-file", help="Append logs to this file")
    return ap


def parse_element_option(token: str) -> tuple[str, int]:
    """``"Cl=2"`` -> ``("Cl", 2)``."""
    symbol, sep, quantity = token.partition("=")
    if not sep or not symbol.strip() or not quantity.strip():
        raise ParseError(f"Expected SYMBOL=COUNT, got {token!r}")
    try:
        return symbol.strip(), int(quantity)
    except ValueError as exc:
        raise ParseError(f"Count in {token!r} is not an integer") from exc
