"""Error kinds raised by the structure engine.

Only :class:`ParseError` is meant to reach callers of the resolution
pipeline; the remaining kinds are demoted to tier skips there.
"""
from __future__ import annotations

from typing import Iterable

__all__ = [
    "MolsynthError",
    "ParseError",
    "UnresolvedElementError",
    "AmbiguousStructureError",
    "SchemaExtractionError",
    "ResolverError",
]


class MolsynthError(Exception):
    """Base class for all molsynth errors."""


class ParseError(MolsynthError, ValueError):
    """Malformed formula syntax or an unusable element/quantity list."""


class UnresolvedElementError(MolsynthError, LookupError):
    """One or more element symbols are missing from the property table."""

    def __init__(self, symbols: Iterable[str], message: str | None = None):
        self.symbols = tuple(sorted(set(symbols)))
        if message is None:
            message = "Unknown element symbol(s): " + ", ".join(self.symbols)
        super().__init__(message)


class AmbiguousStructureError(MolsynthError, ValueError):
    """The count mapping is empty or contradictory."""


class SchemaExtractionError(MolsynthError, ValueError):
    """Collaborator text holds no usable structure object."""


class ResolverError(MolsynthError, RuntimeError):
    """The external resolver call itself failed."""
