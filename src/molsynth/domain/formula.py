"""Chemical formula parsing.

Public API:
    * parse(formula) -> FormulaCount
    * from_quantities(items) -> FormulaCount
    * format_formula(counts) -> str        (Hill notation)
    * normalize_formula(text) -> str

Parsing is syntax-only: element symbols that are not in the property table
are accepted here and rejected later by the selector or the synthesizer.
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from molsynth.domain.errors import ParseError

__all__ = [
    "FormulaCount",
    "parse",
    "from_quantities",
    "format_formula",
    "hill_order",
    "normalize_formula",
]

logger = logging.getLogger(__name__)

_ALLOWED = re.compile(r"^[A-Za-z0-9()]+$")
_SYMBOL = re.compile(r"[A-Z][a-z]?")
_SYMBOL_ONLY = re.compile(r"^[A-Z][a-z]?$")
_DIGITS = re.compile(r"\d+")
_SUBSCRIPTS = str.maketrans("₀₁₂₃₄₅₆₇₈₉", "0123456789")


class FormulaCount(Mapping[str, int]):
    """Immutable element symbol -> positive count mapping.

    Equality ignores insertion order and also holds against plain dicts.
    """

    __slots__ = ("_data",)

    def __init__(self, counts: Mapping[str, int] | Iterable[tuple[str, int]] = ()):
        items = counts.items() if isinstance(counts, Mapping) else counts
        data: dict[str, int] = {}
        for symbol, n in items:
            if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
                raise ValueError(f"Count for {symbol!r} must be a positive integer, got {n!r}")
            data[symbol] = data.get(symbol, 0) + n
        self._data = MappingProxyType(data)

    def __getitem__(self, symbol: str) -> int:
        return self._data[symbol]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{s!r}: {self._data[s]}" for s in hill_order(self._data))
        return f"FormulaCount({{{inner}}})"

    @property
    def total(self) -> int:
        return sum(self._data.values())

    def expand(self) -> list[str]:
        """One symbol per atom, in Hill order."""
        out: list[str] = []
        for symbol in hill_order(self._data):
            out.extend([symbol] * self._data[symbol])
        return out

    def hill_formula(self) -> str:
        return format_formula(self)


def normalize_formula(text: str) -> str:
    """Strip whitespace and map Unicode subscript digits to ASCII."""
    if text is None:
        raise ParseError("Formula must be a string, got None")
    return "".join(str(text).split()).translate(_SUBSCRIPTS)


class _Parser:
    """Recursive descent over element tokens and parenthesised groups."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self) -> Counter:
        counts = self._sequence(depth=0)
        if self.pos != len(self.text):
            raise ParseError(f"Unmatched ')' at position {self.pos} in {self.text!r}")
        return counts

    def _sequence(self, depth: int) -> Counter:
        counts: Counter = Counter()
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "(":
                opened_at = self.pos
                self.pos += 1
                inner = self._sequence(depth + 1)
                if self.pos >= len(self.text) or self.text[self.pos] != ")":
                    raise ParseError(f"Unmatched '(' at position {opened_at} in {self.text!r}")
                self.pos += 1
                if not inner:
                    raise ParseError(f"Empty group at position {opened_at} in {self.text!r}")
                factor = self._multiplier()
                for symbol, n in inner.items():
                    counts[symbol] += n * factor
            elif ch == ")":
                if depth == 0:
                    raise ParseError(f"Unmatched ')' at position {self.pos} in {self.text!r}")
                return counts
            elif ch.isupper():
                match = _SYMBOL.match(self.text, self.pos)
                self.pos = match.end()
                counts[match.group(0)] += self._multiplier()
            elif ch.isdigit():
                raise ParseError(
                    f"Multiplier without a preceding element or group at position {self.pos} in {self.text!r}"
                )
            else:
                raise ParseError(f"Unexpected lowercase letter {ch!r} at position {self.pos} in {self.text!r}")
        return counts

    def _multiplier(self) -> int:
        match = _DIGITS.match(self.text, self.pos)
        if match is None:
            return 1
        self.pos = match.end()
        value = int(match.group(0))
        if value == 0:
            raise ParseError(f"Zero multiplier at position {match.start()} in {self.text!r}")
        return value


def parse(formula: str) -> FormulaCount:
    """Parse ``formula`` into element counts.

    >>> dict(parse("Fe2(SO4)3"))
    {'Fe': 2, 'S': 3, 'O': 12}
    """
    text = normalize_formula(formula)
    if not text:
        raise ParseError("Empty formula")
    if not _ALLOWED.match(text):
        bad = sorted({c for c in text if not (c.isascii() and (c.isalnum() or c in "()"))})
        raise ParseError(f"Invalid character(s) {''.join(bad)!r} in formula {formula!r}")
    counts = _Parser(text).parse()
    logger.debug("[parse] %s -> %s", text, dict(counts))
    return FormulaCount(counts)


def from_quantities(items: Mapping[str, int] | Iterable[tuple[str, int]]) -> FormulaCount:
    """Build counts from an explicit element -> quantity list.

    Repeated symbols add up. Used when the caller already knows the
    composition and no formula string needs parsing.
    """
    pairs = list(items.items() if isinstance(items, Mapping) else items)
    if not pairs:
        raise ParseError("Empty element/quantity list")
    counts: Counter = Counter()
    for entry in pairs:
        try:
            symbol, quantity = entry
        except (TypeError, ValueError) as exc:
            raise ParseError(f"Expected (symbol, quantity) pair, got {entry!r}") from exc
        if not isinstance(symbol, str) or not _SYMBOL_ONLY.match(symbol):
            raise ParseError(f"Malformed element symbol {symbol!r}")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ParseError(f"Quantity for {symbol} must be a positive integer, got {quantity!r}")
        counts[symbol] += quantity
    return FormulaCount(counts)


def hill_order(symbols: Iterable[str]) -> list[str]:
    """Carbon first, hydrogen second, rest alphabetical; alphabetical without carbon."""
    unique = sorted(set(symbols))
    if "C" not in unique:
        return unique
    head = ["C"] + (["H"] if "H" in unique else [])
    return head + [s for s in unique if s not in ("C", "H")]


def format_formula(counts: Mapping[str, int]) -> str:
    """Render ``counts`` in Hill notation, e.g. ``{"O": 1, "H": 2}`` -> ``"H2O"``."""
    return "".join(f"{s}{counts[s] if counts[s] > 1 else ''}" for s in hill_order(counts))
