"""Reference bond lengths keyed by unordered element pair and bond order.

``"C-H"`` and ``"H-C"`` resolve to the same entry. Pairs without a tabulated
value fall back to the sum of the two covalent radii.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.errors import UnresolvedElementError
from molsynth.domain.models import BondOrder

__all__ = [
    "BondLengthTable",
    "DEFAULT_BOND_LENGTHS",
    "pair_key",
]

_ORDER_SYMBOLS = {"-": BondOrder.SINGLE, "=": BondOrder.DOUBLE, "#": BondOrder.TRIPLE}

PairKey = tuple[frozenset, BondOrder]


def pair_key(a: str, b: str, order: BondOrder = BondOrder.SINGLE) -> PairKey:
    return frozenset((a, b)), BondOrder(order)


def _parse_label(label: str) -> PairKey:
    for sym, order in _ORDER_SYMBOLS.items():
        if sym in label:
            a, b = label.split(sym)
            return pair_key(a.strip(), b.strip(), order)
    raise ValueError(f"Bond label without order symbol: {label!r}")


class BondLengthTable:
    """Immutable symmetric bond-length lookup (Å)."""

    __slots__ = ("_data",)

    def __init__(self, entries: Mapping[str, float] | Iterable[tuple[str, float]]):
        items = entries.items() if isinstance(entries, Mapping) else entries
        data: dict[PairKey, float] = {}
        for label, length in items:
            if length <= 0:
                raise ValueError(f"Bond length must be positive: {label}={length}")
            data[_parse_label(label)] = float(length)
        self._data = MappingProxyType(data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, label: str) -> bool:
        return _parse_label(label) in self._data

    def lookup(self, a: str, b: str, order: BondOrder = BondOrder.SINGLE) -> float | None:
        return self._data.get(pair_key(a, b, order))

    def resolve(
        self,
        a: str,
        b: str,
        elements: ElementTable | None = None,
        order: BondOrder = BondOrder.SINGLE,
    ) -> float:
        """Tabulated length, else the sum of covalent radii."""
        length = self.lookup(a, b, order)
        if length is not None:
            return length
        table = elements if elements is not None else DEFAULT_ELEMENTS
        missing = table.missing((a, b))
        if missing:
            raise UnresolvedElementError(missing)
        return round(table[a].covalent_radius + table[b].covalent_radius, 4)


# Single bonds unless marked "=" (double) or "#" (triple).
DEFAULT_BOND_LENGTHS = BondLengthTable(
    {
        "H-H": 0.74, "H-C": 1.09, "H-N": 1.01, "H-O": 0.96, "H-S": 1.34,
        "H-F": 0.92, "H-Cl": 1.27, "H-Br": 1.41, "H-I": 1.61,
        "H-B": 1.19, "H-Si": 1.48, "H-P": 1.42, "H-Li": 1.60, "H-Na": 1.89,
        "C-C": 1.54, "C=C": 1.34, "C#C": 1.20,
        "C-N": 1.47, "C=N": 1.29, "C#N": 1.16,
        "C-O": 1.43, "C=O": 1.23, "C#O": 1.13,
        "C-S": 1.82, "C=S": 1.56, "C-F": 1.35, "C-Cl": 1.77, "C-Br": 1.94, "C-I": 2.14,
        "C-Si": 1.87,
        "N-N": 1.45, "N=N": 1.25, "N#N": 1.10,
        "N-O": 1.36, "N=O": 1.22, "N-F": 1.36, "N-Cl": 1.75,
        "O-O": 1.48, "O=O": 1.21,
        "S-S": 2.05, "S=S": 1.89, "S-O": 1.70, "S=O": 1.43, "S-F": 1.56, "S-Cl": 2.01,
        "P-O": 1.63, "P=O": 1.48, "P-F": 1.57, "P-Cl": 2.04, "P-S": 2.10,
        "Si-O": 1.61, "Si-F": 1.56, "Si-Cl": 2.02,
        "B-F": 1.31, "B-Cl": 1.75, "B-O": 1.36,
        "Al-Cl": 2.06, "Al-F": 1.63,
        "F-F": 1.42, "Cl-Cl": 1.99, "Br-Br": 2.28, "I-I": 2.67,
        "Li-F": 1.56, "Li-Cl": 2.02,
        "Na-Cl": 2.36, "Na-F": 1.93, "Na-Br": 2.50, "Na-I": 2.71,
        "K-Cl": 2.67, "K-F": 2.17, "K-Br": 2.82,
        "Mg-Cl": 2.18, "Mg-O": 1.75, "Mg-F": 1.77,
        "Ca-Cl": 2.48, "Ca-O": 1.82, "Ca-F": 2.02,
        "Fe-Cl": 2.15, "Cu-Cl": 2.05, "Zn-Cl": 2.07,
    }
)
