"""Element property registry.

Static, versioned per-element data used by the selector, the synthesizer,
the validator and the extraction step. The registry is immutable; tests and
callers that need a different element set build their own
:class:`ElementTable` and inject it.

Sources:
    * Pauling electronegativities.
    * Covalent radii: Cordero et al., Dalton Trans. 2008 (sp3 carbon, low-spin Fe).
    * Standard atomic weights (IUPAC, abridged).
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping

__all__ = [
    "ElementProperties",
    "ElementTable",
    "DEFAULT_ELEMENTS",
    "TABLE_VERSION",
    "lookup",
]

TABLE_VERSION = "2025.1"


@dataclass(frozen=True, slots=True)
class ElementProperties:
    symbol: str
    name: str
    atomic_number: int
    atomic_mass: float
    electronegativity: float
    covalent_radius: float
    valences: tuple[int, ...]
    max_bonds: int
    geometries: tuple[str, ...] = ()
    metallic: bool = False

    @property
    def preferred_valence(self) -> int:
        return self.valences[0]


class ElementTable(Mapping[str, ElementProperties]):
    """Read-only mapping symbol -> :class:`ElementProperties`."""

    __slots__ = ("_data", "version")

    def __init__(self, entries, version: str = TABLE_VERSION):
        data: dict[str, ElementProperties] = {}
        for props in entries:
            if props.symbol in data:
                raise ValueError(f"Duplicate element symbol in table: {props.symbol}")
            data[props.symbol] = props
        self._data = MappingProxyType(data)
        self.version = version

    def __getitem__(self, symbol: str) -> ElementProperties:
        return self._data[symbol]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ElementTable(version={self.version!r}, symbols={len(self)})"

    def lookup(self, symbol: str) -> ElementProperties | None:
        return self._data.get(symbol)

    def missing(self, symbols) -> list[str]:
        """Symbols from ``symbols`` that are not in this table (sorted, unique)."""
        return sorted({s for s in symbols if s not in self._data})

    def extended(self, *entries: ElementProperties, version: str | None = None) -> "ElementTable":
        """Return a new table with ``entries`` added or replaced."""
        merged = dict(self._data)
        for props in entries:
            merged[props.symbol] = props
        return ElementTable(merged.values(), version=version or f"{self.version}+local")


def _e(symbol, name, z, mass, en, rcov, valences, max_bonds, geometries, metallic=False):
    return ElementProperties(
        symbol=symbol,
        name=name,
        atomic_number=z,
        atomic_mass=mass,
        electronegativity=en,
        covalent_radius=rcov,
        valences=tuple(valences),
        max_bonds=max_bonds,
        geometries=tuple(geometries),
        metallic=metallic,
    )


_ENTRIES = (
    _e("H", "Hydrogen", 1, 1.008, 2.20, 0.31, [1], 1, ["linear"]),
    _e("Li", "Lithium", 3, 6.94, 0.98, 1.28, [1], 4, ["linear", "tetrahedral"], metallic=True),
    _e("B", "Boron", 5, 10.81, 2.04, 0.84, [3], 4, ["trigonal_planar", "tetrahedral"]),
    _e("C", "Carbon", 6, 12.011, 2.55, 0.76, [4], 4, ["tetrahedral", "trigonal_planar", "linear"]),
    _e("N", "Nitrogen", 7, 14.007, 3.04, 0.71, [3, 5], 4, ["trigonal_pyramidal", "trigonal_planar", "linear"]),
    _e("O", "Oxygen", 8, 15.999, 3.44, 0.66, [2], 2, ["bent", "linear"]),
    _e("F", "Fluorine", 9, 18.998, 3.98, 0.57, [1], 1, ["linear"]),
    _e("Na", "Sodium", 11, 22.990, 0.93, 1.66, [1], 6, ["linear", "octahedral"], metallic=True),
    _e("Mg", "Magnesium", 12, 24.305, 1.31, 1.41, [2], 6, ["linear", "octahedral"], metallic=True),
    _e("Al", "Aluminium", 13, 26.982, 1.61, 1.21, [3], 6, ["trigonal_planar", "tetrahedral", "octahedral"], metallic=True),
    _e("Si", "Silicon", 14, 28.085, 1.90, 1.11, [4], 6, ["tetrahedral", "octahedral"]),
    _e("P", "Phosphorus", 15, 30.974, 2.19, 1.07, [3, 5], 5, ["trigonal_pyramidal", "trigonal_bipyramidal"]),
    _e("S", "Sulfur", 16, 32.06, 2.58, 1.05, [2, 4, 6], 6, ["bent", "tetrahedral", "octahedral"]),
    _e("Cl", "Chlorine", 17, 35.45, 3.16, 0.99, [1, 3, 5, 7], 4, ["linear", "tetrahedral"]),
    _e("K", "Potassium", 19, 39.098, 0.82, 2.03, [1], 8, ["linear", "octahedral"], metallic=True),
    _e("Ca", "Calcium", 20, 40.078, 1.00, 1.76, [2], 8, ["linear", "octahedral"], metallic=True),
    _e("Fe", "Iron", 26, 55.845, 1.83, 1.32, [2, 3], 6, ["octahedral", "tetrahedral"], metallic=True),
    _e("Cu", "Copper", 29, 63.546, 1.90, 1.32, [2, 1], 6, ["square_planar", "tetrahedral", "linear"], metallic=True),
    _e("Zn", "Zinc", 30, 65.38, 1.65, 1.22, [2], 6, ["tetrahedral", "octahedral"], metallic=True),
    _e("Br", "Bromine", 35, 79.904, 2.96, 1.20, [1, 3, 5], 5, ["linear"]),
    _e("I", "Iodine", 53, 126.904, 2.66, 1.39, [1, 3, 5, 7], 7, ["linear", "trigonal_bipyramidal", "octahedral"]),
)

DEFAULT_ELEMENTS = ElementTable(_ENTRIES)


def lookup(symbol: str, table: ElementTable | None = None) -> ElementProperties | None:
    """Return the properties of ``symbol`` or ``None`` if it is not tabulated."""
    return (table if table is not None else DEFAULT_ELEMENTS).lookup(symbol)
