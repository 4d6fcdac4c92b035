"""Predefined structures for well-known compounds.

Coordinates are gas-phase experimental geometries (Å) with the heaviest or
central atom at the origin. Entries are keyed by their Hill formula; lookup
also accepts any spelling that parses to the same counts (``"OH2"``).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.errors import ParseError
from molsynth.domain.formula import format_formula, normalize_formula, parse
from molsynth.domain.models import Atom, Bond, BondOrder, MolecularStructure, Provenance

__all__ = [
    "StructureEntry",
    "StructureLibrary",
    "DEFAULT_LIBRARY",
    "COMMON_NAMES",
    "common_name",
]

logger = logging.getLogger(__name__)

# Keys are Hill formulas.
COMMON_NAMES: Mapping[str, str] = MappingProxyType({
    "H2O": "water",
    "CO2": "carbon dioxide",
    "CH4": "methane",
    "H3N": "ammonia",
    "H3P": "phosphine",
    "ClNa": "sodium chloride",
    "ClH": "hydrogen chloride",
    "H2O4S": "sulfuric acid",
    "O2": "oxygen",
    "N2": "nitrogen",
    "H2": "hydrogen",
    "Cl2": "chlorine",
    "Cl2Mg": "magnesium chloride",
    "CaCl2": "calcium chloride",
    "C2H6": "ethane",
    "C2H4": "ethylene",
    "C2H2": "acetylene",
    "C6H6": "benzene",
    "C2H6O": "ethanol",
    "C2H4O2": "acetic acid",
    "C6H12O6": "glucose",
    "C8H18": "octane",
    "CH4O": "methanol",
    "CCl4": "carbon tetrachloride",
    "CaCO3": "calcium carbonate",
    "H5NO": "ammonium hydroxide",
    "HNaO": "sodium hydroxide",
    "ClK": "potassium chloride",
    "H2O2": "hydrogen peroxide",
    "HNO3": "nitric acid",
    "BF3": "boron trifluoride",
    "Cl5P": "phosphorus pentachloride",
    "F6S": "sulfur hexafluoride",
})


def common_name(formula: str) -> str | None:
    """Common name for ``formula`` in any spelling, or ``None``."""
    try:
        key = format_formula(parse(formula))
    except ParseError:
        return None
    return COMMON_NAMES.get(key)


@dataclass(frozen=True, slots=True)
class StructureEntry:
    """Compact hand-written description of one predefined structure."""
    formula: str
    geometry: str
    atoms: tuple[tuple[str, tuple[float, float, float]], ...]
    bonds: tuple[tuple[int, int, BondOrder], ...]
    charges: tuple[int | None, ...] = ()
    hybridization: tuple[str | None, ...] = ()

    def build(self, elements: ElementTable) -> MolecularStructure:
        atoms = []
        for i, (symbol, position) in enumerate(self.atoms):
            charge = self.charges[i] if i < len(self.charges) else None
            hyb = self.hybridization[i] if i < len(self.hybridization) else None
            atoms.append(Atom(symbol, position, elements[symbol].covalent_radius, i, charge, hyb))
        bonds = tuple(
            Bond(a, b, order, round(math.dist(self.atoms[a][1], self.atoms[b][1]), 4))
            for a, b, order in self.bonds
        )
        return MolecularStructure(
            formula=self.formula,
            atoms=tuple(atoms),
            bonds=bonds,
            geometry=self.geometry,
            provenance=Provenance.PREDEFINED,
            name=common_name(self.formula) or self.formula,
        )


S, D, T = BondOrder.SINGLE, BondOrder.DOUBLE, BondOrder.TRIPLE
_C = 0.6276  # CH4: 1.087 / sqrt(3)

_ENTRIES = (
    StructureEntry(
        "H2O", "bent",
        (("O", (0.0, 0.0, 0.0)), ("H", (0.7570, 0.5859, 0.0)), ("H", (-0.7570, 0.5859, 0.0))),
        ((0, 1, S), (0, 2, S)),
        hybridization=("sp3",),
    ),
    StructureEntry(
        "CO2", "linear",
        (("C", (0.0, 0.0, 0.0)), ("O", (1.1600, 0.0, 0.0)), ("O", (-1.1600, 0.0, 0.0))),
        ((0, 1, D), (0, 2, D)),
        hybridization=("sp",),
    ),
    StructureEntry(
        "CH4", "tetrahedral",
        (
            ("C", (0.0, 0.0, 0.0)),
            ("H", (_C, _C, _C)),
            ("H", (-_C, -_C, _C)),
            ("H", (-_C, _C, -_C)),
            ("H", (_C, -_C, -_C)),
        ),
        ((0, 1, S), (0, 2, S), (0, 3, S), (0, 4, S)),
        hybridization=("sp3",),
    ),
    StructureEntry(
        "NH3", "trigonal_pyramidal",
        (
            ("N", (0.0, 0.0, 0.0)),
            ("H", (0.9373, 0.0, -0.3815)),
            ("H", (-0.4687, 0.8117, -0.3815)),
            ("H", (-0.4687, -0.8117, -0.3815)),
        ),
        ((0, 1, S), (0, 2, S), (0, 3, S)),
        hybridization=("sp3",),
    ),
    # H-P-H 93.5 degrees
    StructureEntry(
        "PH3", "trigonal_pyramidal",
        (
            ("P", (0.0, 0.0, 0.0)),
            ("H", (1.1943, 0.0, -0.7682)),
            ("H", (-0.5971, 1.0343, -0.7682)),
            ("H", (-0.5971, -1.0343, -0.7682)),
        ),
        ((0, 1, S), (0, 2, S), (0, 3, S)),
        hybridization=("sp3",),
    ),
    # staggered, C-C along z, H-C-C 111 degrees
    StructureEntry(
        "C2H6", "tetrahedral",
        (
            ("C", (0.0, 0.0, 0.77)),
            ("C", (0.0, 0.0, -0.77)),
            ("H", (1.0176, 0.0, 1.1606)),
            ("H", (-0.5088, 0.8813, 1.1606)),
            ("H", (-0.5088, -0.8813, 1.1606)),
            ("H", (0.5088, 0.8813, -1.1606)),
            ("H", (-1.0176, 0.0, -1.1606)),
            ("H", (0.5088, -0.8813, -1.1606)),
        ),
        ((0, 1, S), (0, 2, S), (0, 3, S), (0, 4, S), (1, 5, S), (1, 6, S), (1, 7, S)),
        hybridization=("sp3", "sp3"),
    ),
    StructureEntry(
        "NaCl", "linear",
        (("Na", (0.0, 0.0, 0.0)), ("Cl", (2.3609, 0.0, 0.0))),
        ((0, 1, S),),
        charges=(1, -1),
    ),
    StructureEntry(
        "HCl", "linear",
        (("Cl", (0.0, 0.0, 0.0)), ("H", (1.2746, 0.0, 0.0))),
        ((0, 1, S),),
    ),
    # C2 conformer: two S=O, two S-OH
    StructureEntry(
        "H2SO4", "tetrahedral",
        (
            ("S", (0.0, 0.0, 0.0)),
            ("O", (1.2514, 0.0, 0.6754)),
            ("O", (-1.2514, 0.0, 0.6754)),
            ("O", (0.0, 1.2167, -0.9985)),
            ("O", (0.0, -1.2167, -0.9985)),
            ("H", (0.9199, 1.4546, -1.1938)),
            ("H", (-0.9199, -1.4546, -1.1938)),
        ),
        ((0, 1, D), (0, 2, D), (0, 3, S), (0, 4, S), (3, 5, S), (4, 6, S)),
        hybridization=("sp3",),
    ),
    StructureEntry(
        "O2", "linear",
        (("O", (0.0, 0.0, 0.0)), ("O", (1.2075, 0.0, 0.0))),
        ((0, 1, D),),
    ),
    StructureEntry(
        "N2", "linear",
        (("N", (0.0, 0.0, 0.0)), ("N", (1.0977, 0.0, 0.0))),
        ((0, 1, T),),
    ),
    StructureEntry(
        "MgCl2", "linear",
        (("Mg", (0.0, 0.0, 0.0)), ("Cl", (2.1790, 0.0, 0.0)), ("Cl", (-2.1790, 0.0, 0.0))),
        ((0, 1, S), (0, 2, S)),
    ),
    StructureEntry(
        "CaCl2", "linear",
        (("Ca", (0.0, 0.0, 0.0)), ("Cl", (2.4830, 0.0, 0.0)), ("Cl", (-2.4830, 0.0, 0.0))),
        ((0, 1, S), (0, 2, S)),
    ),
    StructureEntry(
        "H2", "linear",
        (("H", (0.0, 0.0, 0.0)), ("H", (0.7414, 0.0, 0.0))),
        ((0, 1, S),),
    ),
    StructureEntry(
        "Cl2", "linear",
        (("Cl", (0.0, 0.0, 0.0)), ("Cl", (1.9879, 0.0, 0.0))),
        ((0, 1, S),),
    ),
)


class StructureLibrary:
    """Immutable formula -> structure table.

    Structures are built once at construction; lookups hand out the shared
    frozen instances.
    """

    def __init__(self, entries: Iterable[StructureEntry] = _ENTRIES, elements: ElementTable | None = None):
        table = elements if elements is not None else DEFAULT_ELEMENTS
        by_spelling: dict[str, MolecularStructure] = {}
        by_hill: dict[str, MolecularStructure] = {}
        for entry in entries:
            structure = entry.build(table)
            hill = format_formula(parse(entry.formula))
            if hill in by_hill:
                raise ValueError(f"Duplicate library entry for {hill}")
            by_spelling[normalize_formula(entry.formula)] = structure
            by_hill[hill] = structure
        self._by_spelling = MappingProxyType(by_spelling)
        self._by_hill = MappingProxyType(by_hill)

    def __len__(self) -> int:
        return len(self._by_spelling)

    def __contains__(self, formula: str) -> bool:
        return self.lookup(formula) is not None

    def formulas(self) -> list[str]:
        return list(self._by_spelling)

    def lookup(self, formula: str) -> MolecularStructure | None:
        """Exact spelling first, then any formula with the same counts."""
        try:
            key = normalize_formula(formula)
        except ParseError:
            return None
        hit = self._by_spelling.get(key)
        if hit is not None:
            return hit
        try:
            hill = format_formula(parse(key))
        except ParseError:
            return None
        hit = self._by_hill.get(hill)
        if hit is not None:
            logger.debug("[library] %s matched by composition as %s", formula, hit.formula)
        return hit


DEFAULT_LIBRARY = StructureLibrary()
