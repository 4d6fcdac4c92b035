"""VSEPR-style geometry synthesis around a single hub atom.

The hub (see :mod:`molsynth.domain.central_atom`) sits at the origin; every
other atom is a peripheral ligand bonded to it once. Directions come from a
fixed table keyed on the peripheral count ``n``; populations above six are
spread on a widening helix and classified ``complex``.

Lone pairs are not modelled: three ligands are always trigonal planar and
two are always linear. Bent and pyramidal shapes come from the predefined
library only.
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Mapping

import numpy as np

from molsynth.domain.bond_lengths import DEFAULT_BOND_LENGTHS, BondLengthTable
from molsynth.domain.central_atom import select
from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.formula import format_formula
from molsynth.domain.library import common_name
from molsynth.domain.models import Atom, Bond, BondOrder, MolecularStructure, Position, Provenance

__all__ = [
    "GeometrySynthesizer",
    "GEOMETRY_TAGS",
    "HUB_HYBRIDIZATION",
    "geometry_tag",
    "layout_directions",
    "helix_positions",
    "synthesize",
]

logger = logging.getLogger(__name__)

GEOMETRY_TAGS: Mapping[int, str] = {
    0: "monatomic",
    1: "linear",
    2: "linear",
    3: "trigonal_planar",
    4: "tetrahedral",
    5: "trigonal_bipyramidal",
    6: "octahedral",
}
HUB_HYBRIDIZATION: Mapping[int, str] = {2: "sp", 3: "sp2", 4: "sp3", 5: "sp3d", 6: "sp3d2"}
COMPLEX_TAG = "complex"

_S = math.sqrt(3.0) / 2.0
_DIRECTIONS: Mapping[int, np.ndarray] = {
    1: np.array([[1.0, 0.0, 0.0]]),
    2: np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]]),
    3: np.array([[1.0, 0.0, 0.0], [-0.5, _S, 0.0], [-0.5, -_S, 0.0]]),
    4: np.array([[1.0, 1.0, 1.0], [-1.0, -1.0, 1.0], [-1.0, 1.0, -1.0], [1.0, -1.0, -1.0]]) / math.sqrt(3.0),
    # three equatorial, then two axial
    5: np.array([[1.0, 0.0, 0.0], [-0.5, _S, 0.0], [-0.5, -_S, 0.0], [0.0, 0.0, 1.0], [0.0, 0.0, -1.0]]),
    6: np.array([
        [1.0, 0.0, 0.0], [-1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0], [0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0], [0.0, 0.0, -1.0],
    ]),
}


def geometry_tag(n: int) -> str:
    return GEOMETRY_TAGS.get(n, COMPLEX_TAG)


def layout_directions(n: int) -> np.ndarray | None:
    """Unit vectors for ``n`` ligands, or ``None`` when no canonical layout exists."""
    directions = _DIRECTIONS.get(n)
    return None if directions is None else directions.copy()


def helix_positions(lengths: np.ndarray, widening: float = 0.5, pitch: float = 0.6) -> np.ndarray:
    """Evenly spaced azimuths on a helix whose radius grows with the slot index."""
    lengths = np.asarray(lengths, dtype=float)
    n = len(lengths)
    i = np.arange(n, dtype=float)
    phi = 2.0 * np.pi * i / n
    radial = lengths * (1.0 + widening * i / n)
    height = lengths * pitch * (i - (n - 1) / 2.0) / n
    return np.column_stack([radial * np.cos(phi), radial * np.sin(phi), height])


def _as_position(xyz, digits: int) -> Position:
    # "+ 0.0" folds -0.0 so repeated runs print identically
    return tuple(round(float(v), digits) + 0.0 for v in xyz)  # type: ignore[return-value]


class GeometrySynthesizer:
    """Builds ``synthesized`` structures from element counts."""

    def __init__(
        self,
        elements: ElementTable | None = None,
        bond_lengths: BondLengthTable | None = None,
        helix_widening: float = 0.5,
        helix_pitch: float = 0.6,
        round_digits: int = 6,
    ):
        self.elements = elements if elements is not None else DEFAULT_ELEMENTS
        self.bond_lengths = bond_lengths if bond_lengths is not None else DEFAULT_BOND_LENGTHS
        self.helix_widening = helix_widening
        self.helix_pitch = helix_pitch
        self.round_digits = round_digits

    def peripheral_slots(self, counts: Mapping[str, int], hub: str) -> list[str]:
        """Expanded ligand symbols, least electronegative first."""
        remaining = Counter(counts)
        remaining[hub] -= 1
        slots = [s for s, n in remaining.items() for _ in range(n)]
        return sorted(slots, key=lambda s: (self.elements[s].electronegativity, s))

    def synthesize(self, counts: Mapping[str, int], formula: str | None = None) -> MolecularStructure:
        hub = select(counts, self.elements)
        peripheral = self.peripheral_slots(counts, hub)
        n = len(peripheral)
        hub_props = self.elements[hub]

        lengths = np.array([self.bond_lengths.resolve(hub, s, self.elements) for s in peripheral], dtype=float)
        directions = layout_directions(n)
        if n == 0:
            xyz = np.zeros((0, 3))
        elif directions is None:
            xyz = helix_positions(lengths, self.helix_widening, self.helix_pitch)
        else:
            xyz = directions * lengths[:, None]

        hybridization = None
        if hub != "H" and not hub_props.metallic:
            hybridization = HUB_HYBRIDIZATION.get(n)

        atoms = [Atom(hub, (0.0, 0.0, 0.0), hub_props.covalent_radius, 0, hybridization=hybridization)]
        bonds = []
        for index, (symbol, pos) in enumerate(zip(peripheral, xyz), start=1):
            atoms.append(Atom(symbol, _as_position(pos, self.round_digits), self.elements[symbol].covalent_radius, index))
            bonds.append(Bond(0, index, BondOrder.SINGLE, round(float(np.linalg.norm(pos)), 4)))

        echo = formula or format_formula(counts)
        tag = geometry_tag(n)
        logger.debug("[synth] %s hub=%s n=%d geometry=%s", echo, hub, n, tag)
        return MolecularStructure(
            formula=echo,
            atoms=tuple(atoms),
            bonds=tuple(bonds),
            geometry=tag,
            provenance=Provenance.SYNTHESIZED,
            name=common_name(format_formula(counts)) or echo,
        )


_DEFAULT_SYNTHESIZER = GeometrySynthesizer()


def synthesize(counts: Mapping[str, int], formula: str | None = None) -> MolecularStructure:
    return _DEFAULT_SYNTHESIZER.synthesize(counts, formula)
