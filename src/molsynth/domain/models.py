"""Immutable structure model shared by every resolution tier.

A :class:`MolecularStructure` is built in one go by exactly one tier and
never mutated afterwards; derived copies (validity flag, padding) are made
with :func:`dataclasses.replace`.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Mapping

import numpy as np

if TYPE_CHECKING:  # pragma: no cover - typing aid only
    from molsynth.domain.elements import ElementTable

__all__ = [
    "BondOrder",
    "Provenance",
    "Position",
    "Atom",
    "Bond",
    "MolecularStructure",
    "ValidationReport",
]

Position = tuple[float, float, float]


class BondOrder(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"

    @property
    def multiplicity(self) -> int:
        return {"single": 1, "double": 2, "triple": 3}[self.value]


class Provenance(str, Enum):
    """Resolution tier that produced a structure (trust level for callers)."""
    PREDEFINED = "predefined"
    EXTERNAL = "external"
    SYNTHESIZED = "synthesized"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class Atom:
    element: str
    position: Position
    covalent_radius: float
    index: int
    formal_charge: int | None = None
    hybridization: str | None = None


@dataclass(frozen=True, slots=True)
class Bond:
    begin: int
    end: int
    order: BondOrder = BondOrder.SINGLE
    length: float = 0.0

    @property
    def atoms(self) -> tuple[int, int]:
        return self.begin, self.end


@dataclass(frozen=True, slots=True)
class MolecularStructure:
    formula: str
    atoms: tuple[Atom, ...]
    bonds: tuple[Bond, ...]
    geometry: str
    provenance: Provenance
    valid: bool = False
    name: str = ""
    notes: tuple[str, ...] = ()

    @property
    def atom_count(self) -> int:
        return len(self.atoms)

    def census(self) -> dict[str, int]:
        """Element -> number of atoms, recomputed from ``atoms``."""
        return dict(Counter(atom.element for atom in self.atoms))

    def neighbors(self, index: int) -> list[int]:
        out: list[int] = []
        for bond in self.bonds:
            if bond.begin == index:
                out.append(bond.end)
            elif bond.end == index:
                out.append(bond.begin)
        return out

    def degree(self, index: int) -> int:
        return len(self.neighbors(index))

    def coordinates(self) -> np.ndarray:
        """Positions as an ``(n, 3)`` float array."""
        if not self.atoms:
            return np.zeros((0, 3))
        return np.array([atom.position for atom in self.atoms], dtype=float)

    def distance(self, a: int, b: int) -> float:
        xyz = self.coordinates()
        return float(np.linalg.norm(xyz[a] - xyz[b]))

    def bond_angle(self, a: int, vertex: int, c: int) -> float:
        """Angle a-vertex-c in degrees."""
        xyz = self.coordinates()
        v1 = xyz[a] - xyz[vertex]
        v2 = xyz[c] - xyz[vertex]
        cos = float(np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2)))
        return float(np.degrees(np.arccos(np.clip(cos, -1.0, 1.0))))

    def molecular_weight(self, elements: "ElementTable | None" = None) -> float | None:
        """Sum of atomic masses; ``None`` if any element is not tabulated."""
        if elements is None:
            from molsynth.domain.elements import DEFAULT_ELEMENTS as elements
        total = 0.0
        for atom in self.atoms:
            props = elements.lookup(atom.element)
            if props is None:
                return None
            total += props.atomic_mass
        return round(total, 3)


@dataclass(frozen=True, slots=True)
class ValidationReport:
    expected_total: int
    actual_total: int
    mismatches: Mapping[str, tuple[int, int]] = field(default_factory=dict)
    passed: bool = False
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def deficit(self) -> int:
        return self.expected_total - self.actual_total

    def summary(self) -> str:
        if self.passed:
            return f"ok ({self.actual_total} atoms)"
        parts = [f"{el}: expected {exp}, found {act}" for el, (exp, act) in sorted(self.mismatches.items())]
        parts.extend(self.errors)
        return "; ".join(parts) or "failed"
