"""Census validation and single-pass padding of candidate structures."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Mapping

import numpy as np

from molsynth.domain.bond_lengths import DEFAULT_BOND_LENGTHS, BondLengthTable
from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.errors import UnresolvedElementError
from molsynth.domain.models import Atom, Bond, BondOrder, MolecularStructure, ValidationReport

__all__ = ["validate", "pad_structure", "census_diff", "pick_hub", "LENGTH_WARN_ANGSTROM"]

logger = logging.getLogger(__name__)

# declared vs. measured bond length (Å) above which a finding is reported
LENGTH_WARN_ANGSTROM = 0.1

# Axis and cube-diagonal directions tried when placing a pad atom.
_CANDIDATES = np.vstack([
    np.eye(3),
    -np.eye(3),
    np.array([[sx, sy, sz] for sx in (1, -1) for sy in (1, -1) for sz in (1, -1)], dtype=float) / np.sqrt(3.0),
])


def census_diff(census: Mapping[str, int], expected: Mapping[str, int]) -> dict[str, tuple[int, int]]:
    """Element -> (expected, actual) for every element whose counts differ."""
    out = {}
    for symbol in sorted(set(census) | set(expected)):
        exp, act = expected.get(symbol, 0), census.get(symbol, 0)
        if exp != act:
            out[symbol] = (exp, act)
    return out


def _bond_findings(structure: MolecularStructure, elements: ElementTable) -> tuple[list[str], list[str]]:
    warnings: list[str] = []
    errors: list[str] = []
    n = structure.atom_count
    degree = [0] * n
    order_sum = [0] * n
    for bond in structure.bonds:
        if not (0 <= bond.begin < n and 0 <= bond.end < n):
            errors.append(f"bond {bond.begin}-{bond.end} references a missing atom")
            continue
        if bond.begin == bond.end:
            errors.append(f"self-bond on atom {bond.begin}")
            continue
        for i in bond.atoms:
            degree[i] += 1
            order_sum[i] += bond.order.multiplicity
    for atom in structure.atoms:
        props = elements.lookup(atom.element)
        if props is None or atom.index >= n:
            continue
        if degree[atom.index] > props.max_bonds:
            warnings.append(f"{atom.element}{atom.index} has {degree[atom.index]} bonds (max {props.max_bonds})")
        elif order_sum[atom.index] > max(props.valences):
            warnings.append(
                f"{atom.element}{atom.index} bond orders sum to {order_sum[atom.index]} (valence {max(props.valences)})"
            )
    return warnings, errors


def _length_findings(structure: MolecularStructure, tolerance: float | None) -> tuple[list[str], list[str]]:
    """Declared bond length against the distance between the bonded atoms."""
    warnings: list[str] = []
    errors: list[str] = []
    n = structure.atom_count
    for bond in structure.bonds:
        if bond.length <= 0 or bond.begin == bond.end or not (0 <= bond.begin < n and 0 <= bond.end < n):
            continue
        actual = structure.distance(bond.begin, bond.end)
        deviation = abs(bond.length - actual)
        if deviation <= LENGTH_WARN_ANGSTROM:
            continue
        message = (
            f"bond {bond.begin}-{bond.end} declares {bond.length:.3f} Å, atoms are {actual:.3f} Å apart"
            f" (deviation {deviation:.3f})"
        )
        if tolerance is not None and deviation > tolerance:
            errors.append(message)
        else:
            warnings.append(message)
    return warnings, errors


def validate(
    structure: MolecularStructure,
    expected_counts: Mapping[str, int],
    elements: ElementTable | None = None,
    length_tolerance: float | None = None,
) -> ValidationReport:
    """Diff the structure's atom census against ``expected_counts``.

    Passes only when every element count matches and the bond list is
    structurally sound. Bond-degree and valence overflows are reported as
    warnings and do not fail the report. A declared bond length more than
    ``LENGTH_WARN_ANGSTROM`` away from the actual atom distance is a warning,
    or an error once the deviation exceeds ``length_tolerance``.
    """
    table = elements if elements is not None else DEFAULT_ELEMENTS
    mismatches = census_diff(structure.census(), expected_counts)
    warnings, errors = _bond_findings(structure, table)
    length_warnings, length_errors = _length_findings(structure, length_tolerance)
    warnings += length_warnings
    errors += length_errors
    report = ValidationReport(
        expected_total=sum(expected_counts.values()),
        actual_total=structure.atom_count,
        mismatches=mismatches,
        passed=not mismatches and not errors,
        warnings=tuple(warnings),
        errors=tuple(errors),
    )
    logger.debug("[validate] %s (%s): %s", structure.formula, structure.provenance.value, report.summary())
    return report


def pick_hub(structure: MolecularStructure) -> int | None:
    """Index of the atom with the most bonds; lowest index wins ties."""
    if not structure.atoms:
        return None
    return max(range(structure.atom_count), key=lambda i: (structure.degree(i), -i))


def _free_direction(structure: MolecularStructure, hub: int) -> np.ndarray:
    xyz = structure.coordinates()
    existing = []
    for j in structure.neighbors(hub):
        v = xyz[j] - xyz[hub]
        norm = np.linalg.norm(v)
        if norm > 0:
            existing.append(v / norm)
    if not existing:
        return _CANDIDATES[0]
    # largest angular clearance = smallest worst-case cosine
    worst = (_CANDIDATES @ np.array(existing).T).max(axis=1)
    return _CANDIDATES[int(np.argmin(worst))]


def _pad_element(deficits: Mapping[str, int], default_element: str) -> str:
    if deficits.get(default_element, 0) > 0:
        return default_element
    return sorted(deficits, key=lambda s: (-deficits[s], s))[0]


def pad_structure(
    structure: MolecularStructure,
    expected_counts: Mapping[str, int],
    elements: ElementTable | None = None,
    bond_lengths: BondLengthTable | None = None,
    max_padding: int = 1,
    default_element: str = "H",
    round_digits: int = 6,
) -> MolecularStructure | None:
    """Add missing atoms to an under-populated structure.

    Returns ``None`` when padding does not apply: the structure is not
    strictly smaller than expected, some element is over-represented, or the
    deficit exceeds ``max_padding``. The caller re-validates the result.
    """
    table = elements if elements is not None else DEFAULT_ELEMENTS
    lengths = bond_lengths if bond_lengths is not None else DEFAULT_BOND_LENGTHS
    census = structure.census()
    if any(census[s] > expected_counts.get(s, 0) for s in census):
        return None
    deficits = {s: n - census.get(s, 0) for s, n in expected_counts.items() if n > census.get(s, 0)}
    missing_total = sum(deficits.values())
    if missing_total == 0 or missing_total > max_padding:
        return None
    unknown = table.missing(deficits)
    if unknown:
        raise UnresolvedElementError(unknown)

    padded = structure
    added: list[str] = []
    for _ in range(missing_total):
        symbol = _pad_element(deficits, default_element)
        deficits[symbol] -= 1
        if deficits[symbol] == 0:
            del deficits[symbol]

        index = padded.atom_count
        hub = pick_hub(padded)
        if hub is None:
            atom = Atom(symbol, (0.0, 0.0, 0.0), table[symbol].covalent_radius, index)
            padded = replace(padded, atoms=padded.atoms + (atom,))
        else:
            hub_atom = padded.atoms[hub]
            length = lengths.resolve(hub_atom.element, symbol, table)
            xyz = np.asarray(hub_atom.position, dtype=float) + _free_direction(padded, hub) * length
            position = tuple(round(float(v), round_digits) + 0.0 for v in xyz)
            atom = Atom(symbol, position, table[symbol].covalent_radius, index)
            bond = Bond(hub, index, BondOrder.SINGLE, round(length, 4))
            padded = replace(padded, atoms=padded.atoms + (atom,), bonds=padded.bonds + (bond,))
        added.append(symbol)

    logger.info("[validate] padded %s with %s", structure.formula, ", ".join(added))
    return replace(padded, notes=padded.notes + (f"padded: +{''.join(added)}",))
