"""Central (hub) atom selection."""
from __future__ import annotations

from typing import Mapping

from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.errors import AmbiguousStructureError, UnresolvedElementError

__all__ = ["select", "candidate_ranking"]


def candidate_ranking(counts: Mapping[str, int], elements: ElementTable | None = None) -> list[str]:
    """Hub candidates, best first.

    Hydrogen only competes when it is the sole element. Candidates rank by
    lowest electronegativity, then highest max bond count, then symbol.
    """
    table = elements if elements is not None else DEFAULT_ELEMENTS
    if not counts:
        raise AmbiguousStructureError("Cannot select a central atom from an empty count mapping")
    missing = table.missing(counts)
    if missing:
        raise UnresolvedElementError(missing)
    candidates = [s for s in counts if s != "H"] or ["H"]
    return sorted(
        candidates,
        key=lambda s: (table[s].electronegativity, -table[s].max_bonds, s),
    )


def select(counts: Mapping[str, int], elements: ElementTable | None = None) -> str:
    return candidate_ranking(counts, elements)[0]
