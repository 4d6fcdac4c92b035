from dataclasses import replace

import pytest

from molsynth.domain.central_atom import candidate_ranking, select
from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.errors import AmbiguousStructureError, UnresolvedElementError
from molsynth.domain.formula import parse


@pytest.mark.parametrize(
    "counts,hub",
    [
        ({"C": 1, "H": 4}, "C"),
        ({"H": 2, "O": 1}, "O"),
        ({"H": 4}, "H"),
        ({"Na": 1, "Cl": 1}, "Na"),
        ({"H": 2, "S": 1, "O": 4}, "S"),
        ({"Fe": 2, "S": 3, "O": 12}, "Fe"),
    ],
)
def test_select(counts, hub):
    assert select(counts) == hub


def test_select_accepts_parsed_counts():
    assert select(parse("PCl5")) == "P"


def test_empty_counts_are_ambiguous():
    with pytest.raises(AmbiguousStructureError):
        select({})


def test_unknown_symbol_raises_with_symbols():
    with pytest.raises(UnresolvedElementError) as exc:
        select({"Xx": 1, "Qq": 2, "H": 1})
    assert exc.value.symbols == ("Qq", "Xx")


def test_tie_breaks_on_max_bonds_then_symbol():
    c = DEFAULT_ELEMENTS["C"]
    table = ElementTable([
        replace(c, symbol="Aa", max_bonds=2),
        replace(c, symbol="Bb", max_bonds=4),
        replace(c, symbol="Cc", max_bonds=4),
    ])
    assert candidate_ranking({"Aa": 1, "Cc": 1, "Bb": 1}, table) == ["Bb", "Cc", "Aa"]


def test_injected_table_restricts_known_elements(small_elements):
    with pytest.raises(UnresolvedElementError):
        select({"Na": 1, "Cl": 1}, small_elements)
