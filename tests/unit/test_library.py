import itertools

import pytest

from molsynth.domain.formula import parse
from molsynth.domain.library import DEFAULT_LIBRARY, StructureLibrary, common_name, _ENTRIES
from molsynth.domain.models import BondOrder, Provenance
from molsynth.domain.validation import validate

REQUIRED = ("H2O", "CO2", "CH4", "NH3", "PH3", "C2H6", "NaCl", "HCl", "H2SO4", "O2", "N2")


@pytest.mark.parametrize("formula", DEFAULT_LIBRARY.formulas())
def test_every_entry_validates(formula):
    s = DEFAULT_LIBRARY.lookup(formula)
    assert s.provenance is Provenance.PREDEFINED
    report = validate(s, parse(formula))
    assert report.passed, report.summary()
    assert report.warnings == ()
    assert s.atom_count == parse(formula).total


def test_required_entries_present():
    assert set(REQUIRED) <= set(DEFAULT_LIBRARY.formulas())
    assert {"MgCl2", "CaCl2"} <= set(DEFAULT_LIBRARY.formulas())


@pytest.mark.parametrize("spelling", ["H2O", "OH2", "H₂O", " H2O "])
def test_lookup_by_any_spelling(spelling):
    s = DEFAULT_LIBRARY.lookup(spelling)
    assert s is not None and s.name == "water"


@pytest.mark.parametrize("miss", ["C6H6", "H2O(", "", None, "Xx"])
def test_lookup_miss_returns_none(miss):
    assert DEFAULT_LIBRARY.lookup(miss) is None


def test_water_geometry():
    s = DEFAULT_LIBRARY.lookup("H2O")
    assert s.geometry == "bent"
    assert s.bond_angle(1, 0, 2) == pytest.approx(104.5, abs=0.1)
    assert s.distance(0, 1) == pytest.approx(0.957, abs=1e-3)


def test_ammonia_and_methane_angles():
    nh3 = DEFAULT_LIBRARY.lookup("NH3")
    for i, j in itertools.combinations((1, 2, 3), 2):
        assert nh3.bond_angle(i, 0, j) == pytest.approx(106.67, abs=0.1)
    ch4 = DEFAULT_LIBRARY.lookup("CH4")
    for i, j in itertools.combinations((1, 2, 3, 4), 2):
        assert ch4.bond_angle(i, 0, j) == pytest.approx(109.47, abs=0.05)


def test_phosphine_is_flatter_than_ammonia():
    ph3 = DEFAULT_LIBRARY.lookup("PH3")
    assert ph3.geometry == "trigonal_pyramidal"
    assert ph3.name == "phosphine"
    for i, j in itertools.combinations((1, 2, 3), 2):
        assert ph3.bond_angle(i, 0, j) == pytest.approx(93.5, abs=0.1)
    for h in (1, 2, 3):
        assert ph3.distance(0, h) == pytest.approx(1.42, abs=5e-3)


def test_ethane_is_staggered():
    c2h6 = DEFAULT_LIBRARY.lookup("C2H6")
    assert c2h6.name == "ethane"
    assert c2h6.distance(0, 1) == pytest.approx(1.54, abs=1e-3)
    assert sorted(c2h6.neighbors(0)) == [1, 2, 3, 4]
    assert sorted(c2h6.neighbors(1)) == [0, 5, 6, 7]
    for carbon, other, hydrogens in ((0, 1, (2, 3, 4)), (1, 0, (5, 6, 7))):
        for h in hydrogens:
            assert c2h6.distance(carbon, h) == pytest.approx(1.09, abs=1e-3)
            assert c2h6.bond_angle(h, carbon, other) == pytest.approx(111.0, abs=0.1)


def test_bond_orders_and_charges():
    assert {b.order for b in DEFAULT_LIBRARY.lookup("CO2").bonds} == {BondOrder.DOUBLE}
    assert DEFAULT_LIBRARY.lookup("N2").bonds[0].order is BondOrder.TRIPLE
    assert DEFAULT_LIBRARY.lookup("O2").bonds[0].order is BondOrder.DOUBLE
    nacl = DEFAULT_LIBRARY.lookup("NaCl")
    assert [a.formal_charge for a in nacl.atoms] == [1, -1]
    h2so4 = DEFAULT_LIBRARY.lookup("H2SO4")
    assert sum(b.order.multiplicity for b in h2so4.bonds if 0 in b.atoms) == 6
    assert len(h2so4.neighbors(0)) == 4


def test_bond_lengths_match_coordinates():
    for formula in DEFAULT_LIBRARY.formulas():
        s = DEFAULT_LIBRARY.lookup(formula)
        for b in s.bonds:
            assert b.length == pytest.approx(s.distance(b.begin, b.end), abs=1e-4)


def test_duplicate_entries_rejected():
    water = [e for e in _ENTRIES if e.formula == "H2O"][0]
    with pytest.raises(ValueError):
        StructureLibrary([water, water])


def test_small_library(small_elements):
    lib = StructureLibrary([e for e in _ENTRIES if e.formula in ("H2O", "CH4")], small_elements)
    assert len(lib) == 2
    assert "OH2" in lib
    assert lib.lookup("NaCl") is None


def test_common_name():
    assert common_name("C2H5OH") == "ethanol"
    assert common_name("CH3COOH") == "acetic acid"
    assert common_name("Ca(OH") is None
    assert common_name("Xx") is None
