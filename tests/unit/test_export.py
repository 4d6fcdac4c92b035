import json

import pytest

from molsynth.domain.library import DEFAULT_LIBRARY
from molsynth.io.export import render, to_dict, to_json, to_molblock, to_xyz, write_structure
from molsynth.pipeline.resolution import resolve_structure
from tests.helpers.structures import make_structure


@pytest.fixture
def water():
    return DEFAULT_LIBRARY.lookup("H2O")


def test_dict_and_json(water):
    data = to_dict(water)
    assert data["provenance"] == "predefined"
    assert data["geometry"] == "bent"
    assert len(data["atoms"]) == 3 and len(data["bonds"]) == 2
    assert set(data["atoms"][0]) == {"index", "element", "position", "covalent_radius", "formal_charge", "hybridization"}
    assert json.loads(render(water, "json")) == data


def test_dict_carries_molecular_weight(water):
    assert to_dict(water)["molecular_weight"] == pytest.approx(18.015)
    unknown = make_structure([("Xx", (0, 0, 0)), ("H", (1, 0, 0))], [(0, 1)])
    assert to_dict(unknown)["molecular_weight"] is None
    assert json.loads(to_json(unknown))["molecular_weight"] is None


def test_xyz_layout(water):
    text = to_xyz(water)
    lines = text.splitlines()
    assert text.endswith("\n")
    assert len(lines) == water.atom_count + 2
    assert lines[0] == "3"
    assert lines[1] == "H2O bent (predefined)"
    assert sorted(ln.split()[0] for ln in lines[2:]) == ["H", "H", "O"]
    assert to_xyz(water, comment="a\nb").splitlines()[1] == "a b"


def test_molblock_counts_and_charges(water):
    block = to_molblock(water)
    lines = block.splitlines()
    assert lines[0] == "water"
    assert "V2000" in lines[3]
    assert lines[3][:6] == "  3  2"
    assert "M  CHG" not in block

    salt = to_molblock(DEFAULT_LIBRARY.lookup("NaCl"))
    assert "M  CHG  2" in salt


def test_molblock_for_hypervalent_synthesized_hub():
    # C3H8 synthesizes a single ten-coordinate carbon; no sanitisation runs
    block = render(resolve_structure("C3H8"), "MOL")
    assert block.splitlines()[3][:6] == " 11 10"


def test_unknown_format(water):
    with pytest.raises(ValueError, match="Unknown output format"):
        render(water, "pdb")


def test_write_structure_uses_suffix(tmp_path, water):
    path = write_structure(water, tmp_path / "out" / "water.xyz")
    assert path.read_text().splitlines()[0] == "3"
    path = write_structure(water, tmp_path / "water.txt", fmt="json")
    assert json.loads(path.read_text())["formula"] == "H2O"
