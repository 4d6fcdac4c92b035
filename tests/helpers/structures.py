# tests/helpers/structures.py
import json
import math

from molsynth.domain.elements import DEFAULT_ELEMENTS
from molsynth.domain.models import Atom, Bond, BondOrder, MolecularStructure, Provenance


def make_structure(atoms, bonds=(), provenance=Provenance.EXTERNAL, formula="X", geometry="unknown"):
    """Build a structure from [(element, (x, y, z)), ...] and [(i, j), (i, j, order) or (i, j, order, length)].

    Bond length defaults to the distance between the two atoms (1.0 when an index is out of range).
    """
    built = []
    for i, (el, pos) in enumerate(atoms):
        props = DEFAULT_ELEMENTS.lookup(el)
        built.append(Atom(el, tuple(float(c) for c in pos), props.covalent_radius if props else 1.0, i))
    bond_objs = []
    for b in bonds:
        order = b[2] if len(b) > 2 else BondOrder.SINGLE
        if len(b) > 3:
            length = b[3]
        elif max(b[0], b[1]) < len(built):
            length = round(math.dist(built[b[0]].position, built[b[1]].position), 4)
        else:
            length = 1.0
        bond_objs.append(Bond(b[0], b[1], order, length))
    return MolecularStructure(formula, tuple(built), tuple(bond_objs), geometry, provenance)


def h2o2_payload(drop_last_h: bool = False, extra_h: bool = False) -> dict:
    """Hydrogen peroxide in the resolver schema (open-book geometry, roughly)."""
    atoms = [
        {"id": 0, "element": "O", "position": [0.0, 0.0, 0.0], "bonds": [1, 2]},
        {"id": 1, "element": "O", "position": [1.475, 0.0, 0.0], "bonds": [0, 3]},
        {"id": 2, "element": "H", "position": [-0.25, 0.93, 0.0], "bonds": [0]},
        {"id": 3, "element": "H", "position": [1.725, 0.0, 0.93], "bonds": [1]},
    ]
    bonds = [
        {"from": 0, "to": 1, "type": "single", "length": 1.475},
        {"from": 0, "to": 2, "type": "single", "length": 0.963},
        {"from": 1, "to": 3, "type": "single", "length": 0.963},
    ]
    if drop_last_h:
        atoms = atoms[:3]
        atoms[1]["bonds"] = [0]
        bonds = bonds[:2]
    if extra_h:
        atoms.append({"id": 4, "element": "H", "position": [3.0, 0.0, 0.0], "bonds": []})
    return {"name": "hydrogen peroxide", "geometry": "open_book", "atoms": atoms, "bonds": bonds}


def fenced(payload: dict, prose: str = "Here is the structure you asked for:") -> str:
    return f"{prose}\n```json\n{json.dumps(payload, indent=2)}\n```\nLet me know if you need more."
