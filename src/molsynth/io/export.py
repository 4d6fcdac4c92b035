"""Serialisation of resolved structures: dict/JSON, XYZ and MDL MolBlock.

The MolBlock writer goes through RDKit without sanitisation, so hypervalent
synthesized hubs and bare ionic pairs are written as given.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rdkit import Chem
from rdkit.Geometry import Point3D

from molsynth.domain.models import BondOrder, MolecularStructure

__all__ = ["to_dict", "to_json", "to_xyz", "to_molblock", "render", "write_structure"]

logger = logging.getLogger(__name__)

_RDKIT_BOND = {
    BondOrder.SINGLE: Chem.BondType.SINGLE,
    BondOrder.DOUBLE: Chem.BondType.DOUBLE,
    BondOrder.TRIPLE: Chem.BondType.TRIPLE,
}


def to_dict(structure: MolecularStructure) -> dict[str, Any]:
    return {
        "formula": structure.formula,
        "name": structure.name,
        "geometry": structure.geometry,
        "provenance": structure.provenance.value,
        "valid": structure.valid,
        "notes": list(structure.notes),
        "molecular_weight": structure.molecular_weight(),
        "atoms": [
            {
                "index": a.index,
                "element": a.element,
                "position": list(a.position),
                "covalent_radius": a.covalent_radius,
                "formal_charge": a.formal_charge,
                "hybridization": a.hybridization,
            }
            for a in structure.atoms
        ],
        "bonds": [
            {"begin": b.begin, "end": b.end, "order": b.order.value, "length": b.length}
            for b in structure.bonds
        ],
    }


def to_json(structure: MolecularStructure, indent: int | None = 2) -> str:
    return json.dumps(to_dict(structure), indent=indent)


def to_xyz(structure: MolecularStructure, comment: str | None = None) -> str:
    """XYZ text: atom count, comment line, one ``El x y z`` line per atom."""
    if comment is None:
        comment = f"{structure.formula} {structure.geometry} ({structure.provenance.value})"
    lines = [str(structure.atom_count), comment.replace("\n", " ")]
    for a in structure.atoms:
        x, y, z = a.position
        lines.append(f"{a.element:<2s} {x:12.6f} {y:12.6f} {z:12.6f}")
    return "\n".join(lines) + "\n"


def to_molblock(structure: MolecularStructure) -> str:
    """MDL molfile (V2000) with 3D coordinates, bond orders and formal charges."""
    rw = Chem.RWMol()
    for a in structure.atoms:
        try:
            atom = Chem.Atom(a.element)
        except RuntimeError as exc:
            raise ValueError(f"RDKit does not know element {a.element!r}") from exc
        if a.formal_charge:
            atom.SetFormalCharge(a.formal_charge)
        atom.SetNoImplicit(True)
        rw.AddAtom(atom)
    for b in structure.bonds:
        rw.AddBond(b.begin, b.end, _RDKIT_BOND[b.order])
    conf = Chem.Conformer(structure.atom_count)
    conf.Set3D(True)
    for a in structure.atoms:
        conf.SetAtomPosition(a.index, Point3D(*a.position))
    mol = rw.GetMol()
    mol.AddConformer(conf, assignId=True)
    mol.SetProp("_Name", structure.name or structure.formula)
    mol.UpdatePropertyCache(strict=False)
    return Chem.MolToMolBlock(mol, kekulize=False)


def render(structure: MolecularStructure, fmt: str = "json", indent: int = 2) -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return to_json(structure, indent=indent)
    if fmt == "xyz":
        return to_xyz(structure)
    if fmt == "mol":
        return to_molblock(structure)
    raise ValueError(f"Unknown output format '{fmt}'. Expected one of: json, xyz, mol")


def write_structure(structure: MolecularStructure, path: str | Path, fmt: str | None = None, indent: int = 2) -> Path:
    """Write ``structure`` to ``path``; the format defaults to the file suffix."""
    path = Path(path)
    fmt = fmt or path.suffix.lstrip(".") or "json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render(structure, fmt, indent), encoding="utf-8")
    logger.info("[export] wrote %s (%s)", path, fmt)
    return path
