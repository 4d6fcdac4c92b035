"""Boundary to an external (generative) structure resolver.

The resolver itself is supplied by the surrounding application; this module
defines its call signature and turns the free text it returns into a
candidate :class:`~molsynth.domain.models.MolecularStructure`. The text is
untrusted: every embedded object is checked against a strict pydantic
schema and any failure surfaces as :class:`SchemaExtractionError`.
"""
from __future__ import annotations

import itertools
import json
import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.errors import ResolverError, SchemaExtractionError
from molsynth.domain.formula import FormulaCount, hill_order
from molsynth.domain.models import Atom, Bond, BondOrder, MolecularStructure, Provenance

__all__ = [
    "ResolverContext",
    "StructureResolver",
    "TextFileResolver",
    "StructurePayload",
    "build_atom_labels",
    "extract_structure",
    "iter_json_candidates",
]

logger = logging.getLogger(__name__)

AtomRef = Union[int, str]

# resolver replies are a few kB; larger text is rejected before any decoding
MAX_TEXT_CHARS = 500_000
MAX_FAILED_STARTS = 256

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_ORDER_ALIASES = {
    "1": "single", "2": "double", "3": "triple",
    "-": "single", "=": "double", "#": "triple",
}


# -----------------
# Collaborator contract
# -----------------

@dataclass(frozen=True, slots=True)
class ResolverContext:
    formula: str
    counts: FormulaCount
    atom_labels: tuple[str, ...]


class StructureResolver(Protocol):
    def __call__(self, formula: str, context: ResolverContext) -> str:
        """Return free text describing the structure; raise ResolverError on failure."""
        ...


def build_atom_labels(counts: Mapping[str, int]) -> tuple[str, ...]:
    """Per-atom labels in Hill order: ``Ca``, ``Cl1``, ``Cl2``."""
    labels: list[str] = []
    for symbol in hill_order(counts):
        n = counts[symbol]
        if n == 1:
            labels.append(symbol)
        else:
            labels.extend(f"{symbol}{i}" for i in range(1, n + 1))
    return tuple(labels)


class TextFileResolver:
    """Replays a saved resolver response from disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def __call__(self, formula: str, context: ResolverContext) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ResolverError(f"Cannot read resolver response {self.path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"TextFileResolver({str(self.path)!r})"


# -----------------
# Schema
# -----------------

class AtomPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: AtomRef | None = None
    element: str = Field(..., validation_alias=AliasChoices("element", "symbol"), min_length=1)
    position: tuple[float, float, float]
    formal_charge: int | None = Field(None, validation_alias=AliasChoices("formal_charge", "charge"))
    hybridization: str | None = None
    bonds: list[AtomRef] = Field(default_factory=list)

    @field_validator("element")
    @classmethod
    def _strip_symbol(cls, v: str) -> str:
        return v.strip()

    @field_validator("position", mode="before")
    @classmethod
    def _xyz_mapping(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            try:
                return (v["x"], v["y"], v["z"])
            except KeyError as exc:
                raise ValueError(f"position mapping lacks {exc.args[0]!r}") from exc
        return v

    @field_validator("position")
    @classmethod
    def _finite(cls, v: tuple[float, float, float]) -> tuple[float, float, float]:
        if not all(math.isfinite(c) for c in v):
            raise ValueError("position must be finite")
        return v


class BondPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    begin: AtomRef = Field(..., validation_alias=AliasChoices("from", "begin", "source"))
    end: AtomRef = Field(..., validation_alias=AliasChoices("to", "end", "target"))
    type: BondOrder = Field(..., validation_alias=AliasChoices("type", "order"))
    length: float = Field(..., gt=0)

    @model_validator(mode="before")
    @classmethod
    def _atoms_pair(cls, data: Any) -> Any:
        # {"atoms": [i, j]} is accepted as a spelling of from/to
        if isinstance(data, dict) and "atoms" in data and "from" not in data:
            pair = data["atoms"]
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise ValueError("bond 'atoms' must list exactly two atom references")
            data = {**data, "from": pair[0], "to": pair[1]}
        return data

    @field_validator("type", mode="before")
    @classmethod
    def _order_alias(cls, v: Any) -> Any:
        if isinstance(v, (int, str)) and not isinstance(v, bool):
            key = str(v).strip().lower()
            return _ORDER_ALIASES.get(key, key)
        return v


class StructurePayload(BaseModel):
    """Top-level object: atom list, bond list, optional name and geometry."""
    model_config = ConfigDict(extra="ignore")

    atoms: list[AtomPayload] = Field(..., min_length=1)
    bonds: list[BondPayload]
    name: str | None = None
    geometry: str | None = None
    hybridization: dict[str, str] = Field(default_factory=dict)

    @field_validator("hybridization", mode="before")
    @classmethod
    def _hybridization_map(cls, v: Any) -> Any:
        # only the {"<atom id>": "sp3"} form carries per-atom information
        if not isinstance(v, Mapping):
            return {}
        return {str(k): str(h) for k, h in v.items() if h is not None}

    @model_validator(mode="after")
    def _check_references(self):
        ids = [a.id if a.id is not None else i for i, a in enumerate(self.atoms)]
        keys = [str(i) for i in ids]
        if len(set(keys)) != len(keys):
            dupes = sorted({k for k in keys if keys.count(k) > 1})
            raise ValueError(f"duplicate atom ids: {', '.join(dupes)}")
        known = set(keys)
        seen_pairs: set[frozenset[str]] = set()
        for b in self.bonds:
            begin, end = str(b.begin), str(b.end)
            for ref in (begin, end):
                if ref not in known:
                    raise ValueError(f"bond references unknown atom {ref!r}")
            if begin == end:
                raise ValueError(f"self-bond on atom {begin!r}")
            pair = frozenset((begin, end))
            if pair in seen_pairs:
                raise ValueError(f"duplicate bond {begin}-{end}")
            seen_pairs.add(pair)
        for key, atom in zip(keys, self.atoms):
            for ref in atom.bonds:
                if str(ref) not in known:
                    raise ValueError(f"atom {key!r} references unknown atom {ref!r}")
                if str(ref) == key:
                    raise ValueError(f"atom {key!r} references itself")
        return self

    def atom_keys(self) -> list[str]:
        return [str(a.id if a.id is not None else i) for i, a in enumerate(self.atoms)]


# -----------------
# Extraction
# -----------------

def _embedded_values(text: str) -> Iterator[Any]:
    """JSON values decoded from each ``{`` in ``text``, left to right.

    A decoded object is skipped over as a whole; failed starts are capped at
    ``MAX_FAILED_STARTS`` so brace-heavy prose stays linear.
    """
    decoder = json.JSONDecoder()
    pos = 0
    failed = 0
    while failed < MAX_FAILED_STARTS:
        start = text.find("{", pos)
        if start < 0:
            return
        try:
            value, end = decoder.raw_decode(text, start)
        except (ValueError, RecursionError):
            failed += 1
            pos = start + 1
            continue
        yield value
        pos = end


def iter_json_candidates(raw_text: str) -> Iterator[Any]:
    """Decoded JSON values found in ``raw_text``: whole text, code fences, embedded objects.

    Lazy: later sources are only scanned when earlier ones did not satisfy the caller.
    """
    fenced = (m.group(1).strip() for m in _FENCE.finditer(raw_text))
    for chunk in itertools.chain([raw_text.strip()], fenced):
        if not chunk:
            continue
        try:
            yield json.loads(chunk)
        except (ValueError, RecursionError):
            continue
    yield from _embedded_values(raw_text)


def _is_structure_object(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("atoms"), list) and isinstance(value.get("bonds"), list)


def _first_structure_object(raw_text: str) -> dict:
    for value in iter_json_candidates(raw_text):
        # depth-first in document order, so {"result": {...}} wrappers are found too
        stack = [value]
        while stack:
            node = stack.pop()
            if _is_structure_object(node):
                return node
            if isinstance(node, dict):
                stack.extend(reversed(list(node.values())))
            elif isinstance(node, list):
                stack.extend(reversed(node))
    raise SchemaExtractionError("No JSON object with 'atoms' and 'bonds' lists found in resolver text")


def _to_structure(payload: StructurePayload, formula: str, table: ElementTable) -> MolecularStructure:
    unknown = table.missing(a.element for a in payload.atoms)
    if unknown:
        raise SchemaExtractionError(f"Unknown element symbol(s) in resolver output: {', '.join(unknown)}")
    keys = payload.atom_keys()
    index_of = {k: i for i, k in enumerate(keys)}

    atoms = []
    for i, a in enumerate(payload.atoms):
        hyb = a.hybridization or payload.hybridization.get(keys[i]) or payload.hybridization.get(str(i))
        atoms.append(Atom(a.element, tuple(a.position), table[a.element].covalent_radius, i, a.formal_charge, hyb))

    bonds: list[Bond] = []
    pairs: set[frozenset[int]] = set()
    for b in payload.bonds:
        begin, end = index_of[str(b.begin)], index_of[str(b.end)]
        bonds.append(Bond(begin, end, b.type, round(b.length, 4)))
        pairs.add(frozenset((begin, end)))
    # per-atom references not covered by the bond list become single bonds
    for i, a in enumerate(payload.atoms):
        for ref in a.bonds:
            j = index_of[str(ref)]
            if frozenset((i, j)) in pairs:
                continue
            pairs.add(frozenset((i, j)))
            bonds.append(Bond(min(i, j), max(i, j), BondOrder.SINGLE,
                              round(math.dist(a.position, payload.atoms[j].position), 4)))

    return MolecularStructure(
        formula=formula,
        atoms=tuple(atoms),
        bonds=tuple(bonds),
        geometry=(payload.geometry or "unknown").strip() or "unknown",
        provenance=Provenance.EXTERNAL,
        name=(payload.name or "").strip() or formula,
    )


def extract_structure(raw_text: str, formula: str, elements: ElementTable | None = None) -> MolecularStructure:
    """Parse resolver free text into an ``external`` candidate structure.

    The candidate still has to pass validation before it is accepted.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise SchemaExtractionError("Resolver returned no text")
    if len(raw_text) > MAX_TEXT_CHARS:
        raise SchemaExtractionError(f"Resolver text too long ({len(raw_text)} > {MAX_TEXT_CHARS} characters)")
    table = elements if elements is not None else DEFAULT_ELEMENTS
    obj = _first_structure_object(raw_text)
    try:
        payload = StructurePayload.model_validate(obj)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise SchemaExtractionError(
            f"Resolver structure failed schema validation ({exc.error_count()} error(s)); first: {where}: {first.get('msg')}"
        ) from exc
    structure = _to_structure(payload, formula, table)
    logger.debug("[external] extracted %d atoms, %d bonds for %s", structure.atom_count, len(structure.bonds), formula)
    return structure
