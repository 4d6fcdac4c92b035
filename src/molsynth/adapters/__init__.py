"""Adapters to collaborators outside the structure engine."""

from .external import (
    ResolverContext,
    StructureResolver,
    TextFileResolver,
    build_atom_labels,
    extract_structure,
)

__all__ = [
    "ResolverContext",
    "StructureResolver",
    "TextFileResolver",
    "build_atom_labels",
    "extract_structure",
]
