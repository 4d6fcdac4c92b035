"""Pure structure-building logic: tables, parser, selector, synthesizer, validator.

Nothing in this package performs I/O; every table is an immutable module
default that callers may replace with their own instance.
"""

from .errors import (
    AmbiguousStructureError,
    MolsynthError,
    ParseError,
    ResolverError,
    SchemaExtractionError,
    UnresolvedElementError,
)
from .formula import FormulaCount, format_formula, from_quantities, parse
from .models import Atom, Bond, BondOrder, MolecularStructure, Provenance, ValidationReport

__all__ = [
    "AmbiguousStructureError",
    "MolsynthError",
    "ParseError",
    "ResolverError",
    "SchemaExtractionError",
    "UnresolvedElementError",
    "FormulaCount",
    "format_formula",
    "from_quantities",
    "parse",
    "Atom",
    "Bond",
    "BondOrder",
    "MolecularStructure",
    "Provenance",
    "ValidationReport",
]
