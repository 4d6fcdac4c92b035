"""Structure resolution pipeline.

Tiers, tried in order until one accepts:

1. ``predefined``  hand-specified library entry
2. ``external``    collaborator text, extracted, validated, padded at most once
3. ``synthesized`` VSEPR layout around the hub atom
4. ``fallback``    atoms on the +x axis, consecutive single bonds

Each tier is a plain callable ``tier(request) -> TierOutcome``; ``run_tiers``
composes them and records every attempt in a :class:`ResolutionTrace`. The
only error that reaches callers is :class:`ParseError`: without element
counts there is nothing to place.

A resolver call bounded by ``resolver_timeout_s`` runs on a daemon thread.
On timeout the call is abandoned, not interrupted: it may keep running in
the background, but it never delays interpreter exit.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Mapping, Sequence

from molsynth.adapters.external import ResolverContext, StructureResolver, build_atom_labels, extract_structure
from molsynth.config.loader import PipelineSection, SynthesisSection, ValidationSection
from molsynth.domain.bond_lengths import DEFAULT_BOND_LENGTHS, BondLengthTable
from molsynth.domain.elements import DEFAULT_ELEMENTS, ElementTable
from molsynth.domain.errors import (
    AmbiguousStructureError,
    ParseError,
    ResolverError,
    SchemaExtractionError,
    UnresolvedElementError,
)
from molsynth.domain.formula import FormulaCount, format_formula, from_quantities, normalize_formula, parse
from molsynth.domain.geometry import GeometrySynthesizer
from molsynth.domain.library import DEFAULT_LIBRARY, StructureLibrary, common_name
from molsynth.domain.models import Atom, Bond, BondOrder, MolecularStructure, Provenance, ValidationReport
from molsynth.domain.validation import pad_structure, validate
from molsynth.infra.decisions import ACCEPTED, DISABLED, REJECTED, SKIPPED, ResolutionTrace

__all__ = [
    "ResolutionRequest",
    "TierOutcome",
    "Tier",
    "run_tiers",
    "StructurePipeline",
    "resolve_structure",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolutionRequest:
    formula: str
    counts: FormulaCount


@dataclass(frozen=True, slots=True)
class TierOutcome:
    tier: str
    outcome: str
    structure: MolecularStructure | None = None
    reason: str = ""
    report: ValidationReport | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome == ACCEPTED and self.structure is not None

    @classmethod
    def accept(cls, tier: str, structure: MolecularStructure, report: ValidationReport) -> "TierOutcome":
        return cls(tier, ACCEPTED, replace(structure, valid=report.passed), "", report)

    @classmethod
    def skip(cls, tier: str, reason: str, outcome: str = SKIPPED) -> "TierOutcome":
        return cls(tier, outcome, None, reason)


Tier = Callable[[ResolutionRequest], TierOutcome]


def run_tiers(tiers: Iterable[Tier], request: ResolutionRequest, trace: ResolutionTrace | None = None) -> TierOutcome:
    """Return the first accepting tier's outcome.

    Raises ParseError when every tier declines, which only happens for a
    request without any atoms.
    """
    for tier in tiers:
        start = time.perf_counter()
        outcome = tier(request)
        elapsed = round((time.perf_counter() - start) * 1000.0, 3)
        if trace is not None:
            trace.record(outcome.tier, outcome.outcome, outcome.reason, elapsed)
        if outcome.accepted:
            return outcome
        logger.debug("[pipeline] %s: tier %s %s (%s)", request.formula, outcome.tier, outcome.outcome, outcome.reason)
    raise ParseError(f"No structure could be placed for {request.formula!r}")


class StructurePipeline:
    """One resolution engine shared by every front end."""

    def __init__(
        self,
        elements: ElementTable | None = None,
        bond_lengths: BondLengthTable | None = None,
        library: StructureLibrary | None = None,
        resolver: StructureResolver | None = None,
        pipeline: PipelineSection | None = None,
        synthesis: SynthesisSection | None = None,
        validation: ValidationSection | None = None,
    ):
        self.elements = elements if elements is not None else DEFAULT_ELEMENTS
        self.bond_lengths = bond_lengths if bond_lengths is not None else DEFAULT_BOND_LENGTHS
        self.library = library if library is not None else DEFAULT_LIBRARY
        self.resolver = resolver
        self.pipeline_settings = pipeline or PipelineSection()
        self.synthesis_settings = synthesis or SynthesisSection()
        self.validation_settings = validation or ValidationSection()
        self.synthesizer = GeometrySynthesizer(
            self.elements,
            self.bond_lengths,
            helix_widening=self.synthesis_settings.helix_widening,
            helix_pitch=self.synthesis_settings.helix_pitch,
            round_digits=self.synthesis_settings.round_digits,
        )
        self.tiers: Sequence[Tier] = (
            self.predefined_tier,
            self.external_tier,
            self.synthesized_tier,
            self.fallback_tier,
        )

    @classmethod
    def from_config(cls, cfg, resolver: StructureResolver | None = None, **kwargs) -> "StructurePipeline":
        return cls(
            resolver=resolver,
            pipeline=cfg.pipeline,
            synthesis=cfg.synthesis,
            validation=cfg.validation,
            **kwargs,
        )

    # -----------------
    # Request
    # -----------------

    @staticmethod
    def build_request(
        formula: str | None = None,
        quantities: Mapping[str, int] | Iterable[tuple[str, int]] | None = None,
    ) -> ResolutionRequest:
        if quantities is not None:
            counts = from_quantities(quantities)
            if formula is None:
                return ResolutionRequest(format_formula(counts), counts)
            echo = normalize_formula(formula)
            if parse(echo) != counts:
                raise ParseError(f"Formula {formula!r} does not match the given element quantities")
            return ResolutionRequest(echo, counts)
        if formula is None:
            raise ParseError("Either a formula or element quantities are required")
        counts = parse(formula)
        return ResolutionRequest(normalize_formula(formula), counts)

    # -----------------
    # Tiers
    # -----------------

    def _validate(
        self, structure: MolecularStructure, request: ResolutionRequest, length_tolerance: float | None = None
    ) -> ValidationReport:
        return validate(structure, request.counts, self.elements, length_tolerance)

    def predefined_tier(self, request: ResolutionRequest) -> TierOutcome:
        hit = self.library.lookup(request.formula)
        if hit is None:
            return TierOutcome.skip("predefined", "no library entry")
        structure = replace(hit, formula=request.formula)
        report = self._validate(structure, request)
        if not report.passed:
            return TierOutcome.skip("predefined", report.summary(), REJECTED)
        return TierOutcome.accept("predefined", structure, report)

    def _call_resolver(self, request: ResolutionRequest) -> str:
        context = ResolverContext(request.formula, request.counts, build_atom_labels(request.counts))
        timeout = self.pipeline_settings.resolver_timeout_s
        if not timeout:
            return self._invoke(request.formula, context)
        future: Future = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._invoke(request.formula, context))
            except ResolverError as exc:
                future.set_exception(exc)

        # daemon: a hung collaborator must not hold up interpreter exit
        threading.Thread(target=run, name="molsynth-resolver", daemon=True).start()
        try:
            return future.result(timeout=timeout)
        except FuturesTimeout:
            raise ResolverError(f"resolver timed out after {timeout}s") from None

    def _invoke(self, formula: str, context: ResolverContext) -> str:
        try:
            return self.resolver(formula, context)
        except ResolverError:
            raise
        except Exception as exc:
            raise ResolverError(f"resolver failed: {type(exc).__name__}: {exc}") from exc

    def external_tier(self, request: ResolutionRequest) -> TierOutcome:
        if self.resolver is None:
            return TierOutcome.skip("external", "no resolver configured", DISABLED)
        if not self.pipeline_settings.enable_external:
            return TierOutcome.skip("external", "disabled by configuration", DISABLED)
        try:
            text = self._call_resolver(request)
            candidate = extract_structure(text, request.formula, self.elements)
        except (ResolverError, SchemaExtractionError) as exc:
            logger.warning("[external] %s: %s", request.formula, exc)
            return TierOutcome.skip("external", str(exc), REJECTED)

        tolerance = self.validation_settings.bond_length_tolerance
        report = self._validate(candidate, request, tolerance)
        if report.passed:
            return TierOutcome.accept("external", candidate, report)
        if report.errors:
            logger.warning("[external] %s: %s", request.formula, report.summary())
            return TierOutcome.skip("external", report.summary(), REJECTED)
        try:
            padded = pad_structure(
                candidate,
                request.counts,
                self.elements,
                self.bond_lengths,
                max_padding=self.validation_settings.max_padding,
                default_element=self.validation_settings.padding_element,
                round_digits=self.synthesis_settings.round_digits,
            )
        except UnresolvedElementError as exc:
            logger.warning("[external] %s: padding impossible: %s", request.formula, exc)
            return TierOutcome.skip("external", str(exc), REJECTED)
        if padded is None:
            logger.warning("[external] %s: census mismatch: %s", request.formula, report.summary())
            return TierOutcome.skip("external", report.summary(), REJECTED)
        report = self._validate(padded, request, tolerance)
        if not report.passed:
            logger.warning("[external] %s: still invalid after padding: %s", request.formula, report.summary())
            return TierOutcome.skip("external", report.summary(), REJECTED)
        return TierOutcome.accept("external", padded, report)

    def synthesized_tier(self, request: ResolutionRequest) -> TierOutcome:
        try:
            structure = self.synthesizer.synthesize(request.counts, request.formula)
        except (UnresolvedElementError, AmbiguousStructureError) as exc:
            logger.info("[synth] %s: %s", request.formula, exc)
            return TierOutcome.skip("synthesized", str(exc))
        report = self._validate(structure, request)
        if not report.passed:
            return TierOutcome.skip("synthesized", report.summary(), REJECTED)
        return TierOutcome.accept("synthesized", structure, report)

    def fallback_tier(self, request: ResolutionRequest) -> TierOutcome:
        symbols = request.counts.expand()
        if not symbols:
            return TierOutcome.skip("fallback", "no atoms to place")
        default_radius = self.synthesis_settings.fallback_spacing / 2.0
        radii = [
            props.covalent_radius if props is not None else default_radius
            for props in (self.elements.lookup(s) for s in symbols)
        ]
        digits = self.synthesis_settings.round_digits
        atoms: list[Atom] = []
        bonds: list[Bond] = []
        x = 0.0
        for i, (symbol, radius) in enumerate(zip(symbols, radii)):
            if i:
                spacing = radii[i - 1] + radius
                x += spacing
                bonds.append(Bond(i - 1, i, BondOrder.SINGLE, round(spacing, 4)))
            atoms.append(Atom(symbol, (round(x, digits), 0.0, 0.0), radius, i))
        structure = MolecularStructure(
            formula=request.formula,
            atoms=tuple(atoms),
            bonds=tuple(bonds),
            geometry="linear" if len(atoms) > 1 else "monatomic",
            provenance=Provenance.FALLBACK,
            name=common_name(request.formula) or request.formula,
        )
        return TierOutcome.accept("fallback", structure, self._validate(structure, request))

    # -----------------
    # Entry points
    # -----------------

    def resolve_with_trace(
        self,
        formula: str | None = None,
        quantities: Mapping[str, int] | Iterable[tuple[str, int]] | None = None,
    ) -> tuple[MolecularStructure, ResolutionTrace]:
        request = self.build_request(formula, quantities)
        trace = ResolutionTrace(formula=request.formula, expected_total=request.counts.total)
        outcome = run_tiers(self.tiers, request, trace)
        structure = outcome.structure
        trace.provenance = structure.provenance.value
        trace.valid = structure.valid
        trace.notes.extend(structure.notes)
        if outcome.report is not None:
            trace.warnings.extend(outcome.report.warnings)
        logger.info(
            "[pipeline] %s -> %s (%d atoms, %s, valid=%s)",
            request.formula, structure.provenance.value, structure.atom_count, structure.geometry, structure.valid,
        )
        return structure, trace

    def resolve(
        self,
        formula: str | None = None,
        quantities: Mapping[str, int] | Iterable[tuple[str, int]] | None = None,
    ) -> MolecularStructure:
        return self.resolve_with_trace(formula, quantities)[0]


_DEFAULT_PIPELINE = StructurePipeline()


def resolve_structure(
    formula: str | None = None,
    resolver: StructureResolver | None = None,
    quantities: Mapping[str, int] | Iterable[tuple[str, int]] | None = None,
) -> MolecularStructure:
    """Resolve ``formula`` (or explicit ``quantities``) with the default tables."""
    pipeline = _DEFAULT_PIPELINE if resolver is None else StructurePipeline(resolver=resolver)
    return pipeline.resolve(formula, quantities)
