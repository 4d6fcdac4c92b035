"""Tests for molsynth.pipeline.resolution (tier ordering and demotion of errors)."""
from __future__ import annotations

import json
import logging
import threading
import time

import pytest

from molsynth.config.loader import PipelineSection, ValidationSection
from molsynth.domain.errors import ParseError, ResolverError
from molsynth.domain.formula import parse
from molsynth.domain.library import DEFAULT_LIBRARY
from molsynth.domain.models import Provenance
from molsynth.infra.decisions import ACCEPTED, DISABLED, REJECTED, SKIPPED, ResolutionTrace
from molsynth.pipeline.resolution import (
    ResolutionRequest,
    StructurePipeline,
    TierOutcome,
    resolve_structure,
    run_tiers,
)
from tests.helpers.structures import fenced, h2o2_payload


@pytest.mark.parametrize("formula", DEFAULT_LIBRARY.formulas())
def test_library_formulas_resolve_predefined(formula):
    s = resolve_structure(formula)
    assert s.provenance is Provenance.PREDEFINED
    assert s.atom_count == sum(parse(formula).values())
    assert s.valid


@pytest.mark.parametrize(
    "formula",
    ["C2H6", "SF6", "PCl5", "Fe2(SO4)3", "KBr", "Al2O3", "C6H12O6", "H", "Zn", "Ca(OH)2", "CuSO4", "I2"],
)
def test_known_elements_never_raise(formula):
    s = resolve_structure(formula)
    assert s.valid
    assert s.census() == dict(parse(formula))
    assert s.provenance in (Provenance.PREDEFINED, Provenance.SYNTHESIZED)


def test_unknown_elements_use_fallback():
    s = resolve_structure("NaXx2")
    assert s.provenance is Provenance.FALLBACK
    assert s.geometry == "linear"
    assert [a.element for a in s.atoms] == ["Na", "Xx", "Xx"]
    xs = [a.position[0] for a in s.atoms]
    # unknown elements count as half the default spacing
    assert xs == pytest.approx([0.0, 1.66 + 0.75, 1.66 + 0.75 + 1.5])
    assert all(a.position[1:] == (0.0, 0.0) for a in s.atoms)
    assert [b.atoms for b in s.bonds] == [(0, 1), (1, 2)]
    assert s.valid


def test_parse_error_propagates():
    with pytest.raises(ParseError):
        resolve_structure("H2O(")
    with pytest.raises(ParseError):
        resolve_structure(None)


def test_explicit_quantities():
    s = resolve_structure(quantities=[("H", 2), ("O", 1)])
    assert s.provenance is Provenance.PREDEFINED
    assert s.formula == "H2O"
    s = resolve_structure("OH2", quantities={"O": 1, "H": 2})
    assert s.formula == "OH2"
    with pytest.raises(ParseError):
        resolve_structure("H2O2", quantities={"O": 1, "H": 2})


def test_predefined_wins_over_resolver(recording_resolver):
    resolver = recording_resolver(text=json.dumps(h2o2_payload()))
    s = resolve_structure("H2O", resolver=resolver)
    assert s.provenance is Provenance.PREDEFINED
    assert resolver.calls == []


def test_external_accepted(recording_resolver):
    resolver = recording_resolver(text=fenced(h2o2_payload()))
    structure, trace = StructurePipeline(resolver=resolver).resolve_with_trace("H2O2")
    assert structure.provenance is Provenance.EXTERNAL
    assert structure.valid
    assert trace.accepted_tier == "external"
    formula, context = resolver.calls[0]
    assert formula == "H2O2"
    assert context.atom_labels == ("H1", "H2", "O1", "O2")


def test_external_padded_once(recording_resolver):
    resolver = recording_resolver(text=json.dumps(h2o2_payload(drop_last_h=True)))
    s = StructurePipeline(resolver=resolver).resolve("H2O2")
    assert s.provenance is Provenance.EXTERNAL
    assert s.notes == ("padded: +H",)
    assert s.census() == {"H": 2, "O": 2}


def test_padding_limit_from_config(recording_resolver):
    resolver = recording_resolver(text=json.dumps(h2o2_payload(drop_last_h=True)))
    pipeline = StructurePipeline(resolver=resolver, validation=ValidationSection(max_padding=0))
    s, trace = pipeline.resolve_with_trace("H2O2")
    assert s.provenance is Provenance.SYNTHESIZED
    assert trace.outcome_of("external") == REJECTED


@pytest.mark.parametrize(
    "text",
    [json.dumps(h2o2_payload(extra_h=True)), "I cannot help with that.", '{"atoms": [{"element": "O"}], "bonds": []}'],
)
def test_bad_external_falls_through_to_synthesis(recording_resolver, text):
    s, trace = StructurePipeline(resolver=recording_resolver(text=text)).resolve_with_trace("H2O2")
    assert s.provenance is Provenance.SYNTHESIZED
    assert trace.outcome_of("external") == REJECTED
    assert trace.outcome_of("synthesized") == ACCEPTED


@pytest.mark.parametrize("exc", [ResolverError("quota exceeded"), RuntimeError("boom"), None])
def test_resolver_failures_are_demoted(recording_resolver, exc, caplog):
    caplog.set_level(logging.WARNING)
    resolver = recording_resolver(text=None, exc=exc)
    s, trace = StructurePipeline(resolver=resolver).resolve_with_trace("H2O2")
    assert s.provenance is Provenance.SYNTHESIZED
    assert trace.outcome_of("external") == REJECTED
    assert any("[external]" in r.getMessage() for r in caplog.records)


def test_resolver_timeout(recording_resolver):
    gate = threading.Event()
    resolver = recording_resolver(text=json.dumps(h2o2_payload()), block=gate)
    pipeline = StructurePipeline(resolver=resolver, pipeline=PipelineSection(resolver_timeout_s=0.05))
    try:
        s, trace = pipeline.resolve_with_trace("H2O2")
        # the abandoned call must not keep the interpreter alive
        workers = [t for t in threading.enumerate() if t.name == "molsynth-resolver"]
        assert workers and all(t.daemon for t in workers)
    finally:
        gate.set()
    assert s.provenance is Provenance.SYNTHESIZED
    attempt = [a for a in trace.attempts if a.tier == "external"][0]
    assert "timed out" in attempt.reason


def test_external_disabled_by_config(recording_resolver):
    resolver = recording_resolver(text=json.dumps(h2o2_payload()))
    pipeline = StructurePipeline(resolver=resolver, pipeline=PipelineSection(enable_external=False))
    s, trace = pipeline.resolve_with_trace("H2O2")
    assert resolver.calls == []
    assert trace.outcome_of("external") == DISABLED
    assert s.provenance is Provenance.SYNTHESIZED


def test_no_resolver_marks_tier_disabled():
    _, trace = StructurePipeline().resolve_with_trace("C3H8")
    assert [a.tier for a in trace.attempts] == ["predefined", "external", "synthesized"]
    assert trace.outcome_of("predefined") == SKIPPED
    assert trace.outcome_of("external") == DISABLED
    assert trace.provenance == "synthesized"
    assert trace.expected_total == 11
    assert any("max 4" in w for w in trace.warnings)


def test_resolution_is_deterministic():
    assert resolve_structure("SF6") == resolve_structure("SF6")
    assert resolve_structure("XxYy") == resolve_structure("XxYy")


def test_injected_small_table_forces_fallback(small_elements):
    s = StructurePipeline(elements=small_elements).resolve("NaCl")
    # library hit still validates: census only compares symbols
    assert s.provenance is Provenance.PREDEFINED
    s = StructurePipeline(elements=small_elements).resolve("KBr")
    assert s.provenance is Provenance.FALLBACK


def test_run_tiers_combinator():
    request = ResolutionRequest("H2O", parse("H2O"))
    water = DEFAULT_LIBRARY.lookup("H2O")
    from molsynth.domain.validation import validate

    def skip(req):
        return TierOutcome.skip("first", "nothing")

    def accept(req):
        return TierOutcome.accept("second", water, validate(water, req.counts))

    def never(req):  # pragma: no cover - must not run
        raise AssertionError("tier after an accepting tier ran")

    trace = ResolutionTrace("H2O")
    outcome = run_tiers((skip, accept, never), request, trace)
    assert outcome.tier == "second" and outcome.structure.valid
    assert [(a.tier, a.outcome) for a in trace.attempts] == [("first", SKIPPED), ("second", ACCEPTED)]
    with pytest.raises(ParseError):
        run_tiers((skip,), request)


@pytest.mark.parametrize(
    "text",
    ["[" * 200000 + "]" * 200000, '{"a": ' * 50000 + "1" + "}" * 50000],
)
def test_deeply_nested_resolver_text_falls_through(recording_resolver, text):
    s, trace = StructurePipeline(resolver=recording_resolver(text=text)).resolve_with_trace("H2O2")
    assert s.provenance is Provenance.SYNTHESIZED
    assert trace.outcome_of("external") == REJECTED


def test_brace_flood_is_rejected_quickly(recording_resolver):
    resolver = recording_resolver(text="{" * 20000)
    started = time.perf_counter()
    s, trace = StructurePipeline(resolver=resolver).resolve_with_trace("H2O2")
    assert time.perf_counter() - started < 2.0
    assert s.provenance is Provenance.SYNTHESIZED
    assert trace.outcome_of("external") == REJECTED


def test_contradictory_bond_lengths_reject_external(recording_resolver):
    payload = h2o2_payload()
    payload["atoms"][1]["position"] = [9.0, 0.0, 0.0]
    s, trace = StructurePipeline(resolver=recording_resolver(text=json.dumps(payload))).resolve_with_trace("H2O2")
    assert s.provenance is Provenance.SYNTHESIZED
    attempt = [a for a in trace.attempts if a.tier == "external"][0]
    assert attempt.outcome == REJECTED
    assert "bond 0-1 declares 1.475" in attempt.reason


def test_bond_length_tolerance_from_config(recording_resolver):
    payload = h2o2_payload()
    payload["bonds"][0]["length"] = 1.675  # 0.2 Å off the O-O distance
    pipeline = StructurePipeline(resolver=recording_resolver(text=json.dumps(payload)))
    s, trace = pipeline.resolve_with_trace("H2O2")
    assert s.provenance is Provenance.EXTERNAL
    assert any("deviation 0.200" in w for w in trace.warnings)

    strict = StructurePipeline(
        resolver=recording_resolver(text=json.dumps(payload)),
        validation=ValidationSection(bond_length_tolerance=0.15),
    )
    assert strict.resolve("H2O2").provenance is Provenance.SYNTHESIZED


def test_library_covers_phosphine_and_ethane():
    assert resolve_structure("PH3").geometry == "trigonal_pyramidal"
    ethane = resolve_structure("C2H6")
    assert ethane.provenance is Provenance.PREDEFINED
    assert ethane.geometry == "tetrahedral"
