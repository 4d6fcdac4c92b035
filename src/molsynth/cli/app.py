# src/molsynth/cli/app.py
from __future__ import annotations

import argparse
import logging
import sys

from molsynth.adapters.external import TextFileResolver
from molsynth.cli.common import add_standard_flags, parse_element_option
from molsynth.config.loader import OUTPUT_FORMATS, load_config
from molsynth.domain.elements import DEFAULT_ELEMENTS
from molsynth.domain.errors import ParseError
from molsynth.domain.formula import format_formula, hill_order, parse
from molsynth.infra.logging import log_run_header, setup_logging
from molsynth.infra.step_logging import log_relevant_config
from molsynth.io.export import render, write_structure
from molsynth.pipeline.resolution import StructurePipeline

DESCRIPTIONS = {
    "resolve": "Resolve a formula (or --element list) to a 3D structure: library, resolver response, VSEPR synthesis, linear fallback.",
    "parse": "Parse a formula and print its element counts in Hill order.",
    "elements": "List the element property table.",
}

RESOLVE_CONFIG_FIELDS = (
    "pipeline.enable_external",
    "pipeline.resolver_timeout_s",
    "synthesis.helix_widening",
    "synthesis.helix_pitch",
    "synthesis.fallback_spacing",
    "validation.max_padding",
    "validation.padding_element",
    "output.format",
)


def _error(tag: str, exc: BaseException) -> None:
    print(f"[{tag}][error] {exc}", file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser("molsynth")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_cmd(name: str) -> argparse.ArgumentParser:
        return sub.add_parser(name, help=DESCRIPTIONS[name], description=DESCRIPTIONS[name])

    sp = add_cmd("resolve")
    sp.add_argument("formula", nargs="?", help="Chemical formula, e.g. H2SO4 or Ca(OH)2")
    sp.add_argument("--element", action="append", default=[], metavar="SYM=N",
                    help="Explicit element quantity (repeatable); replaces or cross-checks FORMULA")
    sp.add_argument("--resolver-response", metavar="FILE", help="Saved external resolver response to try as tier 2")
    sp.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format (default from [output].format)")
    sp.add_argument("--output", "-o", metavar="FILE", help="Write to FILE instead of stdout")
    add_standard_flags(sp)

    sp = add_cmd("parse")
    sp.add_argument("formula")

    sp = add_cmd("elements")
    return p


def _cmd_resolve(args) -> int:
    try:
        cfg = load_config(args.project, args.config)
    except (ValueError, OSError) as exc:
        _error("config", exc)
        return 2
    log_relevant_config("resolve", cfg, RESOLVE_CONFIG_FIELDS, logging.getLogger(__name__).info)

    resolver = TextFileResolver(args.resolver_response) if args.resolver_response else None
    pipeline = StructurePipeline.from_config(cfg, resolver)
    try:
        quantities = [parse_element_option(tok) for tok in args.element] or None
        structure, trace = pipeline.resolve_with_trace(args.formula, quantities)
    except ParseError as exc:
        _error("parse", exc)
        return 2
    trace.log("resolve")

    fmt = args.format or cfg.output.format
    try:
        if args.output:
            write_structure(structure, args.output, fmt, cfg.output.indent)
        else:
            text = render(structure, fmt, cfg.output.indent)
            sys.stdout.write(text if text.endswith("\n") else text + "\n")
    except ValueError as exc:
        _error("export", exc)
        return 1
    return 0


def _cmd_parse(args) -> int:
    try:
        counts = parse(args.formula)
    except ParseError as exc:
        _error("parse", exc)
        return 2
    print(format_formula(counts))
    for symbol in hill_order(counts):
        print(f"{symbol:<2s} {counts[symbol]}")
    print(f"total {counts.total}")
    return 0


def _cmd_elements(args) -> int:
    print(f"# element table version {DEFAULT_ELEMENTS.version}")
    print(f"{'sym':<3s} {'name':<12s} {'Z':>3s} {'EN':>5s} {'r_cov':>6s} {'max':>3s}")
    for props in sorted(DEFAULT_ELEMENTS.values(), key=lambda p: p.atomic_number):
        print(
            f"{props.symbol:<3s} {props.name:<12s} {props.atomic_number:>3d} "
            f"{props.electronegativity:>5.2f} {props.covalent_radius:>6.2f} {props.max_bonds:>3d}"
        )
    return 0


COMMANDS = {
    "resolve": _cmd_resolve,
    "parse": _cmd_parse,
    "elements": _cmd_elements,
}


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if getattr(args, "log_file", None) or getattr(args, "log_console", False):
        setup_logging(args.log_file, also_console=args.log_console, suppress_initial_message=not args.log_file)
        log_run_header(args.cmd)
    return COMMANDS[args.cmd](args)


if __name__ == "__main__":
    sys.exit(main())
