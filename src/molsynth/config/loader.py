"""TOML configuration loader.

Sources in increasing precedence: built-in dataclass defaults,
``<project>/molsynth.toml``, the explicit ``--config`` file.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
import typing as t

try:
    import tomllib  # py>=3.11
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

CONFIG_FILENAME = "molsynth.toml"
OUTPUT_FORMATS = ("json", "xyz", "mol")

# -----------------
# Dataclass schema
# -----------------

@dataclass
class PipelineSection:
    enable_external: bool = True
    # seconds; 0 or None waits for the resolver indefinitely
    resolver_timeout_s: float | None = 30.0

@dataclass
class SynthesisSection:
    helix_widening: float = 0.5
    helix_pitch: float = 0.6
    # spacing for fallback atoms whose radius is unknown (Å)
    fallback_spacing: float = 1.5
    round_digits: int = 6

@dataclass
class ValidationSection:
    max_padding: int = 1
    padding_element: str = "H"
    # Å; external structures whose declared bond lengths miss the atom distance by more are rejected
    bond_length_tolerance: float = 0.25

@dataclass
class OutputSection:
    format: str = "json"
    indent: int = 2

@dataclass
class Config:
    project_root: Path
    pipeline: PipelineSection = field(default_factory=PipelineSection)
    synthesis: SynthesisSection = field(default_factory=SynthesisSection)
    validation: ValidationSection = field(default_factory=ValidationSection)
    output: OutputSection = field(default_factory=OutputSection)


# -----------------
# Helpers
# -----------------

def _load_toml(path: Path) -> dict:
    with path.open("rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _merge_into_dataclass(section, payload: dict):
    """Recursively merge a dict into a (possibly nested) dataclass instance."""
    for k, v in payload.items():
        if not hasattr(section, k):
            continue
        current = getattr(section, k)
        if is_dataclass(current) and isinstance(v, dict):
            _merge_into_dataclass(current, v)
        elif v is not None:
            setattr(section, k, v)


def _flatten_dataclass(obj, prefix: str = ""):
    """Yield (key_path, value) for leaf attributes in field declaration order."""
    for f in fields(obj):
        val = getattr(obj, f.name)
        key = f"{prefix}.{f.name}" if prefix else f.name
        if is_dataclass(val):
            yield from _flatten_dataclass(val, key)
        else:
            yield key, val


def dump_config(cfg: Config, log_fn=print, header: bool = True):
    """Log all config settings (flattened) with a stable ordering.

    Format: [config] section.key = value
    """
    if header:
        log_fn("[config] -- begin full config dump --")
    for key, val in _flatten_dataclass(cfg):
        log_fn(f"[config] {key} = {val}")
    if header:
        log_fn("[config] -- end full config dump --")


def _number(value, key: str, minimum: float | None = None, integer: bool = False):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or (integer and not isinstance(value, int)):
        kind = "an integer" if integer else "a number"
        raise ValueError(f"Invalid {key}={value!r}: expected {kind}")
    if minimum is not None and value < minimum:
        raise ValueError(f"Invalid {key}={value!r}: must be >= {minimum}")
    return value


def validate_config(cfg: Config) -> Config:
    """Raise ValueError naming the first offending key."""
    if not isinstance(cfg.pipeline.enable_external, bool):
        raise ValueError(f"Invalid pipeline.enable_external={cfg.pipeline.enable_external!r}: expected true/false")
    if cfg.pipeline.resolver_timeout_s is not None:
        _number(cfg.pipeline.resolver_timeout_s, "pipeline.resolver_timeout_s", 0)
        if cfg.pipeline.resolver_timeout_s == 0:
            cfg.pipeline.resolver_timeout_s = None
    _number(cfg.synthesis.helix_widening, "synthesis.helix_widening", 0)
    _number(cfg.synthesis.helix_pitch, "synthesis.helix_pitch", 0)
    _number(cfg.synthesis.fallback_spacing, "synthesis.fallback_spacing")
    if cfg.synthesis.fallback_spacing <= 0:
        raise ValueError(f"Invalid synthesis.fallback_spacing={cfg.synthesis.fallback_spacing!r}: must be > 0")
    _number(cfg.synthesis.round_digits, "synthesis.round_digits", 0, integer=True)
    _number(cfg.validation.max_padding, "validation.max_padding", 0, integer=True)
    if not isinstance(cfg.validation.padding_element, str) or not cfg.validation.padding_element:
        raise ValueError(f"Invalid validation.padding_element={cfg.validation.padding_element!r}")
    _number(cfg.validation.bond_length_tolerance, "validation.bond_length_tolerance")
    if cfg.validation.bond_length_tolerance <= 0:
        raise ValueError(
            f"Invalid validation.bond_length_tolerance={cfg.validation.bond_length_tolerance!r}: must be > 0"
        )
    fmt = str(cfg.output.format).lower()
    if fmt not in OUTPUT_FORMATS:
        raise ValueError(
            f"Invalid output.format '{cfg.output.format}'. Expected one of: " + ", ".join(OUTPUT_FORMATS)
        )
    cfg.output.format = fmt
    _number(cfg.output.indent, "output.indent", 0, integer=True)
    return cfg


# -----------------
# Loader
# -----------------

def load_config(
    project_root: t.Union[str, Path, None] = None,
    config_path: t.Union[str, Path, None] = None,
) -> Config:
    root = Path(project_root or ".").resolve()
    provided = Path(config_path).resolve() if config_path else None
    logger = logging.getLogger(__name__)

    tomls: list[Path] = []
    project_toml = root / CONFIG_FILENAME
    if project_toml.is_file():
        tomls.append(project_toml)
    if provided is not None:
        if not provided.is_file():
            raise FileNotFoundError(f"Config file not found: {provided}")
        if provided not in tomls:
            tomls.append(provided)

    data: dict = {}
    for p in tomls:
        logger.debug("[config] reading %s", p)
        data = _deep_merge(data, _load_toml(p))

    cfg = Config(project_root=root)
    for section_name in ("pipeline", "synthesis", "validation", "output"):
        payload = data.get(section_name, {})
        if isinstance(payload, dict):
            _merge_into_dataclass(getattr(cfg, section_name), payload)
    return validate_config(cfg)


__all__ = [
    "CONFIG_FILENAME",
    "Config",
    "OutputSection",
    "PipelineSection",
    "SynthesisSection",
    "ValidationSection",
    "dump_config",
    "load_config",
    "validate_config",
]
