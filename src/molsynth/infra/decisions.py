"""Decision trace for one structure resolution run.

Every tier the pipeline tries leaves one :class:`TierAttempt`; the trace is
logged as an aligned table so a reader can see why a given provenance won.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from molsynth.infra.step_logging import log_table, tables_enabled

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
SKIPPED = "skipped"
REJECTED = "rejected"
DISABLED = "disabled"


@dataclass(slots=True)
class TierAttempt:
    tier: str
    outcome: str  # accepted | skipped | rejected | disabled
    reason: str = ""
    elapsed_ms: float | None = None


@dataclass(slots=True)
class ResolutionTrace:
    formula: str
    expected_total: int = 0
    attempts: List[TierAttempt] = field(default_factory=list)
    provenance: str | None = None
    valid: bool = False
    notes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def record(self, tier: str, outcome: str, reason: str = "", elapsed_ms: float | None = None) -> TierAttempt:
        attempt = TierAttempt(tier, outcome, reason, elapsed_ms)
        self.attempts.append(attempt)
        return attempt

    @property
    def accepted_tier(self) -> str | None:
        for a in self.attempts:
            if a.outcome == ACCEPTED:
                return a.tier
        return None

    def outcome_of(self, tier: str) -> str | None:
        for a in self.attempts:
            if a.tier == tier:
                return a.outcome
        return None

    def kv_pairs(self) -> list[tuple[str, str]]:
        base = [
            ("formula", self.formula),
            ("expected_atoms", str(self.expected_total)),
            ("provenance", str(self.provenance)),
            ("valid", str(self.valid)),
        ]
        for a in self.attempts:
            value = a.outcome if not a.reason else f"{a.outcome} ({a.reason})"
            base.append((f"tier.{a.tier}", value))
        return base

    def log(self, step: str = "pipeline") -> None:
        if tables_enabled():
            log_table(step, "decisions", "resolution summary", self.kv_pairs(), logger.info, width=48)
            log_table(step, "decisions", "notes", [(f"note[{i}]", n) for i, n in enumerate(self.notes)], logger.info)
        for w in self.warnings:
            logger.warning(f"[{step}][warn] {w}")


__all__ = [
    "ACCEPTED",
    "DISABLED",
    "REJECTED",
    "SKIPPED",
    "ResolutionTrace",
    "TierAttempt",
]
