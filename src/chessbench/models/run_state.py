"""Mutable per-run state threaded through the benchmark loop."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum

from chessbench.models.run_aggregate import RunAggregate, RunPhase


class SkipReason(StrEnum):
    MALFORMED = "malformed"
    EVALUATOR_TIMEOUT = "evaluator_timeout"
    EVALUATOR_ERROR = "evaluator_error"
    SESSION_DUPLICATE = "session_duplicate"
    PERSISTED_DUPLICATE = "persisted_duplicate"


@dataclass(slots=True)
class RunState:
    aggregate: RunAggregate
    skip_counts: Counter[SkipReason] = field(default_factory=Counter)
    consecutive_evaluator_failures: int = 0
    archetypes_seen: set[str] = field(default_factory=set)

    @property
    def run_id(self) -> str:
        return self.aggregate.run_id

    @property
    def phase(self) -> RunPhase:
        return self.aggregate.status

    @property
    def target_reached(self) -> bool:
        return self.aggregate.completed_count >= self.aggregate.target_count

    def enter(self, phase: RunPhase) -> None:
        self.aggregate.mark(phase)

    def skip(self, reason: SkipReason) -> None:
        self.skip_counts[reason] += 1
