"""Run-level aggregate statistics."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from chessbench.models.outcome import Agreement
from chessbench.models.prediction_attempt import PredictionAttempt
from chessbench.utils.now import Now

FULL_DEPTH_RATIO = 0.95


class RunPhase(StrEnum):
    INITIALIZING = "initializing"
    FETCHING_FIRST_BATCH = "fetching_first_batch"
    LOOPING = "looping"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_PHASES


_TERMINAL_PHASES = frozenset(
    {RunPhase.COMPLETED, RunPhase.EXHAUSTED, RunPhase.CANCELLED, RunPhase.FAILED}
)


class ArchetypeTally(BaseModel):
    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        return (self.correct / self.total * 100) if self.total else 0.0


class RunAggregate(BaseModel):
    """Summary row for one run, upserted by ``run_id`` as the run progresses."""

    run_id: str
    target_count: int
    completed_count: int = 0
    pattern_correct: int = 0
    evaluator_correct: int = 0
    both_correct_count: int = 0
    both_wrong_count: int = 0
    pattern_only_count: int = 0
    evaluator_only_count: int = 0
    archetype_performance: dict[str, ArchetypeTally] = Field(default_factory=dict)
    depth_total: int = 0
    max_depth: int = 0
    min_depth: int | None = None
    full_depth_count: int = 0
    status: RunPhase = RunPhase.INITIALIZING
    started_at: datetime = Field(default_factory=Now.as_datetime)
    updated_at: datetime = Field(default_factory=Now.as_datetime)

    @property
    def pattern_accuracy(self) -> float:
        return self._percent(self.pattern_correct)

    @property
    def evaluator_accuracy(self) -> float:
        return self._percent(self.evaluator_correct)

    @property
    def average_depth(self) -> float:
        return self.depth_total / self.completed_count if self.completed_count else 0.0

    @property
    def depth_accuracy(self) -> float:
        return self._percent(self.full_depth_count)

    def _percent(self, count: int) -> float:
        return count / self.completed_count * 100 if self.completed_count else 0.0

    def record(self, attempt: PredictionAttempt, requested_depth: int) -> None:
        """Fold one scored attempt into the running totals."""
        self.completed_count += 1
        self.pattern_correct += int(attempt.pattern_correct)
        self.evaluator_correct += int(attempt.evaluator_correct)
        match attempt.agreement:
            case Agreement.CONSENSUS:
                self.both_correct_count += 1
            case Agreement.PATTERN_ONLY:
                self.pattern_only_count += 1
            case Agreement.EVALUATOR_ONLY:
                self.evaluator_only_count += 1
            case Agreement.BOTH_WRONG:
                self.both_wrong_count += 1

        tally = self.archetype_performance.setdefault(attempt.pattern_archetype, ArchetypeTally())
        tally.total += 1
        tally.correct += int(attempt.pattern_correct)

        depth = attempt.evaluator_depth_reached
        self.depth_total += depth
        self.max_depth = max(self.max_depth, depth)
        self.min_depth = depth if self.min_depth is None else min(self.min_depth, depth)
        if depth >= requested_depth * FULL_DEPTH_RATIO:
            self.full_depth_count += 1
        self.updated_at = Now.as_datetime()

    def mark(self, phase: RunPhase) -> None:
        self.status = phase
        self.updated_at = Now.as_datetime()
