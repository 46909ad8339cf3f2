"""Validated parameters for one benchmark run."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chessbench.backoff_policy import BackoffPolicy


class CutoffRange(BaseModel):
    """Inclusive ply range the prediction position is drawn from."""

    model_config = ConfigDict(frozen=True)

    min_move: int = Field(ge=1)
    max_move: int = Field(ge=1)

    @model_validator(mode="after")
    def _min_below_max(self) -> CutoffRange:
        if self.min_move >= self.max_move:
            raise ValueError("cutoff_range.min_move must be < cutoff_range.max_move")
        return self


class RunConfig(BaseModel):
    """Benchmark run configuration.

    Attributes:
        target_count: Successful predictions the run aims for.
        evaluator_depth: Search depth requested from the evaluator.
        cutoff_range: Ply range for the prediction position.
        flush_interval: Persist every N successful predictions.
        max_empty_batches: Consecutive empty refills before the queue gives up.
        max_refill_attempts: Total refills allowed per run.
            Defaults to ``max(50, ceil(target_count / 2))``.
        batch_size: Records requested per refill.
            Defaults to ``max(200, target_count * 5)``.
        evaluator_timeout_s: Wall-clock budget for one evaluator call.
        cutoff_fraction: Upper bound on the cutoff as a share of the game length.
        min_legal_moves: Minimum replayable plies for a record to be scorable.
        exact_depth_threshold: Depth at or above which the evaluator must
            reach the full requested depth.
        engine_restart_threshold: Consecutive evaluator failures before a restart.
        backoff: Delay schedule between empty refills.
        seed: Seed mixed into the per-record cutoff choice.
    """

    model_config = ConfigDict(frozen=True)

    target_count: int = Field(gt=0)
    evaluator_depth: int = Field(gt=0)
    cutoff_range: CutoffRange = Field(default_factory=lambda: CutoffRange(min_move=20, max_move=40))
    flush_interval: int = Field(default=5, ge=1)
    max_empty_batches: int = Field(default=25, ge=1)
    max_refill_attempts: int | None = Field(default=None, ge=1)
    batch_size: int | None = Field(default=None, ge=1)
    evaluator_timeout_s: float = Field(default=45.0, gt=0)
    cutoff_fraction: float = Field(default=0.6, gt=0, le=1)
    min_legal_moves: int = Field(default=4, ge=1)
    exact_depth_threshold: int = Field(default=40, ge=1)
    engine_restart_threshold: int = Field(default=3, ge=1)
    backoff: BackoffPolicy = Field(default_factory=BackoffPolicy)
    seed: str = "chessbench"

    @property
    def refill_budget(self) -> int:
        if self.max_refill_attempts is not None:
            return self.max_refill_attempts
        return max(50, math.ceil(self.target_count / 2))

    @property
    def fetch_size(self) -> int:
        if self.batch_size is not None:
            return self.batch_size
        return max(200, self.target_count * 5)

    @property
    def require_exact_depth(self) -> bool:
        return self.evaluator_depth >= self.exact_depth_threshold
