from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import chess

from chessbench.cancellation import CancellationToken
from chessbench.chess_clients.game_batch import GameBatch, GameBatchRequest
from chessbench.engine_result import EvaluationResult
from chessbench.errors import StoreWriteError
from chessbench.models import (
    DualPrediction,
    GameRecord,
    GameSourceName,
    Outcome,
    PredictionAttempt,
    RunAggregate,
    build_game_id,
)
from chessbench.ports.pattern_predictor import PatternPrediction

KNIGHT_SHUFFLE = " ".join(f"{2 * i + 1}. Nf3 Nf6 {2 * i + 2}. Ng1 Ng8" for i in range(10))


def make_record(
    native_id: str,
    outcome: Outcome | None = Outcome.WHITE_WINS,
    *,
    source: GameSourceName = GameSourceName.FIXTURE,
    move_text: str = KNIGHT_SHUFFLE,
    **metadata: object,
) -> GameRecord:
    return GameRecord(
        game_id=build_game_id(source, native_id, move_text),
        source=source,
        move_text=move_text,
        outcome=outcome,
        metadata=metadata,
    )


def make_records(prefix: str, count: int, **kwargs: object) -> list[GameRecord]:
    return [make_record(f"{prefix}{index}", **kwargs) for index in range(count)]


class ScriptedFetcher:
    """Return pre-scripted batches, filtered by the exclusion set like a real source."""

    def __init__(self, batches: Iterable[list[GameRecord] | Exception]) -> None:
        self._batches = list(batches)
        self.calls: list[tuple[int, frozenset[str]]] = []

    def fetch(self, target_count: int, exclude_ids: Iterable[str]) -> list[GameRecord]:
        excluded = frozenset(exclude_ids)
        self.calls.append((target_count, excluded))
        if not self._batches:
            return []
        batch = self._batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return [record for record in batch if record.game_id not in excluded]


@dataclass
class StubGameSource:
    name: str
    batches: list[list[GameRecord] | Exception] = field(default_factory=list)
    requests: list[GameBatchRequest] = field(default_factory=list)

    def fetch_batch(self, request: GameBatchRequest) -> GameBatch:
        self.requests.append(request)
        if not self.batches:
            return GameBatch(records=[], next_cursor=request.cursor)
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return GameBatch(records=batch, next_cursor=str(len(self.requests)))


class InMemoryResultStore:
    """Result store fake that records every write and can be told to fail."""

    def __init__(self, recorded: Iterable[str] = ()) -> None:
        self.attempts: dict[str, PredictionAttempt] = {}
        self.preexisting: set[str] = set(recorded)
        self.runs: dict[str, RunAggregate] = {}
        self.write_log: list[list[str]] = []
        self.fail_next_writes = 0
        self.fail_all_writes = False
        self.failed_writes = 0

    @property
    def written_ids(self) -> list[str]:
        return [game_id for batch in self.write_log for game_id in batch]

    def has_recorded(self, game_id: str) -> bool:
        return game_id in self.attempts or game_id in self.preexisting

    def load_recorded_ids(self) -> set[str]:
        return set(self.attempts) | self.preexisting

    def upsert_attempt(self, attempt: PredictionAttempt) -> None:
        self.upsert_attempts([attempt])

    def upsert_attempts(
        self,
        attempts: Sequence[PredictionAttempt],
        aggregate: RunAggregate | None = None,
    ) -> list[str]:
        self._maybe_fail()
        ids = [attempt.game_id for attempt in attempts]
        self.write_log.append(ids)
        for attempt in attempts:
            self.attempts.setdefault(attempt.game_id, attempt)
        if aggregate is not None:
            self.runs[aggregate.run_id] = aggregate.model_copy(deep=True)
        return ids

    def upsert_run_aggregate(self, run_id: str, aggregate: RunAggregate) -> None:
        self._maybe_fail()
        self.runs[run_id] = aggregate.model_copy(deep=True)

    def _maybe_fail(self) -> None:
        if self.fail_all_writes or self.fail_next_writes > 0:
            self.fail_next_writes = max(0, self.fail_next_writes - 1)
            self.failed_writes += 1
            raise StoreWriteError("store unavailable")


class StubEvaluator:
    """Evaluator fake driven by a per-call script.

    Script entries: an `EvaluationResult`, ``"timeout"`` (sleeps past any
    test timeout), an exception instance to raise, or ``None`` for the
    default result.
    """

    def __init__(
        self,
        script: Iterable[object] = (),
        *,
        score_cp: int = 120,
        hang_s: float = 0.5,
    ) -> None:
        self._script = list(script)
        self.score_cp = score_cp
        self.hang_s = hang_s
        self.calls: list[tuple[str, int, bool]] = []
        self.restarts = 0

    def evaluate(
        self,
        board: chess.Board,
        depth: int,
        require_exact_depth: bool = False,
    ) -> EvaluationResult:
        self.calls.append((board.fen(), depth, require_exact_depth))
        step = self._script.pop(0) if self._script else None
        if step == "timeout":
            time.sleep(self.hang_s)
            return EvaluationResult(score_cp=self.score_cp, depth_reached=depth)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, EvaluationResult):
            return step
        return EvaluationResult(score_cp=self.score_cp, depth_reached=depth)

    def restart(self) -> None:
        self.restarts += 1


class PlainEvaluator:
    """Evaluator without a restart hook."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def evaluate(
        self,
        board: chess.Board,
        depth: int,
        require_exact_depth: bool = False,
    ) -> EvaluationResult:
        if self.error is not None:
            raise self.error
        return EvaluationResult(score_cp=0, depth_reached=depth)


class FixedPatternPredictor:
    def __init__(
        self,
        outcome: str = "white",
        archetype: str = "tactical_storm",
        confidence: float = 0.8,
        error: Exception | None = None,
    ) -> None:
        self.outcome = outcome
        self.archetype = archetype
        self.confidence = confidence
        self.error = error
        self.prefixes: list[list[str]] = []

    def predict(self, move_prefix: Sequence[str]) -> PatternPrediction:
        self.prefixes.append(list(move_prefix))
        if self.error is not None:
            raise self.error
        return PatternPrediction(
            outcome=self.outcome, archetype=self.archetype, confidence=self.confidence
        )


class FakeSleep:
    """Records backoff delays instead of sleeping; can cancel after N sleeps."""

    def __init__(
        self,
        cancellation: CancellationToken | None = None,
        cancel_after: int | None = None,
    ) -> None:
        self.delays: list[float] = []
        self._cancellation = cancellation
        self._cancel_after = cancel_after

    def __call__(self, seconds: float) -> bool:
        self.delays.append(seconds)
        if (
            self._cancellation is not None
            and self._cancel_after is not None
            and len(self.delays) >= self._cancel_after
        ):
            self._cancellation.cancel()
            return True
        return False


def make_attempt(
    game_id: str,
    *,
    run_id: str = "run-1",
    actual: Outcome = Outcome.WHITE_WINS,
    pattern: Outcome = Outcome.WHITE_WINS,
    evaluator: Outcome = Outcome.DRAW,
    depth: int = 12,
    archetype: str = "risk_taker",
) -> PredictionAttempt:
    prediction = DualPrediction(
        game_id=game_id,
        position_fen="8/8/8/8/8/8/8/K6k w - - 0 1",
        position_hash="abc",
        cutoff_move=20,
        pattern_prediction=pattern,
        pattern_confidence=70.0,
        pattern_archetype=archetype,
        evaluator_prediction=evaluator,
        evaluator_confidence=50.0,
        evaluator_score=0,
        evaluator_depth_reached=depth,
    )
    return prediction.score(actual, run_id=run_id, source=GameSourceName.FIXTURE)
