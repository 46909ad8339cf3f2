"""Top-level benchmark loop: fetch, resolve, predict, score, persist."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from chessbench.cancellation import CancellationToken
from chessbench.config import Settings, get_settings
from chessbench.dual_predictor import DualPredictor, EvaluatorConfig
from chessbench.elo_calibration import game_strength_fide
from chessbench.emit_progress__pipeline import ProgressCallback, _emit_progress
from chessbench.errors import (
    EvaluatorError,
    EvaluatorTimeout,
    MalformedRecordError,
    NoFreshGamesError,
)
from chessbench.exclusion_ledger import ExclusionLedger
from chessbench.incremental_persister import IncrementalPersister
from chessbench.models import (
    GameRecord,
    PredictionAttempt,
    RunAggregate,
    RunPhase,
    RunState,
    SkipReason,
)
from chessbench.ports.pattern_predictor import PatternPredictor
from chessbench.ports.position_evaluator import PositionEvaluator, RestartableEvaluator
from chessbench.ports.result_store import ResultStore
from chessbench.position_resolver import PositionResolver
from chessbench.queue_controller import GameFetcher, QueueController, SleepFn
from chessbench.run_config import RunConfig
from chessbench.utils.generate_id import generate_run_id
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)

PredictionCallback = Callable[[PredictionAttempt], None]


@dataclass(slots=True)
class BenchmarkResult:
    """What a finished run reports back to its caller."""

    run_id: str
    phase: RunPhase
    aggregate: RunAggregate
    skip_counts: dict[str, int]
    archetypes_seen: frozenset[str]
    lost_attempts: int = 0

    @property
    def completed_count(self) -> int:
        return self.aggregate.completed_count

    @property
    def target_reached(self) -> bool:
        return self.aggregate.completed_count >= self.aggregate.target_count


class RunController:
    """Drive one benchmark run through its phases.

    Records are processed one at a time in draw order. Per-record failures
    blacklist the record for the rest of the run and the loop moves on; any
    other exception, Ctrl-C included, triggers a single emergency flush and is
    re-raised unchanged even when that flush itself fails.
    """

    def __init__(
        self,
        store: ResultStore,
        fetcher: GameFetcher,
        pattern_predictor: PatternPredictor,
        evaluator: PositionEvaluator,
        config: RunConfig,
        *,
        progress: ProgressCallback | None = None,
        on_prediction: PredictionCallback | None = None,
        cancellation: CancellationToken | None = None,
        sleep: SleepFn | None = None,
        run_id: str | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._evaluator = evaluator
        self._dual = DualPredictor(pattern_predictor, evaluator)
        self._config = config
        self._progress = progress
        self._on_prediction = on_prediction
        self._cancellation = cancellation or CancellationToken()
        self._sleep = sleep
        self._resolver = PositionResolver(
            seed=config.seed,
            cutoff_fraction=config.cutoff_fraction,
            min_legal_moves=config.min_legal_moves,
        )
        self._evaluator_config = EvaluatorConfig(
            depth=config.evaluator_depth,
            timeout_s=config.evaluator_timeout_s,
            require_exact_depth=config.require_exact_depth,
        )
        self.run_id = run_id or generate_run_id()
        self.ledger = ExclusionLedger()
        self.persister = IncrementalPersister(store, config.flush_interval)
        self.state = RunState(
            aggregate=RunAggregate(run_id=self.run_id, target_count=config.target_count)
        )

    @property
    def cancellation(self) -> CancellationToken:
        return self._cancellation

    def cancel(self) -> None:
        self._cancellation.cancel()

    def run(self) -> BenchmarkResult:
        """Run to a terminal phase and return the result.

        Raises:
            NoFreshGamesError: The first refill found nothing and the queue
                gave up immediately.
        """
        state = self.state
        try:
            queue = self._initialize(state)
            self._fetch_first_batch(state, queue)
            self._loop(state, queue)
        except BaseException as exc:
            state.enter(RunPhase.FAILED)
            logger.error("Run %s failed: %r", self.run_id, exc)
            try:
                written = self.persister.emergency_flush(state.aggregate)
                self.ledger.mark_persisted(written)
            except Exception:
                logger.exception("Emergency flush for run %s failed", self.run_id)
            self._report(state, f"failed: {exc!r}")
            raise
        finally:
            self._dual.close()

        written = self.persister.final_flush(state.aggregate)
        self.ledger.mark_persisted(written)
        lost = self.persister.buffered
        logger.info(
            "Run %s finished %s: %s/%s predictions, pattern %.1f%%, evaluator %.1f%%",
            self.run_id,
            state.phase.value,
            state.aggregate.completed_count,
            state.aggregate.target_count,
            state.aggregate.pattern_accuracy,
            state.aggregate.evaluator_accuracy,
        )
        self._report(state, f"run {state.phase.value}")
        return BenchmarkResult(
            run_id=self.run_id,
            phase=state.phase,
            aggregate=state.aggregate,
            skip_counts={reason.value: count for reason, count in state.skip_counts.items()},
            archetypes_seen=frozenset(state.archetypes_seen),
            lost_attempts=lost,
        )

    def _initialize(self, state: RunState) -> QueueController:
        state.enter(RunPhase.INITIALIZING)
        self.ledger = ExclusionLedger.from_store(self._store)
        self._report(state, f"{len(self.ledger.persisted)} games already scored")
        return QueueController(
            self._fetcher,
            self.ledger,
            batch_size=self._config.fetch_size,
            max_empty_batches=self._config.max_empty_batches,
            max_refill_attempts=self._config.refill_budget,
            backoff=self._config.backoff,
            cancellation=self._cancellation,
            sleep=self._sleep,
        )

    def _fetch_first_batch(self, state: RunState, queue: QueueController) -> None:
        state.enter(RunPhase.FETCHING_FIRST_BATCH)
        queued = queue.refill()
        if queued == 0 and queue.exhausted:
            raise NoFreshGamesError("No unscored games available from any source")
        self._report(state, f"queued {queued} games")

    def _loop(self, state: RunState, queue: QueueController) -> None:
        state.enter(RunPhase.LOOPING)
        while not state.target_reached:
            if self._cancellation.cancelled:
                break
            record = queue.next_record()
            if record is None:
                break
            self._process(state, record)
        state.enter(self._terminal_phase(state))

    def _terminal_phase(self, state: RunState) -> RunPhase:
        if state.target_reached:
            return RunPhase.COMPLETED
        if self._cancellation.cancelled:
            return RunPhase.CANCELLED
        return RunPhase.EXHAUSTED

    def _process(self, state: RunState, record: GameRecord) -> None:
        game_id = record.game_id
        if self.ledger.is_persisted(game_id) or self._store.has_recorded(game_id):
            self.ledger.mark_persisted([game_id])
            state.skip(SkipReason.PERSISTED_DUPLICATE)
            return
        if self.ledger.is_excluded(game_id):
            state.skip(SkipReason.SESSION_DUPLICATE)
            return

        try:
            resolved = self._resolver.resolve(record, self._config.cutoff_range)
            prediction = self._dual.predict(resolved, self._evaluator_config)
        except MalformedRecordError as exc:
            self._skip(state, record, SkipReason.MALFORMED, exc)
            return
        except EvaluatorTimeout as exc:
            self._skip(state, record, SkipReason.EVALUATOR_TIMEOUT, exc)
            self._note_evaluator_failure(state)
            return
        except EvaluatorError as exc:
            self._skip(state, record, SkipReason.EVALUATOR_ERROR, exc)
            self._note_evaluator_failure(state)
            return
        state.consecutive_evaluator_failures = 0

        attempt = prediction.score(
            resolved.outcome,
            run_id=self.run_id,
            source=record.source,
            time_control=record.time_control,
            game_strength_fide=game_strength_fide(record),
        )
        self.ledger.mark_predicted(game_id)
        state.aggregate.record(attempt, self._config.evaluator_depth)
        state.archetypes_seen.add(attempt.pattern_archetype)
        self.persister.add(attempt)
        if self._on_prediction is not None:
            self._on_prediction(attempt)

        completed = state.aggregate.completed_count
        if self.persister.should_flush(completed):
            self.ledger.mark_persisted(self.persister.flush(state.aggregate))
        self._report(
            state,
            f"{game_id}: pattern {attempt.pattern_prediction.value}, "
            f"evaluator {attempt.evaluator_prediction.value}, "
            f"actual {attempt.actual_outcome.value}",
        )

    def _skip(
        self, state: RunState, record: GameRecord, reason: SkipReason, exc: Exception
    ) -> None:
        logger.warning("Skipping %s (%s): %s", record.game_id, reason.value, exc)
        self.ledger.mark_failed(record.game_id)
        state.skip(reason)

    def _note_evaluator_failure(self, state: RunState) -> None:
        state.consecutive_evaluator_failures += 1
        if state.consecutive_evaluator_failures < self._config.engine_restart_threshold:
            return
        if isinstance(self._evaluator, RestartableEvaluator):
            logger.warning(
                "Restarting evaluator after %s consecutive failures",
                state.consecutive_evaluator_failures,
            )
            self._evaluator.restart()
        state.consecutive_evaluator_failures = 0

    def _report(self, state: RunState, message: str) -> None:
        _emit_progress(
            self._progress,
            state.phase.value,
            phase=state.phase.value,
            completed=state.aggregate.completed_count,
            target=state.aggregate.target_count,
            message=message,
        )


def run_benchmark(
    settings: Settings | None = None,
    *,
    progress: ProgressCallback | None = None,
    on_prediction: PredictionCallback | None = None,
    cancellation: CancellationToken | None = None,
) -> BenchmarkResult:
    """Run one benchmark with the default sources, store and evaluator."""
    from chessbench.app.wiring import build_benchmark_dependencies  # noqa: PLC0415

    settings = settings or get_settings()
    dependencies = build_benchmark_dependencies(settings)
    try:
        controller = RunController(
            dependencies.store,
            dependencies.fetcher,
            dependencies.pattern_predictor,
            dependencies.evaluator,
            settings.run_config(),
            progress=progress,
            on_prediction=on_prediction,
            cancellation=cancellation,
        )
        return controller.run()
    finally:
        dependencies.close()
