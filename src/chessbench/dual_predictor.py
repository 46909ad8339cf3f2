"""Run the pattern predictor and the position evaluator on the same position."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass

from chessbench.engine_result import EvaluationResult
from chessbench.errors import EvaluatorError, EvaluatorTimeout
from chessbench.models import DualPrediction
from chessbench.normalize_outcome import evaluation_to_prediction, pattern_to_prediction
from chessbench.ports.pattern_predictor import PatternPredictor
from chessbench.ports.position_evaluator import PositionEvaluator
from chessbench.position_resolver import ResolvedPosition
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class EvaluatorConfig:
    depth: int
    timeout_s: float
    require_exact_depth: bool = False


class DualPredictor:
    """Produce both predictions for one resolved position.

    The pattern predictor runs inline and its exceptions propagate: it is a
    pure function and a failure there is a bug. The evaluator runs on a
    single worker thread raced against ``timeout_s``. A call that overruns
    is abandoned rather than interrupted, and later calls get a fresh worker
    so they are not queued behind it.
    """

    def __init__(self, pattern_predictor: PatternPredictor, evaluator: PositionEvaluator) -> None:
        self._pattern_predictor = pattern_predictor
        self._evaluator = evaluator
        self._executor = self._new_executor()

    @property
    def evaluator(self) -> PositionEvaluator:
        return self._evaluator

    def predict(self, resolved: ResolvedPosition, config: EvaluatorConfig) -> DualPrediction:
        """Return both normalized predictions for ``resolved``.

        Raises:
            EvaluatorTimeout: The evaluator did not answer within the timeout.
            EvaluatorError: The evaluator raised.
        """
        pattern = self._pattern_predictor.predict(resolved.move_prefix)
        pattern_outcome, pattern_confidence = pattern_to_prediction(pattern)

        evaluation = self._evaluate(resolved, config)
        evaluator_outcome, evaluator_confidence = evaluation_to_prediction(evaluation)

        return DualPrediction(
            game_id=resolved.record.game_id,
            position_fen=resolved.fen,
            position_hash=resolved.position_hash,
            cutoff_move=resolved.cutoff_move,
            pattern_prediction=pattern_outcome,
            pattern_confidence=pattern_confidence,
            pattern_archetype=pattern.archetype,
            evaluator_prediction=evaluator_outcome,
            evaluator_confidence=evaluator_confidence,
            evaluator_score=evaluation.score_cp,
            evaluator_depth_reached=evaluation.depth_reached,
            evaluator_mate_in=evaluation.mate_in,
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _evaluate(self, resolved: ResolvedPosition, config: EvaluatorConfig) -> EvaluationResult:
        future: Future[EvaluationResult] = self._executor.submit(
            self._evaluator.evaluate,
            resolved.board.copy(),
            config.depth,
            config.require_exact_depth,
        )
        try:
            return future.result(timeout=config.timeout_s)
        except FutureTimeoutError as exc:
            logger.warning(
                "Evaluator timed out after %.1fs on %s", config.timeout_s, resolved.record.game_id
            )
            self._abandon_worker()
            raise EvaluatorTimeout(config.timeout_s) from exc
        except EvaluatorError:
            raise
        except Exception as exc:
            raise EvaluatorError(f"{type(exc).__name__}: {exc}") from exc

    def _abandon_worker(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = self._new_executor()

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="evaluator")
