import time

import pytest

from chessbench.dual_predictor import DualPredictor, EvaluatorConfig
from chessbench.engine_result import EvaluationResult
from chessbench.errors import EvaluatorError, EvaluatorTimeout
from chessbench.models import Outcome
from chessbench.position_resolver import PositionResolver
from chessbench.run_config import CutoffRange
from tests.fakes import FixedPatternPredictor, StubEvaluator, make_record

CUTOFFS = CutoffRange(min_move=4, max_move=10)
CONFIG = EvaluatorConfig(depth=12, timeout_s=2.0)


def _resolved(native_id: str = "g1"):
    return PositionResolver(seed="dual").resolve(make_record(native_id), CUTOFFS)


def test_both_predictions_are_normalized() -> None:
    evaluator = StubEvaluator([EvaluationResult(score_cp=-200, depth_reached=12)])
    pattern = FixedPatternPredictor(outcome="1-0", archetype="kingside_attack", confidence=0.76)
    dual = DualPredictor(pattern, evaluator)
    resolved = _resolved()

    prediction = dual.predict(resolved, CONFIG)
    dual.close()

    assert prediction.game_id == "fx_g1"
    assert prediction.pattern_prediction is Outcome.WHITE_WINS
    assert prediction.pattern_confidence == 76.0
    assert prediction.pattern_archetype == "kingside_attack"
    assert prediction.evaluator_prediction is Outcome.BLACK_WINS
    assert prediction.evaluator_score == -200
    assert prediction.evaluator_depth_reached == 12
    assert prediction.cutoff_move == resolved.cutoff_move
    assert prediction.position_fen == resolved.fen
    assert pattern.prefixes == [resolved.move_prefix]
    assert not prediction.predictions_agree


def test_evaluator_receives_depth_and_exact_flag() -> None:
    evaluator = StubEvaluator()
    dual = DualPredictor(FixedPatternPredictor(), evaluator)
    resolved = _resolved()

    dual.predict(resolved, EvaluatorConfig(depth=40, timeout_s=2.0, require_exact_depth=True))
    dual.close()

    assert evaluator.calls == [(resolved.fen, 40, True)]


def test_slow_evaluator_times_out_and_next_call_is_not_blocked() -> None:
    evaluator = StubEvaluator(["timeout", None], hang_s=1.0)
    dual = DualPredictor(FixedPatternPredictor(), evaluator)
    config = EvaluatorConfig(depth=8, timeout_s=0.05)

    started = time.monotonic()
    with pytest.raises(EvaluatorTimeout) as excinfo:
        dual.predict(_resolved("slow"), config)
    assert time.monotonic() - started < 0.9
    assert excinfo.value.timeout_s == 0.05

    prediction = dual.predict(_resolved("fast"), EvaluatorConfig(depth=8, timeout_s=0.5))
    dual.close()
    assert prediction.game_id == "fx_fast"


def test_evaluator_errors_are_wrapped() -> None:
    dual = DualPredictor(FixedPatternPredictor(), StubEvaluator([OSError("pipe closed")]))

    with pytest.raises(EvaluatorError, match="OSError"):
        dual.predict(_resolved(), CONFIG)
    dual.close()


def test_evaluator_error_passes_through() -> None:
    error = EvaluatorError("depth not reached")
    dual = DualPredictor(FixedPatternPredictor(), StubEvaluator([error]))

    with pytest.raises(EvaluatorError) as excinfo:
        dual.predict(_resolved(), CONFIG)
    dual.close()
    assert excinfo.value is error


def test_pattern_predictor_failure_propagates() -> None:
    dual = DualPredictor(FixedPatternPredictor(error=ZeroDivisionError("bug")), StubEvaluator())

    with pytest.raises(ZeroDivisionError):
        dual.predict(_resolved(), CONFIG)
    dual.close()
