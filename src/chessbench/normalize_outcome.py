"""Map both predictors' raw outputs onto the three-way outcome space."""

from __future__ import annotations

from chessbench.engine_result import EvaluationResult
from chessbench.models import Outcome, parse_outcome
from chessbench.ports.pattern_predictor import PatternPrediction
from chessbench.utils.logger import funclogger

DECISIVE_CP = 50
LEANING_CP = 15
MATE_CONFIDENCE = 99.0
MAX_DECISIVE_CONFIDENCE = 95.0


@funclogger
def evaluation_to_prediction(result: EvaluationResult) -> tuple[Outcome, float]:
    """Return the predicted outcome and a 0..100 confidence for an evaluation.

    Scores are centipawns from white's point of view. A forced mate predicts
    the mating side; beyond +/-50cp the leading side; beyond +/-15cp the
    leading side with lower confidence; anything closer is a draw.

    Example:
        >>> evaluation_to_prediction(EvaluationResult(score_cp=120, depth_reached=20))
        (<Outcome.WHITE_WINS: 'white'>, 65.0)
    """
    if result.is_mate and result.mate_in is not None:
        winner = Outcome.WHITE_WINS if result.mate_in > 0 else Outcome.BLACK_WINS
        if result.mate_in == 0:
            winner = Outcome.WHITE_WINS if result.score_cp > 0 else Outcome.BLACK_WINS
        return winner, MATE_CONFIDENCE
    cp = result.score_cp
    magnitude = abs(cp)
    side = Outcome.WHITE_WINS if cp > 0 else Outcome.BLACK_WINS
    if magnitude > DECISIVE_CP:
        return side, round(min(MAX_DECISIVE_CONFIDENCE, 50 + magnitude / 8), 2)
    if magnitude > LEANING_CP:
        return side, round(40 + magnitude / 2, 2)
    return Outcome.DRAW, round(35 + (LEANING_CP - magnitude) * 2, 2)


@funclogger
def pattern_to_prediction(prediction: PatternPrediction) -> tuple[Outcome, float]:
    """Return the pattern predictor's outcome and a 0..100 confidence.

    Unrecognized labels fall back to a draw. Confidence given as a 0..1
    fraction is scaled to a percentage.
    """
    outcome = parse_outcome(prediction.outcome) or Outcome.DRAW
    confidence = prediction.confidence * 100 if prediction.confidence <= 1 else prediction.confidence
    return outcome, round(min(max(confidence, 0.0), 100.0), 2)
