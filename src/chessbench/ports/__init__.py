"""Port interfaces for the benchmark pipeline."""

from chessbench.ports.game_source import GameSource
from chessbench.ports.pattern_predictor import PatternPrediction, PatternPredictor
from chessbench.ports.position_evaluator import PositionEvaluator, RestartableEvaluator
from chessbench.ports.result_store import ResultStore
from chessbench.ports.unit_of_work import UnitOfWork

__all__ = [
    "GameSource",
    "PatternPrediction",
    "PatternPredictor",
    "PositionEvaluator",
    "RestartableEvaluator",
    "ResultStore",
    "UnitOfWork",
]
