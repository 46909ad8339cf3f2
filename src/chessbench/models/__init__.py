"""Domain models for benchmark runs."""

from chessbench.models.game_record import GameRecord, build_game_id, strip_source_prefix
from chessbench.models.outcome import Agreement, GameSourceName, Outcome, parse_outcome
from chessbench.models.prediction_attempt import DualPrediction, PredictionAttempt
from chessbench.models.run_aggregate import ArchetypeTally, RunAggregate, RunPhase
from chessbench.models.run_state import RunState, SkipReason

__all__ = [
    "Agreement",
    "ArchetypeTally",
    "DualPrediction",
    "GameRecord",
    "GameSourceName",
    "Outcome",
    "PredictionAttempt",
    "RunAggregate",
    "RunPhase",
    "RunState",
    "SkipReason",
    "build_game_id",
    "parse_outcome",
    "strip_source_prefix",
]
