"""Per-record prediction payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from chessbench.models.outcome import Agreement, GameSourceName, Outcome


class DualPrediction(BaseModel):
    """Both predictors' answers for one position, before scoring."""

    model_config = ConfigDict(frozen=True)

    game_id: str
    position_fen: str
    position_hash: str
    cutoff_move: int
    pattern_prediction: Outcome
    pattern_confidence: float = Field(ge=0, le=100)
    pattern_archetype: str
    evaluator_prediction: Outcome
    evaluator_confidence: float = Field(ge=0, le=100)
    evaluator_score: int
    evaluator_depth_reached: int
    evaluator_mate_in: int | None = None

    @property
    def predictions_agree(self) -> bool:
        return self.pattern_prediction == self.evaluator_prediction

    def score(
        self,
        actual: Outcome,
        run_id: str,
        source: GameSourceName,
        time_control: str | None = None,
        game_strength_fide: int | None = None,
    ) -> PredictionAttempt:
        """Fill in the ground truth and return the persistable attempt."""
        pattern_correct = self.pattern_prediction == actual
        evaluator_correct = self.evaluator_prediction == actual
        return PredictionAttempt(
            **self.model_dump(),
            run_id=run_id,
            actual_outcome=actual,
            pattern_correct=pattern_correct,
            evaluator_correct=evaluator_correct,
            agreement=Agreement.classify(pattern_correct, evaluator_correct),
            source=source,
            time_control=time_control,
            game_strength_fide=game_strength_fide,
        )


class PredictionAttempt(DualPrediction):
    """The unit persisted per scored record. Written once, keyed by ``game_id``."""

    run_id: str
    actual_outcome: Outcome
    pattern_correct: bool
    evaluator_correct: bool
    agreement: Agreement
    source: GameSourceName
    time_control: str | None = None
    game_strength_fide: int | None = None

    def to_row(self) -> dict[str, object]:
        """Return a flat dict with enum values as plain strings."""
        return self.model_dump(mode="json")
