"""Port interface for pattern predictors."""

# pylint: disable=too-few-public-methods

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class PatternPrediction:
    """Raw pattern predictor output.

    Attributes:
        outcome: Predicted result label (``white``, ``black``, ``draw`` or a PGN result).
        archetype: Qualitative label for the game shape.
        confidence: Confidence either as a 0..1 fraction or a 0..100 percentage.
    """

    outcome: str
    archetype: str
    confidence: float


class PatternPredictor(Protocol):
    """Stateless, deterministic predictor over a SAN move prefix."""

    def predict(self, move_prefix: Sequence[str]) -> PatternPrediction:
        """Predict the game result from the moves played so far."""
