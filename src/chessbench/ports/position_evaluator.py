"""Port interface for position evaluators."""

# pylint: disable=too-few-public-methods

from __future__ import annotations

from typing import Protocol, runtime_checkable

import chess

from chessbench.engine_result import EvaluationResult


class PositionEvaluator(Protocol):
    """Scores a position at a requested search depth."""

    def evaluate(
        self,
        board: chess.Board,
        depth: int,
        require_exact_depth: bool = False,
    ) -> EvaluationResult:
        """Return the evaluation of ``board`` from white's point of view."""


@runtime_checkable
class RestartableEvaluator(Protocol):
    """Evaluator that can recycle its underlying process."""

    def restart(self) -> None:
        """Restart the evaluator process."""
