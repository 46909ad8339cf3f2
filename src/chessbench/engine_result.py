from __future__ import annotations

from dataclasses import dataclass
from typing import cast

import chess
import chess.engine

MATE_SCORE = 100000


@dataclass(slots=True)
class EvaluationResult:
    """Evaluator output for one position, scored from white's point of view."""

    score_cp: int
    depth_reached: int
    is_mate: bool = False
    mate_in: int | None = None
    best_move: chess.Move | None = None

    @classmethod
    def from_engine_result(
        cls,
        result: chess.engine.InfoDict | chess.engine.AnalysisResult | list[chess.engine.InfoDict],
    ) -> EvaluationResult:
        info = _select_engine_info(result)
        white_score = _white_score(info.get("score"))
        if white_score is None:
            return cls(score_cp=0, depth_reached=_depth_from_info(info))
        value, mate_in = _score_value_and_mate(white_score)
        return cls(
            score_cp=value,
            depth_reached=_depth_from_info(info),
            is_mate=mate_in is not None,
            mate_in=mate_in,
            best_move=_best_move_from_info(info),
        )


def _select_engine_info(
    result: chess.engine.InfoDict | chess.engine.AnalysisResult | list[chess.engine.InfoDict],
) -> chess.engine.InfoDict:
    if isinstance(result, list):
        items = cast(list[chess.engine.InfoDict], result)
        if not items:
            return {}
        return next((item for item in items if item.get("multipv") == 1), items[0])
    return result.info if isinstance(result, chess.engine.AnalysisResult) else result


def _white_score(
    score: chess.engine.Score | chess.engine.PovScore | None,
) -> chess.engine.Score | None:
    if score is None:
        return None
    if isinstance(score, chess.engine.PovScore):
        return score.white()
    if isinstance(score, chess.engine.Score):
        return score
    return None


def _score_value_and_mate(score: chess.engine.Score) -> tuple[int, int | None]:
    mate_in = score.mate()
    value = score.score(mate_score=MATE_SCORE)
    return int(value or 0), mate_in


def _best_move_from_info(info: chess.engine.InfoDict) -> chess.Move | None:
    pv = info.get("pv") or []
    return pv[0] if pv else None


def _depth_from_info(info: chess.engine.InfoDict) -> int:
    return int(info.get("depth", 0) or 0)
