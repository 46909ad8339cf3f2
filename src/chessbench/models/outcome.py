"""Outcome, source and agreement enums shared across the pipeline."""

from __future__ import annotations

from enum import StrEnum


class Outcome(StrEnum):
    WHITE_WINS = "white"
    BLACK_WINS = "black"
    DRAW = "draw"


class GameSourceName(StrEnum):
    LICHESS = "lichess"
    CHESSCOM = "chesscom"
    FIXTURE = "fixture"

    @property
    def id_prefix(self) -> str:
        return _ID_PREFIXES[self]


class Agreement(StrEnum):
    """How the two predictors fared against the actual result."""

    CONSENSUS = "consensus"
    PATTERN_ONLY = "pattern_only"
    EVALUATOR_ONLY = "evaluator_only"
    BOTH_WRONG = "both_wrong"

    @classmethod
    def classify(cls, pattern_correct: bool, evaluator_correct: bool) -> Agreement:
        if pattern_correct and evaluator_correct:
            return cls.CONSENSUS
        if pattern_correct:
            return cls.PATTERN_ONLY
        if evaluator_correct:
            return cls.EVALUATOR_ONLY
        return cls.BOTH_WRONG


_ID_PREFIXES = {
    GameSourceName.LICHESS: "li_",
    GameSourceName.CHESSCOM: "cc_",
    GameSourceName.FIXTURE: "fx_",
}

_OUTCOME_ALIASES = {
    "1-0": Outcome.WHITE_WINS,
    "white": Outcome.WHITE_WINS,
    "white_wins": Outcome.WHITE_WINS,
    "0-1": Outcome.BLACK_WINS,
    "black": Outcome.BLACK_WINS,
    "black_wins": Outcome.BLACK_WINS,
    "1/2-1/2": Outcome.DRAW,
    "½-½": Outcome.DRAW,
    "draw": Outcome.DRAW,
}


def parse_outcome(value: object) -> Outcome | None:
    """Map a PGN result or winner label onto an `Outcome`.

    Unknown or unfinished results (``*``, empty, ``None``) map to ``None``.

    Example:
        >>> parse_outcome("0-1")
        <Outcome.BLACK_WINS: 'black'>
    """
    if value is None:
        return None
    if isinstance(value, Outcome):
        return value
    return _OUTCOME_ALIASES.get(str(value).strip().lower())
