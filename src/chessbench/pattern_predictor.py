"""Default move-sequence heuristic used as the pattern ("hybrid") predictor."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from chessbench.models import Outcome
from chessbench.ports.pattern_predictor import PatternPrediction
from chessbench.utils.logger import funclogger

DEFAULT_ARCHETYPE = "universal_player"
DEFAULT_CONFIDENCE = 0.6
MAX_CONFIDENCE = 0.9
DIRECTION_BONUS = 0.05


@dataclass(frozen=True, slots=True)
class MoveProfile:
    """Counts of move kinds over a SAN sequence."""

    move_count: int
    captures: int
    checks: int
    pawn_moves: int
    queen_moves: int
    knight_moves: int
    bishop_moves: int
    rook_moves: int
    promotions: int
    kingside_castle: bool
    queenside_castle: bool
    exchange_runs: int

    @classmethod
    def from_moves(cls, moves: Sequence[str]) -> MoveProfile:
        return cls(
            move_count=max(len(moves), 1),
            captures=sum("x" in m for m in moves),
            checks=sum("+" in m or "#" in m for m in moves),
            pawn_moves=sum(m[:1].islower() and "x" not in m and "=" not in m for m in moves),
            queen_moves=sum(m.startswith("Q") for m in moves),
            knight_moves=sum(m.startswith("N") for m in moves),
            bishop_moves=sum(m.startswith("B") for m in moves),
            rook_moves=sum(m.startswith("R") for m in moves),
            promotions=sum("=" in m for m in moves),
            kingside_castle=any(m.rstrip("+#") == "O-O" for m in moves),
            queenside_castle=any(m.rstrip("+#") == "O-O-O" for m in moves),
            exchange_runs=_exchange_runs(moves),
        )

    def ratio(self, count: int) -> float:
        return count / self.move_count


def _exchange_runs(moves: Sequence[str]) -> int:
    """Count middlegame captures that start a run of two or more captures in three plies."""
    return sum(
        1
        for index, move in enumerate(moves)
        if index > 20 and "x" in move and sum("x" in m for m in moves[index : index + 3]) >= 2
    )


@funclogger
def classify_archetype(profile: MoveProfile) -> tuple[str, float]:
    """Return the archetype label and base confidence (0..1) for a move profile.

    Later rules override earlier ones, so endgame, exchange and style
    signals win over the tactical and positional reads.
    """
    archetype, confidence = DEFAULT_ARCHETYPE, DEFAULT_CONFIDENCE
    if profile.ratio(profile.captures) > 0.35:
        archetype, confidence = "tactical_storm", 0.82
    elif profile.ratio(profile.captures) > 0.25 and profile.checks > 4:
        archetype, confidence = "intuitive_attacker", 0.78

    if archetype == DEFAULT_ARCHETYPE:
        if profile.ratio(profile.pawn_moves) > 0.28:
            archetype, confidence = "positional_grind", 0.75
        elif profile.ratio(profile.pawn_moves) > 0.22:
            archetype, confidence = "strategic_squeeze", 0.72
        elif profile.kingside_castle and profile.checks > 3:
            archetype, confidence = "kingside_attack", 0.76
        elif profile.queenside_castle and profile.rook_moves > profile.knight_moves:
            archetype, confidence = "queenside_expansion", 0.71
        elif profile.ratio(profile.queen_moves) > 0.15:
            archetype, confidence = "piece_activity", 0.69
        elif profile.bishop_moves > profile.rook_moves:
            archetype, confidence = "dynamic_imbalance", 0.67

    if profile.promotions > 0 and profile.move_count > 60:
        archetype, confidence = "endgame_virtuoso", 0.74
    if profile.exchange_runs > 2:
        archetype, confidence = "exchange_sacrifice", 0.73

    attacking = profile.checks + profile.captures
    defensive = profile.pawn_moves + profile.rook_moves
    if defensive > attacking * 1.5:
        archetype, confidence = "calculating_defender", 0.70
    elif attacking > defensive * 1.3:
        archetype, confidence = "risk_taker", 0.71
    return archetype, confidence


@funclogger
def predict_direction(moves: Sequence[str]) -> Outcome:
    """Compare each side's late-game activity and pressure.

    Only the second half of the sequence is considered. Plies keep their
    absolute parity, so even indexes are always white's moves. With no checks or
    captures on either side the pressure comparison is neutral.
    """
    start = len(moves) // 2
    white = [m for i, m in enumerate(moves) if i >= start and i % 2 == 0]
    black = [m for i, m in enumerate(moves) if i >= start and i % 2 == 1]
    white_pressure = sum("+" in m or "x" in m for m in white)
    black_pressure = sum("+" in m or "x" in m for m in black)
    activity_ratio = len(white) / max(1, len(black))
    pressure_ratio = (
        white_pressure / max(1, black_pressure) if white_pressure or black_pressure else 1.0
    )
    if activity_ratio > 1.15 or pressure_ratio > 1.3:
        return Outcome.WHITE_WINS
    if activity_ratio < 0.85 or pressure_ratio < 0.7:
        return Outcome.BLACK_WINS
    return Outcome.DRAW


class HeuristicPatternPredictor:
    """Pure, deterministic predictor over a SAN move prefix."""

    def predict(self, move_prefix: Sequence[str]) -> PatternPrediction:
        moves = list(move_prefix)
        archetype, confidence = classify_archetype(MoveProfile.from_moves(moves))
        outcome = predict_direction(moves)
        if outcome is not Outcome.DRAW:
            confidence = min(MAX_CONFIDENCE, confidence + DIRECTION_BONUS)
        return PatternPrediction(outcome=outcome.value, archetype=archetype, confidence=confidence)
