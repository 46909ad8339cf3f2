"""Replay a game record up to a reproducible mid-game cutoff."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

import chess

from chessbench.errors import MalformedRecordError
from chessbench.models import GameRecord, Outcome
from chessbench.pgn_utils import tokenize_moves
from chessbench.run_config import CutoffRange
from chessbench.utils.hasher import short_hash


@dataclass(slots=True)
class ResolvedPosition:
    """Board at the cutoff plus the legally replayable move list.

    ``cutoff_move`` counts plies, so ``full_move_list[:cutoff_move]`` is the
    move prefix that produced ``board``.
    """

    record: GameRecord
    board: chess.Board
    cutoff_move: int
    outcome: Outcome
    full_move_list: list[str] = field(default_factory=list)

    @property
    def fen(self) -> str:
        return self.board.fen()

    @property
    def position_hash(self) -> str:
        return position_hash(self.board)

    @property
    def move_prefix(self) -> list[str]:
        return self.full_move_list[: self.cutoff_move]


def position_hash(board: chess.Board) -> str:
    """Hash placement, side to move, castling and en passant; transpositions collide."""
    return short_hash(" ".join(board.fen().split()[:4]))


def replay_legal_moves(tokens: list[str]) -> list[str]:
    """Return the SAN prefix of ``tokens`` that replays legally from the start position."""
    board = chess.Board()
    legal: list[str] = []
    for token in tokens:
        try:
            board.push_san(token)
        except ValueError:
            break
        legal.append(token)
    return legal


class PositionResolver:
    """Turn a raw record into a position at a bounded, seeded cutoff ply.

    The cutoff is drawn from ``[cutoff_range.min_move, upper]`` where
    ``upper = min(cutoff_range.max_move, floor(cutoff_fraction * total))``
    and ``total`` is the number of legally replayable plies. The draw is
    seeded by ``seed`` and the game id, so a record always resolves to the
    same position.
    """

    def __init__(
        self,
        seed: str = "chessbench",
        cutoff_fraction: float = 0.6,
        min_legal_moves: int = 4,
    ) -> None:
        self._seed = seed
        self._cutoff_fraction = cutoff_fraction
        self._min_legal_moves = min_legal_moves

    def resolve(self, record: GameRecord, cutoff_range: CutoffRange) -> ResolvedPosition:
        """Resolve ``record`` to its cutoff position.

        Raises:
            MalformedRecordError: The game has no result, too few legal moves,
                or is too short for the cutoff range.
        """
        if record.outcome is None:
            raise MalformedRecordError(record.game_id, "game has no final result")
        moves = replay_legal_moves(tokenize_moves(record.move_text))
        if len(moves) < self._min_legal_moves:
            raise MalformedRecordError(
                record.game_id,
                f"only {len(moves)} legal moves, need {self._min_legal_moves}",
            )
        upper = min(cutoff_range.max_move, math.floor(self._cutoff_fraction * len(moves)))
        lower = cutoff_range.min_move
        if upper < lower:
            raise MalformedRecordError(
                record.game_id,
                f"{len(moves)} plies is too short for a cutoff in [{lower}, {cutoff_range.max_move}]",
            )
        cutoff = random.Random(f"{self._seed}:{record.game_id}").randint(lower, upper)
        board = chess.Board()
        for san in moves[:cutoff]:
            board.push_san(san)
        return ResolvedPosition(
            record=record,
            board=board,
            cutoff_move=cutoff,
            outcome=record.outcome,
            full_move_list=moves,
        )
