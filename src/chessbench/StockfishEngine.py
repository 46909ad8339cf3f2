"""Stockfish position evaluator."""

# pylint: disable=invalid-name

from __future__ import annotations

import shutil
from contextlib import suppress
from pathlib import Path
from typing import Any

import chess
import chess.engine

from chessbench.config import Settings
from chessbench.engine_result import MATE_SCORE, EvaluationResult
from chessbench.errors import EvaluatorError
from chessbench.utils.logger import get_logger
from chessbench.verify_stockfish_checksum import verify_stockfish_checksum

logger = get_logger(__name__)

PIECE_VALUES = {
    chess.PAWN: 100,
    chess.KNIGHT: 320,
    chess.BISHOP: 330,
    chess.ROOK: 500,
    chess.QUEEN: 900,
    chess.KING: 0,
}


class StockfishEngine:
    """Position evaluator backed by a UCI Stockfish process.

    When the binary cannot be started and ``allow_material_fallback`` is
    set, positions are scored by material count at depth 0 instead.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.engine: chess.engine.SimpleEngine | None = None
        self.applied_options: dict[str, Any] = {}

    def __enter__(self) -> StockfishEngine:
        if self.engine is None:
            self._start_engine()
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the engine if running."""
        if self.engine is None:
            return
        with suppress(chess.engine.EngineError, chess.engine.EngineTerminatedError):
            self.engine.quit()
        self.engine = None

    def restart(self) -> None:
        """Restart the engine process."""
        logger.warning("Restarting Stockfish")
        self.close()
        self._start_engine()

    def evaluate(
        self,
        board: chess.Board,
        depth: int,
        require_exact_depth: bool = False,
    ) -> EvaluationResult:
        """Analyse ``board`` to ``depth`` plies and return a white-POV evaluation.

        Raises:
            EvaluatorError: The engine is unavailable without fallback, the
                analysis failed, or an exact depth was required and not reached.
        """
        if self.engine is None:
            self._start_engine()
        if self.engine is None:
            if self.settings.stockfish.allow_material_fallback:
                return self._material_result(board)
            raise EvaluatorError(f"Stockfish unavailable at {self.settings.stockfish_path}")
        try:
            info = self.engine.analyse(
                board,
                limit=chess.engine.Limit(depth=depth),
                options={"Clear Hash": True} if "Clear Hash" in self.engine.options else {},
            )
        except (chess.engine.EngineError, chess.engine.EngineTerminatedError) as exc:
            raise EvaluatorError(f"Stockfish analysis failed: {exc}") from exc
        result = EvaluationResult.from_engine_result(info)
        if require_exact_depth and not result.is_mate and result.depth_reached < depth:
            raise EvaluatorError(f"Stockfish reached depth {result.depth_reached} of {depth}")
        return result

    def _resolve_command(self) -> str:
        path = self.settings.stockfish_path
        if path.exists():
            return str(path)
        resolved = shutil.which(str(path)) or shutil.which("stockfish")
        if resolved:
            self.settings.stockfish_path = Path(resolved)
            return resolved
        return str(path)

    def _configure_options(self) -> dict[str, Any]:
        stockfish = self.settings.stockfish
        options: dict[str, Any] = {
            "Threads": stockfish.threads,
            "Hash": stockfish.hash_mb,
            "Use NNUE": stockfish.use_nnue,
            "Random Seed": stockfish.random_seed,
            "UCI_AnalyseMode": True,
        }
        return {name: value for name, value in options.items() if value is not None}

    def _start_engine(self) -> None:
        command = self._resolve_command()
        if not (Path(command).exists() or shutil.which(command)):
            logger.warning("Stockfish binary not found: %s", command)
            self._reset_engine_state()
            return
        try:
            verify_stockfish_checksum(
                Path(command),
                self.settings.stockfish_checksum,
                mode=self.settings.stockfish_checksum_mode,
            )
            engine = chess.engine.SimpleEngine.popen_uci(command)
        except (OSError, ValueError, RuntimeError, chess.engine.EngineError) as exc:
            logger.warning("Stockfish failed to start: %s", exc)
            self._reset_engine_state()
            return
        self.engine = engine
        self.applied_options = self._apply_options(engine, self._configure_options())

    @staticmethod
    def _apply_options(
        engine: chess.engine.SimpleEngine, options: dict[str, Any]
    ) -> dict[str, Any]:
        supported = getattr(engine, "options", {}) or {}
        applied = {name: value for name, value in options.items() if name in supported}
        if not applied:
            return {}
        try:
            engine.configure(applied)
        except chess.engine.EngineError as exc:
            logger.warning("Stockfish option configuration failed: %s", exc)
        return applied

    def _reset_engine_state(self) -> None:
        self.engine = None
        self.applied_options = {}

    def _material_result(self, board: chess.Board) -> EvaluationResult:
        """Score by material, or as a mate when the side to move mates in one."""
        for move in board.legal_moves:
            board.push(move)
            is_mate = board.is_checkmate()
            board.pop()
            if is_mate:
                sign = 1 if board.turn == chess.WHITE else -1
                return EvaluationResult(
                    score_cp=sign * MATE_SCORE,
                    depth_reached=0,
                    is_mate=True,
                    mate_in=sign,
                    best_move=move,
                )
        return EvaluationResult(score_cp=material_score(board), depth_reached=0)


def material_score(board: chess.Board) -> int:
    """Return white's material minus black's, in centipawns."""
    score = 0
    for piece_type, value in PIECE_VALUES.items():
        score += len(board.pieces(piece_type, chess.WHITE)) * value
        score -= len(board.pieces(piece_type, chess.BLACK)) * value
    return score
