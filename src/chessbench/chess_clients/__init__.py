"""Public exports for game source clients."""

from __future__ import annotations

from importlib import import_module

from chessbench.chess_clients.base_chess_client import BaseChessClient, BaseChessClientContext
from chessbench.chess_clients.game_batch import GameBatch, GameBatchRequest

__all__ = [
    "BaseChessClient",
    "BaseChessClientContext",
    "ChesscomClient",
    "FixtureClient",
    "GameBatch",
    "GameBatchRequest",
    "GameSourceMultiplexer",
    "LichessClient",
]

_LAZY_EXPORTS = {
    "ChesscomClient": "chessbench.chess_clients.chesscom_client",
    "FixtureClient": "chessbench.chess_clients.fixture_client",
    "GameSourceMultiplexer": "chessbench.chess_clients.game_source_multiplexer",
    "LichessClient": "chessbench.chess_clients.lichess_client",
}


def __getattr__(name: str):
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    return getattr(import_module(module_name), name)
