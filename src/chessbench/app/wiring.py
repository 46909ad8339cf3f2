"""Default dependency wiring for benchmark runs."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from chessbench.chess_clients.base_chess_client import BaseChessClient, BaseChessClientContext
from chessbench.chess_clients.chesscom_client import ChesscomClient, ChesscomClientContext
from chessbench.chess_clients.fixture_client import FixtureClient, FixtureClientContext
from chessbench.chess_clients.game_source_multiplexer import GameSourceMultiplexer
from chessbench.chess_clients.lichess_client import LichessClient, LichessClientContext
from chessbench.config import Settings
from chessbench.db.duckdb_result_store import DuckDbResultStore
from chessbench.models import GameSourceName
from chessbench.pattern_predictor import HeuristicPatternPredictor
from chessbench.ports.pattern_predictor import PatternPredictor
from chessbench.ports.result_store import ResultStore
from chessbench.StockfishEngine import StockfishEngine
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)


def _lichess_source(settings: Settings) -> BaseChessClient:
    return LichessClient(
        LichessClientContext(settings=settings, logger=get_logger("chessbench.lichess"))
    )


def _chesscom_source(settings: Settings) -> BaseChessClient:
    return ChesscomClient(
        ChesscomClientContext(settings=settings, logger=get_logger("chessbench.chesscom"))
    )


def _fixture_source(settings: Settings) -> BaseChessClient:
    return FixtureClient(
        FixtureClientContext(
            settings=settings,
            logger=get_logger("chessbench.fixture"),
            fixture_path=settings.fixture_pgn_path,
        )
    )


SOURCE_BUILDERS: dict[str, Callable[[Settings], BaseChessClient]] = {
    GameSourceName.LICHESS.value: _lichess_source,
    GameSourceName.CHESSCOM.value: _chesscom_source,
    GameSourceName.FIXTURE.value: _fixture_source,
}


@dataclass(frozen=True)
class DefaultGameSourceProvider:
    """Build the configured game sources behind one multiplexer."""

    builders: dict[str, Callable[[Settings], BaseChessClient]] = field(
        default_factory=lambda: dict(SOURCE_BUILDERS)
    )

    def sources(self, settings: Settings) -> list[BaseChessClient]:
        sources: list[BaseChessClient] = []
        for name in settings.sources:
            builder = self.builders.get(name.strip().lower())
            if builder is None:
                raise ValueError(f"Unknown game source: {name}")
            sources.append(builder(settings))
        return sources

    def multiplexer(self, settings: Settings) -> GameSourceMultiplexer:
        return GameSourceMultiplexer(self.sources(settings))


@dataclass(frozen=True)
class DefaultResultStoreProvider:
    """Default DuckDB result store."""

    def store(self, settings: Settings) -> ResultStore:
        return DuckDbResultStore(settings.duckdb_path)


@dataclass(frozen=True)
class DefaultEvaluatorProvider:
    """Default Stockfish evaluator."""

    def evaluator(self, settings: Settings) -> StockfishEngine:
        return StockfishEngine(settings)


@dataclass(frozen=True)
class DefaultPatternPredictorProvider:
    """Default heuristic pattern predictor."""

    def predictor(self, settings: Settings) -> PatternPredictor:
        return HeuristicPatternPredictor()


@dataclass(frozen=True)
class BenchmarkDependencies:
    store: ResultStore
    fetcher: GameSourceMultiplexer
    pattern_predictor: PatternPredictor
    evaluator: StockfishEngine

    def close(self) -> None:
        self.evaluator.close()


def build_benchmark_dependencies(
    settings: Settings,
    *,
    sources: DefaultGameSourceProvider | None = None,
    stores: DefaultResultStoreProvider | None = None,
    evaluators: DefaultEvaluatorProvider | None = None,
    predictors: DefaultPatternPredictorProvider | None = None,
) -> BenchmarkDependencies:
    """Assemble the default store, sources, evaluator and pattern predictor."""
    sources = sources or DefaultGameSourceProvider()
    stores = stores or DefaultResultStoreProvider()
    evaluators = evaluators or DefaultEvaluatorProvider()
    predictors = predictors or DefaultPatternPredictorProvider()
    fetcher = sources.multiplexer(settings)
    logger.info("Benchmark sources: %s", ", ".join(fetcher.source_names))
    return BenchmarkDependencies(
        store=stores.store(settings),
        fetcher=fetcher,
        pattern_predictor=predictors.predictor(settings),
        evaluator=evaluators.evaluator(settings),
    )
