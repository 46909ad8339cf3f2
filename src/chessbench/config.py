from __future__ import annotations

import os
from dataclasses import MISSING, dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from chessbench.backoff_policy import BackoffPolicy
from chessbench.run_config import CutoffRange, RunConfig

_MISSING = object()
_SETTINGS_ALIAS_FIELDS = (
    "lichess_token",
    "lichess_players",
    "chesscom_token",
    "chesscom_players",
    "chesscom_max_retries",
    "chesscom_retry_backoff_ms",
    "stockfish_path",
    "stockfish_checksum",
    "stockfish_checksum_mode",
    "stockfish_threads",
    "stockfish_hash_mb",
    "target_count",
    "evaluator_depth",
    "flush_interval",
    "max_empty_batches",
)

load_dotenv()

DEFAULT_DATA_DIR = Path(os.getenv("CHESSBENCH_DATA_DIR", "data"))
DEFAULT_FIXTURE_PGN = Path("tests/fixtures/benchmark_sample.pgn")
DEFAULT_LICHESS_PLAYERS = (
    "DrNykterstein,Hikaru,nihalsarin2004,GMWSO,LyonBeast,Polish_fighter3000,Msb2,"
    "penguingm1,DanielNaroditsky,EricRosen,Fins,opperwezen,BogdanDeac,Arjun_Erigaisi,"
    "RaunakSadhwani2005,Zhigalko_Sergei,Firouzja2003,FabianoCaruana,LevonAronian"
)
DEFAULT_CHESSCOM_PLAYERS = (
    "Hikaru,MagnusCarlsen,nihalsarin,FabianoCaruana,LevonAronian,Firouzja2003,"
    "DanielNaroditsky,GothamChess,AnishGiri,WesleySo,Praggnanandhaa,DominguezPerez,"
    "Grischuk,BogdanDeac,RichardRapport,VladimirFedoseev,Duda,HansNiemann,EricRosen"
)


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _optional_int(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


def _field_value(name: str, field_info: object, kwargs: dict[str, object]) -> object:
    value = kwargs.pop(name, _MISSING)
    if value is not _MISSING:
        return value
    default_factory = getattr(field_info, "default_factory", MISSING)
    if default_factory is not MISSING:
        return default_factory()
    default = getattr(field_info, "default", MISSING)
    if default is not MISSING:
        return default
    raise TypeError(f"Missing required argument: {name}")


def _apply_settings_aliases(settings: Settings, kwargs: dict[str, object]) -> None:
    for alias in _SETTINGS_ALIAS_FIELDS:
        value = kwargs.pop(alias, _MISSING)
        if value is not _MISSING:
            setattr(settings, alias, value)


def _raise_on_unexpected_kwargs(kwargs: dict[str, object]) -> None:
    if kwargs:
        unexpected = next(iter(kwargs))
        raise TypeError(f"Settings.__init__() got an unexpected keyword argument '{unexpected}'")


@dataclass(slots=True)
class LichessSettings:
    """Lichess-specific configuration."""

    token: str | None = os.getenv("LICHESS_TOKEN")
    players: tuple[str, ...] = _split_csv(os.getenv("LICHESS_PLAYERS", DEFAULT_LICHESS_PLAYERS))
    perf_type: str | None = os.getenv("LICHESS_PERF_TYPE") or None
    players_per_batch: int = int(os.getenv("LICHESS_PLAYERS_PER_BATCH", "6"))
    window_days: int = int(os.getenv("LICHESS_WINDOW_DAYS", "180"))
    batch_step_days: int = int(os.getenv("LICHESS_BATCH_STEP_DAYS", "60"))


@dataclass(slots=True)
class ChesscomSettings:
    """Chess.com-specific configuration."""

    token: str | None = os.getenv("CHESSCOM_TOKEN")
    players: tuple[str, ...] = _split_csv(
        os.getenv("CHESSCOM_PLAYERS", DEFAULT_CHESSCOM_PLAYERS)
    )
    time_class: str | None = os.getenv("CHESSCOM_TIME_CLASS") or None
    players_per_batch: int = int(os.getenv("CHESSCOM_PLAYERS_PER_BATCH", "4"))
    archive_months: int = int(os.getenv("CHESSCOM_ARCHIVE_MONTHS", "12"))
    max_retries: int = int(os.getenv("CHESSCOM_MAX_RETRIES", "3"))
    retry_backoff_ms: int = int(os.getenv("CHESSCOM_RETRY_BACKOFF_MS", "500"))


@dataclass(slots=True)
class StockfishSettings:
    """Stockfish engine configuration."""

    path: Path = Path(os.getenv("STOCKFISH_PATH", "stockfish"))
    checksum: str | None = os.getenv("STOCKFISH_SHA256") or os.getenv("STOCKFISH_CHECKSUM")
    checksum_mode: str = os.getenv("STOCKFISH_CHECKSUM_MODE", "warn")
    threads: int = int(os.getenv("STOCKFISH_THREADS", "1"))
    hash_mb: int = int(os.getenv("STOCKFISH_HASH", "256"))
    use_nnue: bool = os.getenv("STOCKFISH_USE_NNUE", "1") == "1"
    random_seed: int | None = int(os.getenv("STOCKFISH_RANDOM_SEED", "0")) or None
    allow_material_fallback: bool = os.getenv("STOCKFISH_ALLOW_MATERIAL_FALLBACK", "0") == "1"


@dataclass(slots=True)
class BenchmarkSettings:
    """Benchmark run parameters."""

    target_count: int = int(os.getenv("CHESSBENCH_TARGET_COUNT", "50"))
    evaluator_depth: int = int(os.getenv("CHESSBENCH_EVALUATOR_DEPTH", "18"))
    cutoff_min: int = int(os.getenv("CHESSBENCH_CUTOFF_MIN", "20"))
    cutoff_max: int = int(os.getenv("CHESSBENCH_CUTOFF_MAX", "40"))
    flush_interval: int = int(os.getenv("CHESSBENCH_FLUSH_INTERVAL", "5"))
    max_empty_batches: int = int(os.getenv("CHESSBENCH_MAX_EMPTY_BATCHES", "25"))
    max_refill_attempts: int | None = _optional_int("CHESSBENCH_MAX_REFILL_ATTEMPTS")
    batch_size: int | None = _optional_int("CHESSBENCH_BATCH_SIZE")
    evaluator_timeout_s: float = float(os.getenv("CHESSBENCH_EVALUATOR_TIMEOUT_S", "45"))
    backoff_base_s: float = float(os.getenv("CHESSBENCH_BACKOFF_BASE_S", "2.0"))
    backoff_factor: float = float(os.getenv("CHESSBENCH_BACKOFF_FACTOR", "1.5"))
    backoff_cap_s: float = float(os.getenv("CHESSBENCH_BACKOFF_CAP_S", "15.0"))
    seed: str = os.getenv("CHESSBENCH_SEED", "chessbench")


@dataclass(slots=True, init=False)
class Settings:
    """Central configuration for sources, engine, storage and benchmark runs."""

    sources: tuple[str, ...] = _split_csv(os.getenv("CHESSBENCH_SOURCES", "lichess,chesscom"))

    lichess: LichessSettings = field(default_factory=LichessSettings)
    chesscom: ChesscomSettings = field(default_factory=ChesscomSettings)
    stockfish: StockfishSettings = field(default_factory=StockfishSettings)
    benchmark: BenchmarkSettings = field(default_factory=BenchmarkSettings)

    duckdb_path: Path = Path(
        os.getenv("CHESSBENCH_DUCKDB_PATH", DEFAULT_DATA_DIR / "chessbench.duckdb")
    )
    fixture_pgn_path: Path = Path(os.getenv("CHESSBENCH_FIXTURE_PGN_PATH", DEFAULT_FIXTURE_PGN))
    run_context: str = os.getenv("CHESSBENCH_RUN_CONTEXT", "app")

    def __init__(self, **kwargs: object) -> None:
        for name, field_info in self.__dataclass_fields__.items():
            setattr(self, name, _field_value(name, field_info, kwargs))
        _apply_settings_aliases(self, kwargs)
        _raise_on_unexpected_kwargs(kwargs)

    @property
    def lichess_token(self) -> str | None:
        return self.lichess.token

    @lichess_token.setter
    def lichess_token(self, value: str | None) -> None:
        self.lichess.token = value

    @property
    def lichess_players(self) -> tuple[str, ...]:
        return self.lichess.players

    @lichess_players.setter
    def lichess_players(self, value: tuple[str, ...] | list[str]) -> None:
        self.lichess.players = tuple(value)

    @property
    def chesscom_token(self) -> str | None:
        return self.chesscom.token

    @chesscom_token.setter
    def chesscom_token(self, value: str | None) -> None:
        self.chesscom.token = value

    @property
    def chesscom_players(self) -> tuple[str, ...]:
        return self.chesscom.players

    @chesscom_players.setter
    def chesscom_players(self, value: tuple[str, ...] | list[str]) -> None:
        self.chesscom.players = tuple(value)

    @property
    def chesscom_max_retries(self) -> int:
        return self.chesscom.max_retries

    @chesscom_max_retries.setter
    def chesscom_max_retries(self, value: int) -> None:
        self.chesscom.max_retries = value

    @property
    def chesscom_retry_backoff_ms(self) -> int:
        return self.chesscom.retry_backoff_ms

    @chesscom_retry_backoff_ms.setter
    def chesscom_retry_backoff_ms(self, value: int) -> None:
        self.chesscom.retry_backoff_ms = value

    @property
    def stockfish_path(self) -> Path:
        return self.stockfish.path

    @stockfish_path.setter
    def stockfish_path(self, value: Path | str) -> None:
        self.stockfish.path = Path(value)

    @property
    def stockfish_checksum(self) -> str | None:
        return self.stockfish.checksum

    @stockfish_checksum.setter
    def stockfish_checksum(self, value: str | None) -> None:
        self.stockfish.checksum = value

    @property
    def stockfish_checksum_mode(self) -> str:
        return self.stockfish.checksum_mode

    @stockfish_checksum_mode.setter
    def stockfish_checksum_mode(self, value: str) -> None:
        self.stockfish.checksum_mode = value

    @property
    def stockfish_threads(self) -> int:
        return self.stockfish.threads

    @stockfish_threads.setter
    def stockfish_threads(self, value: int) -> None:
        self.stockfish.threads = value

    @property
    def stockfish_hash_mb(self) -> int:
        return self.stockfish.hash_mb

    @stockfish_hash_mb.setter
    def stockfish_hash_mb(self, value: int) -> None:
        self.stockfish.hash_mb = value

    @property
    def target_count(self) -> int:
        return self.benchmark.target_count

    @target_count.setter
    def target_count(self, value: int) -> None:
        self.benchmark.target_count = value

    @property
    def evaluator_depth(self) -> int:
        return self.benchmark.evaluator_depth

    @evaluator_depth.setter
    def evaluator_depth(self, value: int) -> None:
        self.benchmark.evaluator_depth = value

    @property
    def flush_interval(self) -> int:
        return self.benchmark.flush_interval

    @flush_interval.setter
    def flush_interval(self, value: int) -> None:
        self.benchmark.flush_interval = value

    @property
    def max_empty_batches(self) -> int:
        return self.benchmark.max_empty_batches

    @max_empty_batches.setter
    def max_empty_batches(self, value: int) -> None:
        self.benchmark.max_empty_batches = value

    def run_config(self) -> RunConfig:
        """Build the validated run configuration from the benchmark section."""
        bench = self.benchmark
        return RunConfig(
            target_count=bench.target_count,
            evaluator_depth=bench.evaluator_depth,
            cutoff_range=CutoffRange(min_move=bench.cutoff_min, max_move=bench.cutoff_max),
            flush_interval=bench.flush_interval,
            max_empty_batches=bench.max_empty_batches,
            max_refill_attempts=bench.max_refill_attempts,
            batch_size=bench.batch_size,
            evaluator_timeout_s=bench.evaluator_timeout_s,
            backoff=BackoffPolicy(
                base_s=bench.backoff_base_s,
                factor=bench.backoff_factor,
                cap_s=bench.backoff_cap_s,
            ),
            seed=bench.seed,
        )


def get_settings(**overrides: object) -> Settings:
    """Reload `.env` and return fresh settings with keyword overrides applied."""
    load_dotenv()
    values: dict[str, object] = {
        "lichess": LichessSettings(
            token=os.getenv("LICHESS_TOKEN"),
            players=_split_csv(os.getenv("LICHESS_PLAYERS", DEFAULT_LICHESS_PLAYERS)),
        ),
        "chesscom": ChesscomSettings(
            token=os.getenv("CHESSCOM_TOKEN"),
            players=_split_csv(os.getenv("CHESSCOM_PLAYERS", DEFAULT_CHESSCOM_PLAYERS)),
        ),
        "sources": _split_csv(os.getenv("CHESSBENCH_SOURCES", "lichess,chesscom")),
    }
    values.update(overrides)
    return Settings(**values)
