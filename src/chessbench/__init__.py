"""chessbench package entrypoints."""

import logging
import os

from chessbench.run_controller import BenchmarkResult, RunController, run_benchmark
from chessbench.utils.logger import set_level


def main() -> None:
    """Run a single benchmark with environment settings."""
    level = os.getenv("CHESSBENCH_LOG_LEVEL", "INFO").upper()
    set_level(logging.getLevelNamesMapping().get(level, logging.INFO))
    result = run_benchmark()
    print(result)


__all__ = [
    "BenchmarkResult",
    "RunController",
    "main",
    "run_benchmark",
]
