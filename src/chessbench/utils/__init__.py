"""Utility exports for the chessbench package."""

from .generate_id import generate_run_id
from .hasher import Hasher, short_hash
from .logger import Logger, funclogger, get_logger, set_level
from .now import Now

__all__ = [
    "Hasher",
    "Logger",
    "Now",
    "funclogger",
    "generate_run_id",
    "get_logger",
    "set_level",
    "short_hash",
]
