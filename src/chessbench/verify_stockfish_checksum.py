from pathlib import Path

from chessbench.utils.hasher import Hasher
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)


def verify_stockfish_checksum(path: Path, expected: str | None, mode: str = "warn") -> bool:
    """Verify a Stockfish binary checksum.

    Args:
        path: Path to the Stockfish binary.
        expected: Expected SHA256 hex digest; no check when empty.
        mode: "enforce" to raise on mismatch, otherwise warn.

    Returns:
        True if the checksum matches or no checksum is configured.

    Raises:
        RuntimeError: On mismatch in "enforce" mode.
    """

    if not expected:
        return True
    digest = Hasher.hash_file(str(path))
    if digest == expected.strip().lower():
        return True
    message = f"Stockfish checksum mismatch for {path}"
    if mode == "enforce":
        raise RuntimeError(message)
    logger.warning(message)
    return False
