from __future__ import annotations

import time
from collections.abc import Callable

ProgressCallback = Callable[[dict[str, object]], None]


def _emit_progress(progress: ProgressCallback | None, step: str, **fields: object) -> None:
    """
    Invoke ``progress`` with a payload holding the step name, a timestamp and
    any extra fields.

    Parameters
    ----------
    progress : callable or None
        Callback taking one payload dict. Nothing is emitted when None.
    step : str
        Run phase or event name, e.g. ``"looping"`` or ``"prediction"``.
    **fields : object
        Extra payload entries such as ``completed`` and ``target``.

    Examples
    --------
    >>> _emit_progress(print, "looping", completed=3, target=10)  # doctest: +SKIP
    {'step': 'looping', 'timestamp': 1700000000.0, 'completed': 3, 'target': 10}
    """
    if progress is None:
        return
    payload: dict[str, object] = {"step": step, "timestamp": time.time()}
    payload.update(fields)
    progress(payload)
