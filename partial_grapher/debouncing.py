"""Latest-wins debouncing for input edits."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass
class _PendingCall:
    args: Tuple[Any, ...]
    kwargs: dict[str, Any]


class Debouncer:
    """Run ``callback`` once after calls have stopped for ``delay_ms``.

    Each call replaces the pending arguments and restarts the quiet period,
    so a burst of keystrokes produces a single callback with the last
    arguments. Timers use the running asyncio loop when there is one and a
    daemon ``threading.Timer`` otherwise.

    Parameters
    ----------
    callback:
        Callable to execute once the input settles.
    delay_ms:
        Quiet period in milliseconds.
    """

    def __init__(self, callback: Callable[..., Any], *, delay_ms: int) -> None:
        if delay_ms <= 0:
            raise ValueError("delay_ms must be > 0")
        self._callback = callback
        self._delay_s = delay_ms / 1000.0
        self._pending: Optional[_PendingCall] = None
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._generation = 0

    @property
    def is_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self._pending = _PendingCall(args=args, kwargs=dict(kwargs))
            self._cancel_locked()
            self._generation += 1
            self._schedule_locked(self._generation)

    def cancel(self) -> None:
        """Drop any pending call."""
        with self._lock:
            self._pending = None
            self._cancel_locked()

    def flush(self) -> None:
        """Run the pending call now, if any."""
        with self._lock:
            self._cancel_locked()
            generation = self._generation
        self._on_tick(generation)

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_locked(self, generation: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(self._delay_s, self._on_tick, args=(generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()
            return

        self._timer = loop.call_later(self._delay_s, self._on_tick, generation)

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._pending is None:
                return
            call = self._pending
            self._pending = None
            self._timer = None

        try:
            self._callback(*call.args, **call.kwargs)
        except Exception:
            logger.exception("Debouncer callback failed")
