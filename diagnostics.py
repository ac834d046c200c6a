"""Counters and listeners for recoverable signals (stale snapshots, lost anchors)."""

import threading
from collections import Counter
from typing import Callable, List

from logging_config import get_logger

_logger = get_logger('diagnostics')


class Diagnostics:
    """Collects signal values so they are observable without being raised."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counts = Counter()
        self._listeners: List[Callable[[Exception], None]] = []

    def add_listener(self, listener: Callable[[Exception], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[Exception], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(self, signal: Exception) -> None:
        with self._lock:
            self._counts[type(signal).__name__] += 1
            listeners = list(self._listeners)
        _logger.debug(str(signal))
        for listener in listeners:
            try:
                listener(signal)
            except Exception:
                _logger.exception(f"Diagnostics listener failed for {type(signal).__name__}")

    def count(self, signal_type) -> int:
        name = signal_type if isinstance(signal_type, str) else signal_type.__name__
        with self._lock:
            return self._counts[name]

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
