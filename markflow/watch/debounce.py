"""Pending-path bookkeeping for the change watcher."""

from __future__ import annotations

import threading


class DebounceQueue:
    """Deduplicated set of paths waiting to be reprocessed.

    Each path keeps only the timestamp of its latest event; a path becomes
    due once it has been quiet for ``window`` seconds. Paths marked in flight
    are held back until ``finish`` so that an edit made while a run is in
    progress produces exactly one follow-up run.

    Timestamps are whatever clock the caller uses, as long as it is the same
    one for ``touch`` and ``due``.
    """

    def __init__(self, window: float) -> None:
        if window < 0:
            raise ValueError("debounce window must be >= 0")
        self.window = window
        self._pending: dict[str, float] = {}
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._pending

    def touch(self, path: str, now: float) -> None:
        """Record an event for ``path``, restarting its quiet period."""
        with self._lock:
            self._pending[path] = now

    def due(self, now: float) -> list[str]:
        """Pop and return every path that is quiet and not running, oldest first."""
        with self._lock:
            ready = sorted(
                (ts, path)
                for path, ts in self._pending.items()
                if path not in self._in_flight and now - ts >= self.window
            )
            for _, path in ready:
                del self._pending[path]
            return [path for _, path in ready]

    def next_deadline(self) -> float | None:
        """Earliest time at which some pending path becomes due."""
        with self._lock:
            deadlines = [
                ts + self.window
                for path, ts in self._pending.items()
                if path not in self._in_flight
            ]
        return min(deadlines) if deadlines else None

    def start(self, path: str) -> None:
        with self._lock:
            self._in_flight.add(path)

    def finish(self, path: str) -> None:
        with self._lock:
            self._in_flight.discard(path)

    @property
    def in_flight(self) -> set[str]:
        with self._lock:
            return set(self._in_flight)
