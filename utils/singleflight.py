"""Per-key call coalescing and per-key locks for threaded request handlers."""
from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Tuple


class _Call:
    def __init__(self):
        self.done = threading.Event()
        self.result: Any = None
        self.error: BaseException | None = None
        self.followers = 0


class SingleFlight:
    """Run at most one call per key at a time.

    The first caller for a key becomes the leader and runs the function.
    Callers arriving while it runs wait for it and receive the same result, or
    the same exception. The key is released as soon as the leader finishes, so
    the next call after that runs afresh.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, _Call] = {}

    def do(self, key: Hashable, fn: Callable[[], Any]) -> Tuple[Any, bool]:
        """Return (result, shared); shared is True for callers that joined an in-flight call."""
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.followers += 1
                leader = False
            else:
                call = _Call()
                self._calls[key] = call
                leader = True

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result, True

        try:
            call.result = fn()
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()
        return call.result, False

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls

    def followers(self, key: Hashable) -> int:
        """Number of callers currently waiting on the in-flight call for key."""
        with self._lock:
            call = self._calls.get(key)
            return call.followers if call else 0


class KeyedLocks:
    """One lock per key; unused locks are dropped once nobody holds or waits for them."""

    def __init__(self):
        self._lock = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._users: Dict[Hashable, int] = defaultdict(int)

    @contextmanager
    def hold(self, key: Hashable):
        with self._lock:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] += 1
        try:
            with lock:
                yield
        finally:
            with self._lock:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._locks)
