"""Waiting on process signals with a timeout."""

from __future__ import annotations

import queue
import signal
import time

_SIGUSR1 = getattr(signal, "SIGUSR1", None)


class Interrupted(Exception):
    """Raised when a terminating signal arrives while waiting."""

    def __init__(self, signum: int):
        super().__init__(f"Interrupted by signal {signum}")
        self.signal = signum


class Waiter:
    """Collects SIGINT, SIGTERM and SIGUSR1; must be created on the main thread."""

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        watched = [signal.SIGINT, signal.SIGTERM]
        if _SIGUSR1 is not None:
            watched.append(_SIGUSR1)
        self._previous = {signum: signal.signal(signum, self._handle) for signum in watched}

    def _handle(self, signum, _frame) -> None:
        self._queue.put(signum)

    def __enter__(self) -> "Waiter":
        return self

    def __exit__(self, *exc_info) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous = {}

    def wait(self, duration: float, accept_sigusr: bool) -> None:
        """Wait up to `duration` seconds.

        Returns on timeout, or early on SIGUSR1 when `accept_sigusr` is set;
        raises Interrupted on any other signal.
        """
        deadline = time.monotonic() + duration
        while True:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                signum = self._queue.get(timeout=remaining)
            except queue.Empty:
                return
            if signum == _SIGUSR1:
                if accept_sigusr:
                    return
                continue
            raise Interrupted(signum)