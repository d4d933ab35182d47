"""Small helpers: hash slicing, named threads and listening sockets."""

from __future__ import annotations

import ipaddress
import socket
import threading
from typing import Any, Callable, Optional

HASH_LEN = 32


def full_hash(value: bytes) -> bytes:
    """The first 32 bytes of `value`."""
    if len(value) < HASH_LEN:
        raise ValueError(f"need at least {HASH_LEN} bytes, got {len(value)}")
    return bytes(value[:HASH_LEN])


class _JoinHandle:
    """A running thread whose result is returned by join()."""

    def __init__(self, name: str, func: Callable[[], Any]):
        self._result: Any = None
        self._error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, args=(func,), name=name)

    def _run(self, func: Callable[[], Any]) -> None:
        try:
            self._result = func()
        except BaseException as exc:  # re-raised in join()
            self._error = exc

    @property
    def name(self) -> str:
        return self._thread.name

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> Any:
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise TimeoutError(f"thread {self.name} still running")
        if self._error is not None:
            raise self._error
        return self._result


def spawn_thread(name: str, func: Callable[[], Any]) -> _JoinHandle:
    """Start `func` on a named thread; join() returns its result or raises its error."""
    handle = _JoinHandle(name, func)
    handle._thread.start()
    return handle


def create_socket(addr: tuple) -> socket.socket:
    """A TCP socket bound to (host, port), with port reuse where supported."""
    host, port = addr[0], addr[1]
    family = socket.AF_INET6 if ipaddress.ip_address(host).version == 6 else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    try:
        if hasattr(socket, "SO_REUSEPORT"):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        sock.bind((host, port) if family == socket.AF_INET else (host, port, 0, 0))
    except OSError:
        sock.close()
        raise
    return sock