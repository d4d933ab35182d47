import os
import signal
import time

import pytest

from chainrest.signals import Interrupted, Waiter


def test_timeout_without_signal():
    with Waiter() as waiter:
        started = time.monotonic()
        result = waiter.wait(0.1, True)
        elapsed = time.monotonic() - started
    assert result is None
    assert elapsed >= 0.09


def test_sigusr1_accepted_returns_early():
    with Waiter() as waiter:
        os.kill(os.getpid(), signal.SIGUSR1)
        started = time.monotonic()
        result = waiter.wait(5.0, True)
        elapsed = time.monotonic() - started
    assert result is None
    assert elapsed < 4.0


def test_sigusr1_ignored_waits_full_duration():
    with Waiter() as waiter:
        os.kill(os.getpid(), signal.SIGUSR1)
        started = time.monotonic()
        result = waiter.wait(0.2, False)
        elapsed = time.monotonic() - started
    assert result is None
    assert elapsed >= 0.19


def test_sigterm_interrupts():
    with Waiter() as waiter:
        os.kill(os.getpid(), signal.SIGTERM)
        with pytest.raises(Interrupted) as info:
            waiter.wait(5.0, True)
        assert info.value.signal == signal.SIGTERM


def test_sigusr1_then_sigint_with_sigusr_ignored():
    with Waiter() as waiter:
        os.kill(os.getpid(), signal.SIGUSR1)
        os.kill(os.getpid(), signal.SIGINT)
        with pytest.raises(Interrupted) as info:
            waiter.wait(5.0, False)
        assert info.value.signal == signal.SIGINT


def test_handlers_restored_on_exit():
    before = signal.getsignal(signal.SIGUSR1)
    with Waiter() as waiter:
        installed = signal.getsignal(signal.SIGUSR1)
        result = waiter.wait(0.01, True)
    assert result is None
    assert installed != before
    assert signal.getsignal(signal.SIGUSR1) == before