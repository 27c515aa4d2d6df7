"""Tests for the Once initializer."""

import threading

from stride.services.shared.once import Once


def test_runs_once_and_returns_cached_result():
    calls = []
    once = Once(lambda: calls.append(1) or len(calls))

    assert once() == 1
    assert once() == 1
    assert calls == [1]
    assert once.done is True


def test_concurrent_callers_share_one_run():
    calls = []
    started = threading.Event()

    def slow():
        started.set()
        calls.append(1)
        return "ready"

    once = Once(slow)
    results = []
    threads = [threading.Thread(target=lambda: results.append(once())) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert calls == [1]
    assert results == ["ready"] * 8


def test_failure_is_logged_and_marked_done(caplog):
    calls = []

    def broken():
        calls.append(1)
        raise RuntimeError("no database")

    once = Once(broken, name="bootstrap")

    assert once() is None
    assert once() is None
    assert calls == [1]
    assert "bootstrap" in caplog.text


def test_reset_allows_another_run():
    calls = []
    once = Once(lambda: calls.append(1))

    once()
    once.reset()
    assert once.done is False
    once()

    assert calls == [1, 1]
