"""Tests for the shared upload pool lifecycle."""

from __future__ import annotations

import threading

import pytest

from table_inserter.runtime import InserterRuntime


def test_submit_starts_pool_lazily() -> None:
    runtime = InserterRuntime(workers=2)
    assert not runtime.started

    assert runtime.submit(lambda x: x * 2, 21).result(timeout=5) == 42
    assert runtime.started
    assert runtime.drain()


def test_drain_waits_for_in_flight_work() -> None:
    release = threading.Event()
    runtime = InserterRuntime(workers=2).start()
    future = runtime.submit(release.wait, 5)

    threading.Timer(0.1, release.set).start()

    assert runtime.drain(timeout=5)
    assert future.done()


def test_drain_reports_timeout() -> None:
    release = threading.Event()
    runtime = InserterRuntime(workers=1).start()
    runtime.submit(release.wait, 5)

    try:
        assert runtime.drain(timeout=0.1) is False
    finally:
        release.set()


def test_submit_after_drain_fails() -> None:
    runtime = InserterRuntime(workers=1).start()
    runtime.drain()

    with pytest.raises(RuntimeError):
        runtime.submit(lambda: None)
    with pytest.raises(RuntimeError):
        runtime.start()


def test_context_manager_drains() -> None:
    with InserterRuntime(workers=1) as runtime:
        assert runtime.started
        runtime.submit(lambda: None).result(timeout=5)

    with pytest.raises(RuntimeError):
        runtime.submit(lambda: None)


def test_workers_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InserterRuntime(workers=0)
