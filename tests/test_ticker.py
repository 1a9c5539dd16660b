from __future__ import annotations

import threading

import allure
import pytest

from agent_swarm.swarm.ticker import MonitorTicker

pytestmark = [
    allure.epic("Agent Swarm"),
    allure.feature("Completion Decisions"),
]


def test_ticker_invokes_callback_until_cancelled() -> None:
    fired = threading.Event()
    calls: list[int] = []

    def callback() -> None:
        calls.append(1)
        if len(calls) >= 2:
            fired.set()

    ticker = MonitorTicker(0.01, callback, name="test-ticker")
    ticker.start()
    try:
        assert fired.wait(timeout=5.0)
        assert ticker.is_running is True
    finally:
        ticker.cancel()

    assert ticker.is_running is False
    count = len(calls)
    assert count >= 2


def test_ticker_survives_callback_errors() -> None:
    fired = threading.Event()
    calls: list[int] = []

    def callback() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick fails")
        fired.set()

    ticker = MonitorTicker(0.01, callback)
    ticker.start()
    try:
        assert fired.wait(timeout=5.0)
    finally:
        ticker.cancel()


def test_cancel_from_inside_callback_does_not_deadlock() -> None:
    done = threading.Event()
    holder: dict[str, MonitorTicker] = {}

    def callback() -> None:
        holder["ticker"].cancel()
        done.set()

    ticker = MonitorTicker(0.01, callback)
    holder["ticker"] = ticker
    ticker.start()

    assert done.wait(timeout=5.0)
    assert ticker.is_running is False


def test_cancel_before_start_is_noop() -> None:
    ticker = MonitorTicker(1.0, lambda: None)

    ticker.cancel()

    assert ticker.is_running is False


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError, match="interval_seconds"):
        MonitorTicker(0, lambda: None)
