from __future__ import annotations

import logging

import allure
import pytest

from agent_swarm.swarm.activity import ActivityLog
from agent_swarm.swarm.models import ActivityLogEntry, LogLevel

pytestmark = [
    allure.epic("Agent Swarm"),
    allure.feature("Activity Log"),
]


class FailingRepository:
    def add_activity(self, entry: ActivityLogEntry) -> None:
        raise RuntimeError("disk full")


def test_entries_filter_by_task_and_level() -> None:
    log = ActivityLog()
    log.add_log(LogLevel.INFO, "first", task_id="t1")
    log.add_log(LogLevel.ERROR, "second", task_id="t1")
    log.add_log(LogLevel.INFO, "third", task_id="t2")

    assert [entry.message for entry in log.entries(task_id="t1")] == ["first", "second"]
    assert [entry.message for entry in log.entries(level=LogLevel.INFO)] == ["first", "third"]
    assert [entry.message for entry in log.entries(limit=1)] == ["third"]
    assert log.entries(limit=0) == []


def test_retention_drops_oldest_entries() -> None:
    log = ActivityLog(retention=2)
    for index in range(3):
        log.add_log(LogLevel.DEBUG, f"entry {index}")

    assert len(log) == 2
    assert [entry.message for entry in log.entries()] == ["entry 1", "entry 2"]

    log.clear()
    assert len(log) == 0


def test_retention_must_be_positive() -> None:
    with pytest.raises(ValueError, match="retention"):
        ActivityLog(retention=0)


def test_subscribers_receive_entries_until_unsubscribed() -> None:
    log = ActivityLog()
    received: list[str] = []
    unsubscribe = log.subscribe(lambda entry: received.append(entry.message))

    log.add_log(LogLevel.INFO, "one")
    unsubscribe()
    log.add_log(LogLevel.INFO, "two")

    assert received == ["one"]


def test_entries_are_mirrored_to_logging(caplog) -> None:
    log = ActivityLog()

    with caplog.at_level(logging.DEBUG, logger="agent_swarm.swarm.activity"):
        entry = log.add_log(LogLevel.WARN, "slow agent", source="completion", metadata={"a": 1})

    assert entry.entry_id.startswith("log_")
    assert entry.metadata == {"a": 1}
    record = next(item for item in caplog.records if item.getMessage() == "[completion] slow agent")
    assert record.levelno == logging.WARNING


def test_persistence_and_subscriber_failures_do_not_propagate(caplog) -> None:
    log = ActivityLog(repository=FailingRepository())

    def broken(entry: ActivityLogEntry) -> None:
        raise RuntimeError("listener crashed")

    log.subscribe(broken)
    with caplog.at_level(logging.ERROR, logger="agent_swarm.swarm.activity"):
        log.add_log(LogLevel.INFO, "still recorded")

    assert len(log) == 1
    messages = [item.getMessage() for item in caplog.records]
    assert any(message.startswith("Failed to persist activity entry") for message in messages)
    assert "Activity subscriber failed" in messages
