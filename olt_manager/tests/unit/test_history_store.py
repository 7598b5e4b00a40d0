# Copyright 2026 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.
"""Unit tests for the bounded ONU history store."""

from datetime import datetime, timedelta, timezone

import pytest

from olt_manager.app.domain.errors import ValidationError
from olt_manager.app.domain.models import HistoryEvent
from olt_manager.app.infrastructure.in_memory_history_store import (
    InMemoryHistoryStore,
    parse_timeframe,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class StepClock:
    """Clock that advances one second per call unless frozen."""

    def __init__(self, start: datetime = NOW, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


def _event(event_type: str, status: str | None = None, when: datetime | None = None):
    return HistoryEvent(type=event_type, status=status, timestamp=when)


def test_append_stamps_serial_and_timestamp():
    store = InMemoryHistoryStore(clock=StepClock())

    stored = store.append("HWTC0001", _event("START", "online"))

    assert stored.serial == "HWTC0001"
    assert stored.timestamp == NOW
    assert store.query("HWTC0001") == [stored]


def test_append_rejects_empty_serial():
    store = InMemoryHistoryStore()

    with pytest.raises(ValidationError):
        store.append("", _event("START"))


def test_101st_event_evicts_exactly_the_oldest():
    store = InMemoryHistoryStore(clock=StepClock())
    for index in range(101):
        store.append("A", HistoryEvent(type="START", description=f"event-{index}"))

    events = store.query("A")

    assert len(events) == 100
    assert events[0].description == "event-100"
    assert events[-1].description == "event-1"
    assert all(event.description != "event-0" for event in events)


def test_query_newest_first_with_filters_and_limit():
    store = InMemoryHistoryStore(clock=StepClock())
    store.append("A", _event("START", "online", NOW - timedelta(hours=3)))
    store.append("A", _event("STOP", "offline", NOW - timedelta(hours=2)))
    store.append("A", _event("START", "online", NOW - timedelta(hours=1)))
    store.append("B", _event("START", "online", NOW))

    starts = store.query("A", event_type="START")
    assert [event.timestamp for event in starts] == [
        NOW - timedelta(hours=1),
        NOW - timedelta(hours=3),
    ]

    window = store.query(
        "A",
        start_date=NOW - timedelta(hours=2, minutes=30),
        end_date=NOW - timedelta(minutes=90),
    )
    assert [event.type for event in window] == ["STOP"]

    limited = store.query("A", limit=2)
    assert [event.type for event in limited] == ["START", "STOP"]


def test_query_keeps_append_order_for_equal_timestamps():
    store = InMemoryHistoryStore()
    store.append("A", HistoryEvent(type="START", description="first", timestamp=NOW))
    store.append("A", HistoryEvent(type="STOP", description="second", timestamp=NOW))

    assert [event.description for event in store.query("A")] == ["second", "first"]


def test_query_unknown_serial_is_empty_and_limit_is_validated():
    store = InMemoryHistoryStore()

    assert store.query("missing") == []
    with pytest.raises(ValidationError):
        store.query("missing", limit=0)


def test_metrics_for_one_serial():
    store = InMemoryHistoryStore(clock=lambda: NOW)
    store.append("A", _event("START", "online", NOW - timedelta(days=10)))
    store.append("A", _event("REBOOT", "rebooting", NOW - timedelta(days=3)))
    store.append("A", _event("ERROR", "error", NOW - timedelta(hours=2)))

    metrics = store.metrics("A")

    assert metrics.total == 3
    assert metrics.last_24h == 1
    assert metrics.last_week == 2
    assert metrics.by_type == {"START": 1, "REBOOT": 1, "ERROR": 1}
    assert metrics.last_event.type == "ERROR"


def test_metrics_for_unknown_serial_are_zero():
    store = InMemoryHistoryStore()

    metrics = store.metrics("missing")

    assert metrics.total == 0
    assert metrics.by_type == {}
    assert metrics.last_event is None


def test_global_metrics_scan_every_serial():
    store = InMemoryHistoryStore(clock=lambda: NOW)
    store.append("A", _event("START", "online", NOW - timedelta(hours=1)))
    store.append("A", _event("STOP", "offline", NOW - timedelta(days=2)))
    store.append("B", _event("START", "online", NOW - timedelta(days=30)))

    metrics = store.global_metrics()

    assert metrics.total_events == 3
    assert metrics.active_serials == 2
    assert metrics.events_by_type == {"START": 2, "STOP": 1}
    assert metrics.recent_activity.last_24h == 1
    assert metrics.recent_activity.last_week == 2


def test_clear_recent_and_failure_events():
    store = InMemoryHistoryStore(clock=StepClock())
    store.append("A", _event("START", "online"))
    store.append("A", _event("ERROR", "error"))
    store.append("A", _event("CONFIGURE", "failed"))
    store.append("A", _event("STOP", "offline"))

    assert [event.type for event in store.recent_events("A", limit=2)] == ["STOP", "CONFIGURE"]
    assert [event.type for event in store.failure_events("A")] == ["CONFIGURE", "ERROR"]

    assert store.clear("A") == 4
    assert store.query("A") == []
    assert store.global_metrics().active_serials == 0
    assert store.clear("A") == 0


def test_event_counts_for_timeframe():
    store = InMemoryHistoryStore(clock=lambda: NOW)
    store.append("A", _event("START", "online", NOW - timedelta(hours=1)))
    store.append("A", _event("STOP", "offline", NOW - timedelta(hours=5)))
    store.append("A", _event("START", None, NOW - timedelta(days=3)))

    counts = store.event_counts("A", "6h")
    assert counts.total == 2
    assert counts.by_type == {"START": 1, "STOP": 1}
    assert counts.by_status == {"online": 1, "offline": 1}

    assert store.event_counts("A", "1w").total == 3


@pytest.mark.parametrize(
    ("timeframe", "expected"),
    [("24h", timedelta(hours=24)), ("7d", timedelta(days=7)), ("2w", timedelta(weeks=2))],
)
def test_parse_timeframe(timeframe, expected):
    assert parse_timeframe(timeframe) == expected


@pytest.mark.parametrize("timeframe", ["", "24", "h", "3m", "-1d"])
def test_parse_timeframe_rejects_invalid(timeframe):
    with pytest.raises(ValidationError):
        parse_timeframe(timeframe)
