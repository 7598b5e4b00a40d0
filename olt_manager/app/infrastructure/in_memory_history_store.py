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
"""Bounded per-ONU event history kept in memory."""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Iterable, Optional

from olt_manager.app.application.events import utc_now
from olt_manager.app.domain.errors import ValidationError
from olt_manager.app.domain.models import (
    EventCounts,
    GlobalHistoryMetrics,
    HistoryEvent,
    HistoryEventType,
    HistoryMetrics,
    RecentActivity,
)

logger = logging.getLogger(__name__)

MAX_EVENTS_PER_SERIAL = 100
FAILURE_STATUSES = ("failed", "error")

_TIMEFRAME = re.compile(r"^(\d+)([hdw])$")
_TIMEFRAME_UNITS = {"h": timedelta(hours=1), "d": timedelta(days=1), "w": timedelta(weeks=1)}


def parse_timeframe(timeframe: str) -> timedelta:
    """Convert ``24h``, ``7d`` or ``2w`` into a timedelta."""
    match = _TIMEFRAME.match((timeframe or "").strip())
    if not match:
        raise ValidationError(f"Invalid timeframe: {timeframe!r} (expected Nh, Nd or Nw)")
    return int(match.group(1)) * _TIMEFRAME_UNITS[match.group(2)]


def _count(values: Iterable[Optional[str]]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for value in values:
        if value:
            counts[value] = counts.get(value, 0) + 1
    return counts


class InMemoryHistoryStore:
    """Keeps at most the newest MAX_EVENTS_PER_SERIAL events for each serial."""

    def __init__(
        self,
        max_events: int = MAX_EVENTS_PER_SERIAL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._lock = Lock()
        self._max_events = max_events
        self._clock = clock
        self._events: dict[str, deque[HistoryEvent]] = {}

    def append(self, serial: str, event: HistoryEvent) -> HistoryEvent:
        if not serial:
            raise ValidationError("History events need a serial")
        stamped = replace(
            event,
            serial=serial,
            timestamp=event.timestamp or self._clock(),
        )
        with self._lock:
            log = self._events.get(serial)
            if log is None:
                log = deque(maxlen=self._max_events)
                self._events[serial] = log
            log.append(stamped)
        logger.info(
            "History event serial=%s type=%s status=%s",
            serial,
            stamped.type,
            stamped.status,
        )
        return stamped

    def _snapshot(self, serial: str) -> list[HistoryEvent]:
        with self._lock:
            return list(self._events.get(serial, ()))

    def query(
        self,
        serial: str,
        event_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[HistoryEvent]:
        """Matching events newest-first; limit applies after filtering."""
        if limit is not None and limit < 1:
            raise ValidationError(f"limit must be positive, got {limit}")
        events = self._snapshot(serial)
        if event_type:
            events = [event for event in events if event.type == event_type]
        if start_date is not None:
            events = [event for event in events if event.timestamp >= start_date]
        if end_date is not None:
            events = [event for event in events if event.timestamp <= end_date]
        # Ties keep newest-appended first.
        events = sorted(reversed(events), key=lambda event: event.timestamp, reverse=True)
        if limit is not None:
            events = events[:limit]
        return events

    def recent_events(self, serial: str, limit: int = 10) -> list[HistoryEvent]:
        return self.query(serial, limit=limit)

    def failure_events(self, serial: str) -> list[HistoryEvent]:
        return [
            event
            for event in self.query(serial)
            if event.type == HistoryEventType.ERROR.value
            or event.status in FAILURE_STATUSES
        ]

    def clear(self, serial: str) -> int:
        """Forget every event of a serial and return how many were dropped."""
        with self._lock:
            removed = self._events.pop(serial, None)
        count = len(removed) if removed else 0
        logger.info("History cleared serial=%s events=%s", serial, count)
        return count

    def metrics(self, serial: str) -> HistoryMetrics:
        events = self._snapshot(serial)
        now = self._clock()
        day_ago = now - timedelta(days=1)
        week_ago = now - timedelta(weeks=1)
        return HistoryMetrics(
            total=len(events),
            last_24h=sum(1 for event in events if event.timestamp >= day_ago),
            last_week=sum(1 for event in events if event.timestamp >= week_ago),
            by_type=_count(event.type for event in events),
            last_event=events[-1] if events else None,
        )

    def global_metrics(self) -> GlobalHistoryMetrics:
        with self._lock:
            logs = {serial: list(events) for serial, events in self._events.items()}
        now = self._clock()
        day_ago = now - timedelta(days=1)
        week_ago = now - timedelta(weeks=1)
        events = [event for log in logs.values() for event in log]
        return GlobalHistoryMetrics(
            total_events=len(events),
            active_serials=len(logs),
            events_by_type=_count(event.type for event in events),
            recent_activity=RecentActivity(
                last_24h=sum(1 for event in events if event.timestamp >= day_ago),
                last_week=sum(1 for event in events if event.timestamp >= week_ago),
            ),
        )

    def event_counts(self, serial: str, timeframe: str = "24h") -> EventCounts:
        cutoff = self._clock() - parse_timeframe(timeframe)
        events = [event for event in self._snapshot(serial) if event.timestamp > cutoff]
        return EventCounts(
            total=len(events),
            by_type=_count(event.type for event in events),
            by_status=_count(event.status for event in events),
        )
