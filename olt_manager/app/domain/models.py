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
"""Domain models for sessions, batch operations and ONU history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class TransportKind(str, Enum):
    """How the device endpoint is reached."""

    CLI = "cli"
    OID = "oid"


class SessionState(str, Enum):
    """Lifecycle states for a device session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True)
class DeviceEndpoint:
    """Connection target for one device session."""

    host: str
    port: int = 22
    username: str = ""
    password: str = ""
    transport: TransportKind = TransportKind.CLI
    device_type: str = "huawei_olt"
    community: str = "public"
    simulation: bool = False
    connect_timeout: float = 10.0

    @property
    def key(self) -> str:
        """Stable key for maps and logs."""
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time view of a session."""

    endpoint: str
    state: SessionState
    consecutive_failures: int = 0
    last_error: Optional[str] = None


class BatchStatus(str, Enum):
    """Lifecycle states for a batch operation."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


class BatchEvent(str, Enum):
    """Events that move a batch through its lifecycle."""

    START = "start"
    COMPLETE = "complete"
    COMPLETE_WITH_ERRORS = "complete_with_errors"
    ABORT = "abort"


class SubOperationStatus(str, Enum):
    """Lifecycle states for one sub-operation."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class SubOperationEvent(str, Enum):
    """Events that move a sub-operation forward."""

    START = "start"
    SUCCEED = "succeed"
    FAIL = "fail"


class OperationType(str, Enum):
    """Per-ONU actions a batch can carry."""

    START = "start"
    STOP = "stop"
    REBOOT = "reboot"
    CONFIGURE = "configure"


TERMINAL_BATCH_STATUSES = frozenset(
    {BatchStatus.COMPLETED, BatchStatus.COMPLETED_WITH_ERRORS, BatchStatus.FAILED}
)


@dataclass(frozen=True)
class Transition:
    """Single transition entry."""

    current: str
    event: str
    next_status: str


@dataclass
class SubOperation:
    """One action against one ONU inside a batch."""

    type: OperationType
    serial: str
    status: SubOperationStatus = SubOperationStatus.PENDING
    config: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class BatchOperation:
    """Batch aggregate stored in repository."""

    batch_id: str
    status: BatchStatus
    created_at: datetime
    operations: list[SubOperation] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


class HistoryEventType(str, Enum):
    """Well-known history tags. The store accepts any tag."""

    START = "START"
    STOP = "STOP"
    REBOOT = "REBOOT"
    CONFIGURE = "CONFIGURE"
    AUTHORIZE = "AUTHORIZE"
    ERROR = "ERROR"
    STATUS_CHANGE = "STATUS_CHANGE"


@dataclass(frozen=True)
class HistoryEvent:
    """Lifecycle event recorded for one ONU."""

    type: str
    serial: str = ""
    timestamp: Optional[datetime] = None
    status: Optional[str] = None
    description: Optional[str] = None
    config: Optional[dict[str, Any]] = None


@dataclass
class HistoryMetrics:
    """Aggregates for a single serial."""

    total: int
    last_24h: int
    last_week: int
    by_type: dict[str, int] = field(default_factory=dict)
    last_event: Optional[HistoryEvent] = None


@dataclass
class RecentActivity:
    """Event counts over the trailing day and week."""

    last_24h: int = 0
    last_week: int = 0


@dataclass
class GlobalHistoryMetrics:
    """Aggregates across every serial."""

    total_events: int
    active_serials: int
    events_by_type: dict[str, int] = field(default_factory=dict)
    recent_activity: RecentActivity = field(default_factory=RecentActivity)


@dataclass
class EventCounts:
    """Counts for a trailing timeframe."""

    total: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)


class TaskState(str, Enum):
    """Lifecycle states for a scheduled follow-up task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class ScheduledTask:
    """Delayed unit of work owned by the task scheduler."""

    task_id: str
    name: str
    due_at: float
    state: TaskState = TaskState.PENDING
    error: Optional[str] = None
