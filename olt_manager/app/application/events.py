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
"""History event contracts."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from olt_manager.app.domain.models import HistoryEvent, HistoryEventType, OperationType


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class HistoryRecorder(Protocol):
    """Append-only sink for ONU history events."""

    def append(self, serial: str, event: HistoryEvent) -> HistoryEvent:
        """Record one event and return it with its timestamp."""


_ACTION_EVENTS = {
    OperationType.START: (HistoryEventType.START, "online", "ONU started manually"),
    OperationType.STOP: (HistoryEventType.STOP, "offline", "ONU stopped manually"),
    OperationType.REBOOT: (
        HistoryEventType.REBOOT,
        "rebooting",
        "ONU rebooting on operator request",
    ),
    OperationType.CONFIGURE: (
        HistoryEventType.CONFIGURE,
        None,
        "ONU configuration updated",
    ),
}


def action_event(
    op_type: OperationType,
    config: Optional[dict[str, Any]] = None,
    error: Optional[str] = None,
) -> HistoryEvent:
    """Event describing the outcome of one ONU action."""
    if error is not None:
        return HistoryEvent(
            type=HistoryEventType.ERROR.value,
            status="error",
            description=f"Failed to {op_type.value} ONU: {error}",
            config=dict(config) if config else None,
        )
    event_type, status, description = _ACTION_EVENTS[op_type]
    return HistoryEvent(
        type=event_type.value,
        status=status,
        description=description,
        config=dict(config) if config else None,
    )
