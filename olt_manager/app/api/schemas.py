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
"""API schemas for the OLT manager."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CreateBatchRequest(BaseModel):
    """Payload to create a batch."""

    # Each item: {"type": start|stop|reboot|configure, "serial": str, "config": {...}}
    operations: List[Any]


class SubOperationResponse(BaseModel):
    type: str
    serial: str
    status: str
    config: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BatchResponse(BaseModel):
    """Batch response payload."""

    batch_id: str
    status: str
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    operations: List[SubOperationResponse]


class HistoryEventResponse(BaseModel):
    serial: str
    type: str
    timestamp: datetime
    status: Optional[str] = None
    description: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


class HistoryMetricsResponse(BaseModel):
    total: int
    last_24h: int
    last_week: int
    by_type: Dict[str, int]
    last_event: Optional[HistoryEventResponse] = None


class RecentActivityResponse(BaseModel):
    last_24h: int
    last_week: int


class GlobalMetricsResponse(BaseModel):
    total_events: int
    active_serials: int
    events_by_type: Dict[str, int]
    recent_activity: RecentActivityResponse


class ClearHistoryResponse(BaseModel):
    serial: str
    removed: int


class SystemInfoResponse(BaseModel):
    model: str
    version: str
    uptime: str
    temperature: float


class SessionResponse(BaseModel):
    endpoint: str
    state: str
    consecutive_failures: int
    last_error: Optional[str] = None
    queued: int = 0


class OnuResponse(BaseModel):
    """Authorized ONU record."""

    frame: int
    slot: int
    port: int
    onu_id: int
    serial: str
    status: str
    signal_dbm: float
    description: str = ""
    last_seen: Optional[str] = None
    equipment: Optional[str] = None


class UnauthorizedOnuResponse(BaseModel):
    serial: str
    port: str
    first_seen_at: str
    equipment: Optional[str] = None


class AuthorizeOnuRequest(BaseModel):
    """Payload to authorize a discovered ONU."""

    port: str = Field(min_length=5, max_length=16)
    serial: str = Field(min_length=1, max_length=64)
    description: str = Field(default="", max_length=64)
    line_profile: str = "1"
    service_profile: str = "1"
    native_vlan: Optional[int] = None
    onu_id: Optional[int] = None


class OnuActionRequest(BaseModel):
    config: Optional[Dict[str, Any]] = None


class PortConfigRequest(BaseModel):
    port: str = Field(min_length=5, max_length=16)
    admin_state: str = "enable"
    mode: str = "lan"
    dhcp_mode: str = "none"
    vlan: Optional[int] = None


class PortConfigResponse(BaseModel):
    port: str
    admin_state: str
    mode: str
    dhcp_mode: str
    vlan: int


class VlanRequest(BaseModel):
    vlan_id: int
    description: str = Field(default="", max_length=64)
    ports: List[str] = Field(default_factory=list)


class ScheduledTaskResponse(BaseModel):
    task_id: str
    name: str
    state: str
    due_at: float
    error: Optional[str] = None


class MessageResponse(BaseModel):
    status: str
    detail: Optional[str] = None
