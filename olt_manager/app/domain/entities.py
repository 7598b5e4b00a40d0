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
"""Structured records extracted from device output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class OnuLocation:
    """Position of an ONU on the device."""

    frame: int
    slot: int
    port: int
    onu_id: int

    @property
    def port_path(self) -> str:
        return f"{self.frame}/{self.slot}/{self.port}"


@dataclass(frozen=True)
class SystemInfo:
    """Device model, software version, uptime and temperature."""

    model: str
    version: str
    uptime: str
    temperature: float


@dataclass(frozen=True)
class OnuRecord:
    """Authorized ONU as reported by the device."""

    location: OnuLocation
    serial: str
    status: str
    signal_dbm: float
    description: str = ""
    last_seen: Optional[str] = None
    equipment: Optional[str] = None


@dataclass(frozen=True)
class UnauthorizedOnuRecord:
    """ONU found by autofind but not yet authorized."""

    serial: str
    port: str
    first_seen_at: str
    equipment: Optional[str] = None


@dataclass(frozen=True)
class PortConfig:
    """Configuration of one PON port."""

    port: str
    admin_state: str
    mode: str
    dhcp_mode: str
    vlan: int


ParsedEntity = Union[SystemInfo, OnuRecord, UnauthorizedOnuRecord, PortConfig]
