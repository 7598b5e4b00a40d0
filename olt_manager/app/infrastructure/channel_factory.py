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
"""Selects transport channel variants from settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from olt_manager.app.application.session_manager import (
    SessionConfig,
    SessionManager,
    TransportChannel,
)
from olt_manager.app.config import Settings
from olt_manager.app.domain.models import DeviceEndpoint, TransportKind
from olt_manager.app.infrastructure.netmiko_cli_channel import NetmikoCliChannel
from olt_manager.app.infrastructure.simulated_channel import SimulatedChannel, SimulatedOlt
from olt_manager.app.infrastructure.snmp_channel import SnmpChannel


@dataclass
class DeviceSessions:
    """Session managers for the CLI and, optionally, the OID channel."""

    cli: SessionManager
    oid: Optional[SessionManager] = None
    simulated_olt: Optional[SimulatedOlt] = None


def cli_endpoint(settings: Settings) -> DeviceEndpoint:
    return DeviceEndpoint(
        host=settings.host,
        port=settings.port,
        username=settings.username,
        password=settings.password,
        transport=TransportKind.CLI,
        device_type=settings.device_type,
        simulation=settings.simulation,
    )


def oid_endpoint(settings: Settings) -> DeviceEndpoint:
    return DeviceEndpoint(
        host=settings.host,
        port=settings.snmp_port,
        transport=TransportKind.OID,
        community=settings.snmp_community,
        simulation=settings.simulation,
    )


def create_channel(endpoint: DeviceEndpoint) -> TransportChannel:
    """Real channel for an endpoint."""
    if endpoint.transport == TransportKind.OID:
        return SnmpChannel(endpoint)
    return NetmikoCliChannel(endpoint)


def build_sessions(settings: Settings) -> DeviceSessions:
    session_config = SessionConfig(
        command_timeout=settings.command_timeout,
        backoff_seconds=settings.connect_backoff,
    )
    cli = cli_endpoint(settings)
    oid = oid_endpoint(settings)
    if settings.simulation:
        olt = SimulatedOlt(
            seed=settings.simulated_seed,
            reboot_seconds=settings.reboot_recovery_seconds,
        )
        channel = SimulatedChannel(olt, delay_ms=settings.simulated_delay_ms)
        return DeviceSessions(
            cli=SessionManager(cli, channel, session_config),
            oid=SessionManager(oid, channel, session_config),
            simulated_olt=olt,
        )
    return DeviceSessions(
        cli=SessionManager(cli, create_channel(cli), session_config),
        oid=(
            SessionManager(oid, create_channel(oid), session_config)
            if settings.snmp_enabled
            else None
        ),
    )
