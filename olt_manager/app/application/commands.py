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
"""Command line builder for Huawei MA5800-style OLTs."""

from __future__ import annotations

import re
from typing import Optional

from olt_manager.app.application.parsers import (
    OID_ONU_RUN_STATE,
    OID_ONU_RX_POWER,
    OID_ONU_SERIAL,
    gpon_ifindex,
)
from olt_manager.app.domain.errors import ValidationError
from olt_manager.app.domain.intents import (
    AuthorizeOnu,
    CommandIntent,
    ConfigureOnu,
    ConfigurePort,
    ConfigureVlan,
    DeleteOnu,
    OnuListQuery,
    OnuNativeVlan,
    OnuOpticalPoll,
    OnuStatusQuery,
    PortConfigQuery,
    RebootOnu,
    SaveConfig,
    StartOnu,
    StopOnu,
    SystemInfoQuery,
    UnauthorizedOnuQuery,
)

PORT_PATTERN = re.compile(r"^\d+/\d+/\d+$")
VLAN_MIN = 1
VLAN_MAX = 4094
ONU_ID_MAX = 127
ADMIN_STATES = ("enable", "disable")
PORT_MODES = ("lan", "wan")
DHCP_MODES = ("none", "snooping", "relay")


def validate_port(port: str) -> tuple[int, int, int]:
    """Split ``frame/slot/port`` or raise ValidationError."""
    if not isinstance(port, str) or not PORT_PATTERN.match(port):
        raise ValidationError(f"Invalid port format: {port!r} (expected frame/slot/port)")
    frame, slot, number = (int(part) for part in port.split("/"))
    return frame, slot, number


def validate_vlan(vlan: object) -> int:
    if isinstance(vlan, bool) or not isinstance(vlan, int):
        raise ValidationError(f"VLAN must be an integer, got {vlan!r}")
    if not VLAN_MIN <= vlan <= VLAN_MAX:
        raise ValidationError(f"VLAN must be between {VLAN_MIN} and {VLAN_MAX}, got {vlan}")
    return vlan


def validate_profile(name: str, value: object) -> str:
    text = str(value).strip() if value is not None else ""
    if not text.isdigit():
        raise ValidationError(f"{name} must be numeric, got {value!r}")
    return text


def validate_serial(serial: object) -> str:
    if not isinstance(serial, str) or not serial or any(ch.isspace() for ch in serial):
        raise ValidationError(f"Invalid ONU serial: {serial!r}")
    return serial


def validate_onu_id(onu_id: object) -> int:
    if isinstance(onu_id, bool) or not isinstance(onu_id, int) or not 0 <= onu_id <= ONU_ID_MAX:
        raise ValidationError(f"ONU id must be between 0 and {ONU_ID_MAX}, got {onu_id!r}")
    return onu_id


def _validate_choice(name: str, value: str, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValidationError(f"{name} must be one of {', '.join(choices)}, got {value!r}")
    return value


def _validate_description(description: str) -> str:
    if '"' in description or "\n" in description:
        raise ValidationError("Description must not contain quotes or line breaks")
    return description


class CommandBuilder:
    """Builds the command sequence for one intent. Validates before any I/O."""

    def build(self, intent: CommandIntent) -> list[str]:
        handler = getattr(self, f"_build_{intent.kind.value}", None)
        if handler is None:
            raise ValidationError(f"Unsupported command intent: {type(intent).__name__}")
        return handler(intent)

    def _build_system_info(self, intent: SystemInfoQuery) -> list[str]:
        return ["display version", "display temperature"]

    def _build_onu_list(self, intent: OnuListQuery) -> list[str]:
        if isinstance(intent.frame, bool) or not isinstance(intent.frame, int) or intent.frame < 0:
            raise ValidationError(f"Invalid frame: {intent.frame!r}")
        return [f"display ont info {intent.frame} all"]

    def _build_unauthorized_onus(self, intent: UnauthorizedOnuQuery) -> list[str]:
        if intent.port is None:
            return ["display ont autofind all"]
        validate_port(intent.port)
        return [f"display ont autofind {intent.port}"]

    def _build_onu_status(self, intent: OnuStatusQuery) -> list[str]:
        return [f"display ont info by-sn {validate_serial(intent.serial)}"]

    def _build_port_config(self, intent: PortConfigQuery) -> list[str]:
        validate_port(intent.port)
        return [f"display port config {intent.port}"]

    def _build_onu_optical(self, intent: OnuOpticalPoll) -> list[str]:
        suffix = ""
        if intent.port is not None:
            suffix = f".{gpon_ifindex(*validate_port(intent.port))}"
        return [
            f"walk {OID_ONU_SERIAL}{suffix}",
            f"walk {OID_ONU_RUN_STATE}{suffix}",
            f"walk {OID_ONU_RX_POWER}{suffix}",
        ]

    def _build_authorize_onu(self, intent: AuthorizeOnu) -> list[str]:
        frame, slot, port = validate_port(intent.port)
        serial = validate_serial(intent.serial)
        line_profile = validate_profile("Line profile", intent.line_profile)
        service_profile = validate_profile("Service profile", intent.service_profile)
        description = _validate_description(intent.description or "")
        onu_id: Optional[int] = None
        if intent.onu_id is not None:
            onu_id = validate_onu_id(intent.onu_id)
        if intent.native_vlan is not None:
            validate_vlan(intent.native_vlan)

        add = f"ont add {port}"
        if onu_id is not None:
            add += f" {onu_id}"
        add += (
            f" sn-auth {serial} omci ont-lineprofile-id {line_profile}"
            f" ont-srvprofile-id {service_profile} desc \"{description}\""
        )
        commands = [f"interface gpon {frame}/{slot}", add]
        # Without an id the device picks one; the caller sets the VLAN afterwards.
        if intent.native_vlan is not None and onu_id is not None:
            commands.append(
                f"ont port native-vlan {port} {onu_id} eth 1 vlan {intent.native_vlan}"
            )
        commands.append("quit")
        return commands

    def _build_onu_native_vlan(self, intent: OnuNativeVlan) -> list[str]:
        frame, slot, port = validate_port(intent.port)
        onu_id = validate_onu_id(intent.onu_id)
        vlan = validate_vlan(intent.vlan)
        return [
            f"interface gpon {frame}/{slot}",
            f"ont port native-vlan {port} {onu_id} eth 1 vlan {vlan}",
            "quit",
        ]

    def _build_delete_onu(self, intent: DeleteOnu) -> list[str]:
        frame, slot, port = validate_port(intent.port)
        onu_id = validate_onu_id(intent.onu_id)
        return [f"interface gpon {frame}/{slot}", f"ont delete {port} {onu_id}", "quit"]

    def _build_configure_port(self, intent: ConfigurePort) -> list[str]:
        frame, slot, port = validate_port(intent.port)
        admin_state = _validate_choice("Admin state", intent.admin_state, ADMIN_STATES)
        mode = _validate_choice("Mode", intent.mode, PORT_MODES)
        dhcp_mode = _validate_choice("DHCP mode", intent.dhcp_mode, DHCP_MODES)
        commands = [
            f"interface gpon {frame}/{slot}",
            f"port {port} admin-state {admin_state}",
            f"port {port} mode {mode}",
            f"port {port} dhcp-mode {dhcp_mode}",
        ]
        if intent.vlan is not None:
            commands.append(f"port {port} native-vlan {validate_vlan(intent.vlan)}")
        commands.append("quit")
        return commands

    def _build_configure_vlan(self, intent: ConfigureVlan) -> list[str]:
        vlan = validate_vlan(intent.vlan_id)
        commands = [f"vlan {vlan} smart"]
        if intent.description:
            description = _validate_description(intent.description)
            commands.append(f"vlan desc {vlan} description {description}")
        for port in intent.ports:
            validate_port(port)
            commands.append(f"service-port vlan {vlan} gpon {port} user-vlan {vlan}")
        return commands

    def _build_start_onu(self, intent: StartOnu) -> list[str]:
        return [f"onu start {validate_serial(intent.serial)}"]

    def _build_stop_onu(self, intent: StopOnu) -> list[str]:
        return [f"onu stop {validate_serial(intent.serial)}"]

    def _build_reboot_onu(self, intent: RebootOnu) -> list[str]:
        return [f"onu reboot {validate_serial(intent.serial)}"]

    def _build_configure_onu(self, intent: ConfigureOnu) -> list[str]:
        serial = validate_serial(intent.serial)
        commands = []
        if intent.line_profile is not None:
            profile = validate_profile("Line profile", intent.line_profile)
            commands.append(f"onu line-profile {serial} {profile}")
        if intent.service_profile is not None:
            profile = validate_profile("Service profile", intent.service_profile)
            commands.append(f"onu service-profile {serial} {profile}")
        if intent.native_vlan is not None:
            commands.append(f"onu vlan {serial} {validate_vlan(intent.native_vlan)}")
        if not commands:
            raise ValidationError(
                "Configuration needs at least one of line_profile, service_profile, native_vlan"
            )
        return commands

    def _build_save_config(self, intent: SaveConfig) -> list[str]:
        return ["save"]
