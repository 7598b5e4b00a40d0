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
"""Typed command intents produced by callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union


class CommandKind(str, Enum):
    """Kind of command; also selects the output parser."""

    SYSTEM_INFO = "system_info"
    ONU_LIST = "onu_list"
    UNAUTHORIZED_ONUS = "unauthorized_onus"
    ONU_STATUS = "onu_status"
    PORT_CONFIG = "port_config"
    ONU_OPTICAL = "onu_optical"
    AUTHORIZE_ONU = "authorize_onu"
    DELETE_ONU = "delete_onu"
    CONFIGURE_PORT = "configure_port"
    CONFIGURE_VLAN = "configure_vlan"
    START_ONU = "start_onu"
    STOP_ONU = "stop_onu"
    REBOOT_ONU = "reboot_onu"
    CONFIGURE_ONU = "configure_onu"
    ONU_NATIVE_VLAN = "onu_native_vlan"
    SAVE_CONFIG = "save_config"


@dataclass(frozen=True)
class SystemInfoQuery:
    kind: ClassVar[CommandKind] = CommandKind.SYSTEM_INFO


@dataclass(frozen=True)
class OnuListQuery:
    kind: ClassVar[CommandKind] = CommandKind.ONU_LIST

    frame: int = 0


@dataclass(frozen=True)
class UnauthorizedOnuQuery:
    kind: ClassVar[CommandKind] = CommandKind.UNAUTHORIZED_ONUS

    port: Optional[str] = None


@dataclass(frozen=True)
class OnuStatusQuery:
    kind: ClassVar[CommandKind] = CommandKind.ONU_STATUS

    serial: str


@dataclass(frozen=True)
class PortConfigQuery:
    kind: ClassVar[CommandKind] = CommandKind.PORT_CONFIG

    port: str


@dataclass(frozen=True)
class OnuOpticalPoll:
    """OID-style poll of ONU serial, run state and Rx power tables."""

    kind: ClassVar[CommandKind] = CommandKind.ONU_OPTICAL

    port: Optional[str] = None


@dataclass(frozen=True)
class AuthorizeOnu:
    kind: ClassVar[CommandKind] = CommandKind.AUTHORIZE_ONU

    port: str
    serial: str
    description: str = ""
    line_profile: str = "1"
    service_profile: str = "1"
    native_vlan: Optional[int] = None
    onu_id: Optional[int] = None


@dataclass(frozen=True)
class DeleteOnu:
    kind: ClassVar[CommandKind] = CommandKind.DELETE_ONU

    port: str
    onu_id: int


@dataclass(frozen=True)
class ConfigurePort:
    kind: ClassVar[CommandKind] = CommandKind.CONFIGURE_PORT

    port: str
    admin_state: str = "enable"
    mode: str = "lan"
    dhcp_mode: str = "none"
    vlan: Optional[int] = None


@dataclass(frozen=True)
class ConfigureVlan:
    kind: ClassVar[CommandKind] = CommandKind.CONFIGURE_VLAN

    vlan_id: int
    description: str = ""
    ports: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StartOnu:
    kind: ClassVar[CommandKind] = CommandKind.START_ONU

    serial: str


@dataclass(frozen=True)
class StopOnu:
    kind: ClassVar[CommandKind] = CommandKind.STOP_ONU

    serial: str


@dataclass(frozen=True)
class RebootOnu:
    kind: ClassVar[CommandKind] = CommandKind.REBOOT_ONU

    serial: str


@dataclass(frozen=True)
class ConfigureOnu:
    kind: ClassVar[CommandKind] = CommandKind.CONFIGURE_ONU

    serial: str
    line_profile: Optional[str] = None
    service_profile: Optional[str] = None
    native_vlan: Optional[int] = None


@dataclass(frozen=True)
class OnuNativeVlan:
    """Native VLAN of the first Ethernet port of an authorized ONU."""

    kind: ClassVar[CommandKind] = CommandKind.ONU_NATIVE_VLAN

    port: str
    onu_id: int
    vlan: int


@dataclass(frozen=True)
class SaveConfig:
    kind: ClassVar[CommandKind] = CommandKind.SAVE_CONFIG


CommandIntent = Union[
    SystemInfoQuery,
    OnuListQuery,
    UnauthorizedOnuQuery,
    OnuStatusQuery,
    PortConfigQuery,
    OnuOpticalPoll,
    AuthorizeOnu,
    DeleteOnu,
    ConfigurePort,
    ConfigureVlan,
    StartOnu,
    StopOnu,
    RebootOnu,
    ConfigureOnu,
    OnuNativeVlan,
    SaveConfig,
]
