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
"""Simulated OLT and the channel that talks to it."""

from __future__ import annotations

import logging
import os
import random
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Optional

from olt_manager.app.application.events import utc_now
from olt_manager.app.application.parsers import (
    OID_ONU_RUN_STATE,
    OID_ONU_RX_POWER,
    OID_ONU_SERIAL,
    SNMP_NO_VALUE,
    check_for_errors,
    gpon_ifindex,
)
from olt_manager.app.domain.errors import CommandError, CommandTimeoutError

logger = logging.getLogger(__name__)

UNKNOWN_COMMAND = "% Unknown command, the error locates at '^'"
PARAMETER_ERROR = "% Parameter error, the error locates at '^'"
ONT_NOT_FOUND = "Failure: The ONT does not exist"

MODEL = "MA5800-X7"
VERSION = "MA5800V100R019C10"
EQUIPMENT_TYPES = ("HG8245H", "HG8546M", "EG8145V5", "HG8310M")
SYS_UPTIME_OID = "1.3.6.1.2.1.1.3.0"

_SEPARATOR = "  " + "-" * 77


def _rx_text(onu: SimulatedOnu) -> str:
    if onu.status == "online" and onu.rx_power is not None:
        return f"{onu.rx_power:.2f}"
    return "-"


@dataclass
class SimulatedOnu:
    serial: str
    frame: int
    slot: int
    port: int
    onu_id: int
    equipment: str
    description: str = ""
    status: str = "online"
    rx_power: Optional[float] = None
    line_profile: str = "1"
    service_profile: str = "1"
    native_vlan: Optional[int] = None
    last_up: Optional[datetime] = None
    reboot_until: Optional[float] = None
    reboot_to: str = "online"

    @property
    def port_path(self) -> str:
        return f"{self.frame}/{self.slot}/{self.port}"


@dataclass
class SimulatedAutofind:
    serial: str
    port: str
    found_at: datetime
    equipment: str


class SimulatedOlt:
    """In-memory MA5800 answering a subset of the CLI and the ONT OID tables.

    All content derives from ``seed``; two instances with the same seed
    and clocks produce identical output.
    """

    def __init__(
        self,
        seed: int = 7,
        onu_count: int = 6,
        unauthorized_count: int = 2,
        reboot_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utc_now,
    ):
        self.reboot_seconds = reboot_seconds
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = Lock()
        self._rng = random.Random(seed)
        self._booted_at = clock()
        self._uptime_offset = self._rng.randint(1, 400) * 3600
        self.temperature = self._rng.randint(38, 52)
        self._context: Optional[tuple[int, int]] = None
        self._onus: dict[str, SimulatedOnu] = {}
        self._autofind: dict[str, SimulatedAutofind] = {}
        self._ports: dict[str, dict[str, object]] = {}
        self._vlans: dict[int, dict[str, object]] = {}
        self._service_ports: list[tuple[int, str]] = []
        self.saved = False
        self._populate(onu_count, unauthorized_count)

    def _new_serial(self) -> str:
        # Vendor id "HWTC" followed by a 32-bit hex suffix.
        return "48575443" + f"{self._rng.getrandbits(32):08X}"

    def _populate(self, onu_count: int, unauthorized_count: int) -> None:
        now = self._wall_clock()
        for index in range(onu_count):
            port = index % 2
            onu_id = index // 2
            online = self._rng.random() > 0.2
            onu = SimulatedOnu(
                serial=self._new_serial(),
                frame=0,
                slot=1,
                port=port,
                onu_id=onu_id,
                equipment=self._rng.choice(EQUIPMENT_TYPES),
                description=f"customer-{index + 1:03d}",
                status="online" if online else "offline",
                rx_power=round(self._rng.uniform(-27.5, -14.0), 2) if online else None,
                last_up=now - timedelta(minutes=self._rng.randint(5, 5000)),
            )
            self._onus[onu.serial] = onu
        for index in range(unauthorized_count):
            serial = self._new_serial()
            self._autofind[serial] = SimulatedAutofind(
                serial=serial,
                port=f"0/1/{index % 2}",
                found_at=now - timedelta(minutes=self._rng.randint(1, 120)),
                equipment=self._rng.choice(EQUIPMENT_TYPES),
            )

    @property
    def serials(self) -> list[str]:
        with self._lock:
            return list(self._onus)

    @property
    def unauthorized_serials(self) -> list[str]:
        with self._lock:
            return list(self._autofind)

    def onu(self, serial: str) -> Optional[SimulatedOnu]:
        with self._lock:
            onu = self._onus.get(serial)
            if onu is not None:
                self._refresh(onu)
            return onu

    def _refresh(self, onu: SimulatedOnu) -> None:
        if onu.reboot_until is not None and self._clock() >= onu.reboot_until:
            onu.reboot_until = None
            onu.status = onu.reboot_to
            if onu.status == "online":
                onu.last_up = self._wall_clock()
                if onu.rx_power is None:
                    onu.rx_power = round(self._rng.uniform(-27.5, -14.0), 2)

    def handle(self, command: str) -> str:
        """Return the device text for one command line."""
        line = " ".join(command.strip().split())
        with self._lock:
            for onu in self._onus.values():
                self._refresh(onu)
            for pattern, handler in self._routes:
                match = pattern.fullmatch(line)
                if match:
                    return handler(self, match)
        return UNKNOWN_COMMAND

    # display

    def _display_version(self, match: re.Match) -> str:
        seconds = int(self._clock() - self._booted_at) + self._uptime_offset
        days, rest = divmod(seconds, 86400)
        hours, rest = divmod(rest, 3600)
        minutes, seconds = divmod(rest, 60)
        return "\n".join(
            [
                f"  VERSION : {VERSION}",
                "  PATCH   : SPH210",
                f"  PRODUCT : {MODEL}",
                f"  UPTIME  : {days} day(s), {hours} hour(s), "
                f"{minutes} minute(s), {seconds} second(s)",
            ]
        )

    def _display_temperature(self, match: re.Match) -> str:
        return f"  Current temperature(C) : {self.temperature}"

    def _display_onu_table(self, match: re.Match) -> str:
        frame = int(match.group(1))
        lines: list[str] = []
        current_slot: Optional[int] = None
        onus = sorted(
            (onu for onu in self._onus.values() if onu.frame == frame),
            key=lambda onu: (onu.slot, onu.port, onu.onu_id),
        )
        if not onus:
            return ""
        lines.append(f"  Frame {frame}")
        for onu in onus:
            if onu.slot != current_slot:
                current_slot = onu.slot
                lines += [
                    f"  Slot {onu.slot}",
                    _SEPARATOR,
                    "  Port  ONT-ID  Type      SN                Status    Rx(dBm)  Description",
                    _SEPARATOR,
                ]
            rx = _rx_text(onu)
            lines.append(
                f"  {onu.port:<5} {onu.onu_id:<7} {onu.equipment:<9} {onu.serial:<17} "
                f"{onu.status:<9} {rx:<8} {onu.description}".rstrip()
            )
        lines.append(_SEPARATOR)
        return "\n".join(lines)

    def _display_autofind(self, match: re.Match) -> str:
        port = match.group(1)
        entries = [
            entry
            for entry in self._autofind.values()
            if port == "all" or entry.port == port
        ]
        lines = [
            _SEPARATOR,
            "  SN                F/S/P    Found-time            Equipment",
            _SEPARATOR,
        ]
        for entry in entries:
            found = entry.found_at.strftime("%Y-%m-%dT%H:%M:%SZ")
            lines.append(f"  {entry.serial:<17} {entry.port:<8} {found:<21} {entry.equipment}")
        lines.append(_SEPARATOR)
        return "\n".join(lines)

    def _display_onu_detail(self, match: re.Match) -> str:
        onu = self._onus.get(match.group(1))
        if onu is None:
            return ONT_NOT_FOUND
        rx = _rx_text(onu)
        last_up = onu.last_up.strftime("%Y-%m-%d %H:%M:%S") if onu.last_up else "-"
        return "\n".join(
            [
                f"  F/S/P                   : {onu.port_path}",
                f"  ONT-ID                  : {onu.onu_id}",
                f"  SN                      : {onu.serial}",
                f"  Run state               : {onu.status}",
                f"  Description             : {onu.description}",
                f"  Equipment-ID            : {onu.equipment}",
                f"  Line profile ID         : {onu.line_profile}",
                f"  Service profile ID      : {onu.service_profile}",
                f"  Native VLAN             : {onu.native_vlan if onu.native_vlan else '-'}",
                f"  Rx optical power(dBm)   : {rx}",
                f"  Last up time            : {last_up}",
            ]
        )

    def _port_settings(self, path: str) -> dict[str, object]:
        return self._ports.setdefault(
            path,
            {"admin_state": "enable", "mode": "lan", "dhcp_mode": "none", "vlan": None},
        )

    def _display_port_config(self, match: re.Match) -> str:
        path = match.group(1)
        settings = self._port_settings(path)
        return "\n".join(
            [
                f"  Port         : {path}",
                f"  Admin state  : {settings['admin_state']}",
                f"  Mode         : {settings['mode']}",
                f"  DHCP mode    : {settings['dhcp_mode']}",
                f"  Native VLAN  : {settings['vlan'] or '-'}",
            ]
        )

    # interface mode

    def _enter_interface(self, match: re.Match) -> str:
        self._context = (int(match.group(1)), int(match.group(2)))
        return ""

    def _quit(self, match: re.Match) -> str:
        self._context = None
        return ""

    def _ont_add(self, match: re.Match) -> str:
        if self._context is None:
            return UNKNOWN_COMMAND
        frame, slot = self._context
        port = int(match.group("port"))
        serial = match.group("serial")
        if serial in self._onus:
            return "Failure: SN already exists"
        used = {
            onu.onu_id
            for onu in self._onus.values()
            if (onu.frame, onu.slot, onu.port) == (frame, slot, port)
        }
        if match.group("id") is not None:
            onu_id = int(match.group("id"))
            if onu_id in used:
                return "Failure: The ONT ID has already existed"
        else:
            onu_id = next(index for index in range(128) if index not in used)
        found = self._autofind.pop(serial, None)
        self._onus[serial] = SimulatedOnu(
            serial=serial,
            frame=frame,
            slot=slot,
            port=port,
            onu_id=onu_id,
            equipment=found.equipment if found else self._rng.choice(EQUIPMENT_TYPES),
            description=match.group("desc"),
            status="online",
            rx_power=round(self._rng.uniform(-27.5, -14.0), 2),
            line_profile=match.group("line"),
            service_profile=match.group("srv"),
            last_up=self._wall_clock(),
        )
        return (
            "  Number of ONTs that can be added: 1, success: 1\n"
            f"  PortID :{port}, ONTID :{onu_id}"
        )

    def _find_at(self, port: int, onu_id: int) -> Optional[SimulatedOnu]:
        if self._context is None:
            return None
        frame, slot = self._context
        for onu in self._onus.values():
            if (onu.frame, onu.slot, onu.port, onu.onu_id) == (frame, slot, port, onu_id):
                return onu
        return None

    def _ont_native_vlan(self, match: re.Match) -> str:
        if self._context is None:
            return UNKNOWN_COMMAND
        onu = self._find_at(int(match.group(1)), int(match.group(2)))
        if onu is None:
            return ONT_NOT_FOUND
        onu.native_vlan = int(match.group(3))
        return ""

    def _ont_delete(self, match: re.Match) -> str:
        if self._context is None:
            return UNKNOWN_COMMAND
        onu = self._find_at(int(match.group(1)), int(match.group(2)))
        if onu is None:
            return ONT_NOT_FOUND
        del self._onus[onu.serial]
        return "  Number of ONTs that can be deleted: 1, success: 1"

    def _port_setting(self, match: re.Match) -> str:
        if self._context is None:
            return UNKNOWN_COMMAND
        frame, slot = self._context
        settings = self._port_settings(f"{frame}/{slot}/{match.group(1)}")
        key = match.group(2).replace("-", "_")
        value = match.group(3)
        if key == "native_vlan":
            settings["vlan"] = int(value)
        else:
            settings[key] = value
        return ""

    # global config

    def _vlan_create(self, match: re.Match) -> str:
        self._vlans.setdefault(int(match.group(1)), {"description": ""})
        return ""

    def _vlan_description(self, match: re.Match) -> str:
        vlan = self._vlans.get(int(match.group(1)))
        if vlan is None:
            return "Failure: The VLAN does not exist"
        vlan["description"] = match.group(2)
        return ""

    def _service_port(self, match: re.Match) -> str:
        vlan = int(match.group(1))
        if vlan not in self._vlans:
            return "Failure: The VLAN does not exist"
        self._service_ports.append((vlan, match.group(2)))
        return ""

    def _onu_action(self, match: re.Match) -> str:
        action, serial = match.group(1), match.group(2)
        onu = self._onus.get(serial)
        if onu is None:
            return ONT_NOT_FOUND
        if action == "start":
            onu.reboot_until = None
            onu.status = "online"
            onu.last_up = self._wall_clock()
            if onu.rx_power is None:
                onu.rx_power = round(self._rng.uniform(-27.5, -14.0), 2)
        elif action == "stop":
            onu.reboot_until = None
            onu.status = "offline"
        else:
            onu.reboot_to = "online"
            onu.status = "rebooting"
            onu.reboot_until = self._clock() + self.reboot_seconds
        return ""

    def _onu_setting(self, match: re.Match) -> str:
        setting, serial, value = match.group(1), match.group(2), match.group(3)
        onu = self._onus.get(serial)
        if onu is None:
            return ONT_NOT_FOUND
        if setting == "line-profile":
            onu.line_profile = value
        elif setting == "service-profile":
            onu.service_profile = value
        else:
            onu.native_vlan = int(value)
        return ""

    def _save(self, match: re.Match) -> str:
        self.saved = True
        return "  The data of the system is saved completely"

    # OID requests

    def _walk(self, match: re.Match) -> str:
        oid = match.group(1)
        lines: list[str] = []
        for table in (OID_ONU_SERIAL, OID_ONU_RUN_STATE, OID_ONU_RX_POWER):
            if oid != table and not oid.startswith(table + "."):
                continue
            suffix = oid[len(table) + 1 :]
            for onu in self._onus.values():
                ifindex = gpon_ifindex(onu.frame, onu.slot, onu.port)
                if suffix and suffix != str(ifindex):
                    continue
                lines.append(f".{table}.{ifindex}.{onu.onu_id} = {self._oid_value(table, onu)}")
            return "\n".join(lines)
        return f".{oid} = No Such Object available on this agent at this OID"

    def _oid_value(self, table: str, onu: SimulatedOnu) -> str:
        if table == OID_ONU_SERIAL:
            pairs = " ".join(onu.serial[i : i + 2] for i in range(0, len(onu.serial), 2))
            return f"Hex-STRING: {pairs}"
        if table == OID_ONU_RUN_STATE:
            return f"INTEGER: {1 if onu.status == 'online' else 2}"
        if onu.status != "online" or onu.rx_power is None:
            return f"INTEGER: {SNMP_NO_VALUE}"
        return f"INTEGER: {int(round(onu.rx_power * 100))}"

    def _get(self, match: re.Match) -> str:
        if match.group(1) == SYS_UPTIME_OID:
            ticks = int((self._clock() - self._booted_at + self._uptime_offset) * 100)
            return f".{SYS_UPTIME_OID} = Timeticks: ({ticks})"
        return f".{match.group(1)} = No Such Object available on this agent at this OID"

    _routes = [
        (re.compile(r"display version"), _display_version),
        (re.compile(r"display temperature"), _display_temperature),
        (re.compile(r"display ont info (\d+) all"), _display_onu_table),
        (re.compile(r"display ont autofind (all|\d+/\d+/\d+)"), _display_autofind),
        (re.compile(r"display ont info by-sn (\S+)"), _display_onu_detail),
        (re.compile(r"display port config (\d+/\d+/\d+)"), _display_port_config),
        (re.compile(r"interface gpon (\d+)/(\d+)"), _enter_interface),
        (re.compile(r"quit"), _quit),
        (
            re.compile(
                r"ont add (?P<port>\d+)(?: (?P<id>\d+))? sn-auth (?P<serial>\S+) omci "
                r"ont-lineprofile-id (?P<line>\d+) ont-srvprofile-id (?P<srv>\d+) "
                r"desc \"(?P<desc>[^\"]*)\""
            ),
            _ont_add,
        ),
        (re.compile(r"ont port native-vlan (\d+) (\d+) eth 1 vlan (\d+)"), _ont_native_vlan),
        (re.compile(r"ont delete (\d+) (\d+)"), _ont_delete),
        (
            re.compile(r"port (\d+) (admin-state|mode|dhcp-mode|native-vlan) (\S+)"),
            _port_setting,
        ),
        (re.compile(r"vlan (\d+) smart"), _vlan_create),
        (re.compile(r"vlan desc (\d+) description (.+)"), _vlan_description),
        (
            re.compile(r"service-port vlan (\d+) gpon (\d+/\d+/\d+) user-vlan \d+"),
            _service_port,
        ),
        (re.compile(r"onu (start|stop|reboot) (\S+)"), _onu_action),
        (re.compile(r"onu (line-profile|service-profile|vlan) (\S+) (\d+)"), _onu_setting),
        (re.compile(r"save"), _save),
        (re.compile(r"walk \.?([\d.]+)"), _walk),
        (re.compile(r"get \.?([\d.]+)"), _get),
        (
            re.compile(r"(?:display|ont|onu|port|vlan|interface) .*"),
            lambda self, match: PARAMETER_ERROR,
        ),
    ]


def simulated_delay_ms() -> int:
    """Artificial per-command delay in milliseconds."""
    return int(os.getenv("OLT_MANAGER_SIMULATED_DELAY_MS", "0").strip() or "0")


class SimulatedChannel:
    """Transport channel backed by a SimulatedOlt."""

    def __init__(
        self,
        olt: SimulatedOlt,
        delay_ms: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.olt = olt
        self.delay_ms = simulated_delay_ms() if delay_ms is None else delay_ms
        self._sleep = sleep

    def connect(self) -> None:
        logger.debug("Simulated channel ready")

    def send(self, command: str, terminator: Optional[str], timeout: float) -> str:
        delay = self.delay_ms / 1000.0
        if delay > timeout:
            self._sleep(timeout)
            raise CommandTimeoutError(f"No prompt after {timeout:.1f}s for command: {command}")
        if delay > 0:
            self._sleep(delay)
        output = self.olt.handle(command)
        error_msg = check_for_errors(output)
        if error_msg:
            raise CommandError(error_msg, output=output)
        return output

    def disconnect(self) -> None:
        logger.debug("Simulated channel released")
