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
"""Parsers turning raw device output into structured entities."""

from __future__ import annotations

import re
from typing import Callable, Optional, Union

from olt_manager.app.domain.entities import (
    OnuLocation,
    OnuRecord,
    ParsedEntity,
    PortConfig,
    SystemInfo,
    UnauthorizedOnuRecord,
)
from olt_manager.app.domain.intents import CommandKind

# Device error markers
ERROR_PATTERNS = [
    "% Unknown command",
    "% Parameter error",
    "% Incomplete command",
    "% Invalid input",
    "Failure:",
    "Error:",
]

ONU_ROW_MIN_TOKENS = 6
UNAUTHORIZED_ROW_MIN_TOKENS = 3

# Huawei GPON ONT MIB tables (hwGponDeviceOntTable and friends).
OID_ONU_SERIAL = "1.3.6.1.4.1.2011.6.128.1.1.2.43.1.3"
OID_ONU_RUN_STATE = "1.3.6.1.4.1.2011.6.128.1.1.2.46.1.15"
OID_ONU_RX_POWER = "1.3.6.1.4.1.2011.6.128.1.1.2.51.1.4"
GPON_IFINDEX_BASE = 0xFA000000
SNMP_NO_VALUE = 2147483647

_COLUMN_TITLES = {"port", "number", "sn", "serial"}
_FRAME_MARKER = re.compile(r"^\s*Frame\s+(\d+)\s*$", re.IGNORECASE)
_SLOT_MARKER = re.compile(r"^\s*Slot\s+(\d+)\s*$", re.IGNORECASE)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_SNMP_LINE = re.compile(r"^\.?(?P<oid>[\d.]+)\s*=\s*(?:(?P<type>[\w-]+):\s*)?(?P<value>.*)$")

ParseResult = Union[ParsedEntity, list[ParsedEntity], None]


def check_for_errors(output: str) -> Optional[str]:
    """Return an error message if the output carries a device error marker."""
    for pattern in ERROR_PATTERNS:
        if pattern in output:
            return f"Command error detected: {pattern}"
    return None


def to_int(value: str, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def to_float(value: str, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _first_number(value: str) -> float:
    match = _NUMBER.search(value or "")
    return float(match.group(0)) if match else 0.0


def _is_noise(line: str) -> bool:
    stripped = line.strip()
    if not stripped or "-----" in stripped or "F/S/P" in stripped:
        return True
    return stripped.split()[0].lower() in _COLUMN_TITLES


def _key_values(raw: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in raw.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = " ".join(key.split()).lower()
        if key and key not in values:
            values[key] = value.strip()
    return values


def parse_system_info(raw: str, observed_at: Optional[str] = None) -> Optional[SystemInfo]:
    """Parse ``display version`` plus ``display temperature`` output."""
    model = version = uptime = ""
    temperature = 0.0
    found = False
    for line in raw.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().upper()
        if key == "PRODUCT":
            model, found = value.strip(), True
        elif key == "VERSION":
            version, found = value.strip(), True
        elif key == "UPTIME":
            uptime, found = value.strip(), True
        elif "CURRENT TEMPERATURE" in key:
            temperature, found = _first_number(value), True
    if not found:
        return None
    return SystemInfo(model=model, version=version, uptime=uptime, temperature=temperature)


def parse_onu_list(raw: str, observed_at: Optional[str] = None) -> list[OnuRecord]:
    """Parse the ONU table of ``display ont info <frame> all``.

    ``Frame N`` and ``Slot N`` lines set the location of the rows that
    follow. Rows shorter than the minimum column count are skipped.
    """
    records: list[OnuRecord] = []
    frame = 0
    slot = 0
    for line in raw.splitlines():
        if _is_noise(line):
            continue
        marker = _FRAME_MARKER.match(line)
        if marker:
            frame = int(marker.group(1))
            continue
        marker = _SLOT_MARKER.match(line)
        if marker:
            slot = int(marker.group(1))
            continue
        parts = line.split()
        if len(parts) < ONU_ROW_MIN_TOKENS:
            continue
        records.append(
            OnuRecord(
                location=OnuLocation(
                    frame=frame,
                    slot=slot,
                    port=to_int(parts[0]),
                    onu_id=to_int(parts[1]),
                ),
                serial=parts[3],
                status=parts[4].lower(),
                signal_dbm=to_float(parts[5]),
                description=" ".join(parts[6:]),
                last_seen=observed_at,
                equipment=parts[2],
            )
        )
    return records


def parse_unauthorized_onus(
    raw: str, observed_at: Optional[str] = None
) -> list[UnauthorizedOnuRecord]:
    """Parse ``display ont autofind`` rows: SN, F/S/P, found time, equipment."""
    records: list[UnauthorizedOnuRecord] = []
    for line in raw.splitlines():
        if _is_noise(line):
            continue
        parts = line.split()
        if len(parts) < UNAUTHORIZED_ROW_MIN_TOKENS:
            continue
        records.append(
            UnauthorizedOnuRecord(
                serial=parts[0],
                port=parts[1],
                first_seen_at=parts[2],
                equipment=parts[3] if len(parts) > 3 else None,
            )
        )
    return records


def parse_onu_detail(raw: str, observed_at: Optional[str] = None) -> Optional[OnuRecord]:
    """Parse the key/value block of ``display ont info by-sn``."""
    values = _key_values(raw)
    serial = values.get("sn")
    if not serial:
        return None
    path = values.get("f/s/p", "").split("/")
    frame, slot, port = (to_int(part) for part in (path + ["", "", ""])[:3])
    return OnuRecord(
        location=OnuLocation(
            frame=frame,
            slot=slot,
            port=port,
            onu_id=to_int(values.get("ont-id", "")),
        ),
        serial=serial,
        status=values.get("run state", "unknown").lower(),
        signal_dbm=to_float(values.get("rx optical power(dbm)", "")),
        description=values.get("description", ""),
        last_seen=values.get("last up time") or observed_at,
        equipment=values.get("equipment-id"),
    )


def parse_port_config(raw: str, observed_at: Optional[str] = None) -> Optional[PortConfig]:
    """Parse the key/value block of ``display port config``."""
    values = _key_values(raw)
    port = values.get("port")
    if not port:
        return None
    return PortConfig(
        port=port,
        admin_state=values.get("admin state", ""),
        mode=values.get("mode", ""),
        dhcp_mode=values.get("dhcp mode", ""),
        vlan=to_int(values.get("native vlan", "")),
    )


def decode_gpon_ifindex(ifindex: int) -> tuple[int, int, int]:
    """Split a GPON port ifIndex into frame, slot and port."""
    offset = ifindex - GPON_IFINDEX_BASE
    if offset < 0:
        return 0, 0, 0
    frame, rest = divmod(offset, 0x10000)
    slot, rest = divmod(rest, 0x2000)
    return frame, slot, rest // 0x100


def gpon_ifindex(frame: int, slot: int, port: int) -> int:
    return GPON_IFINDEX_BASE + frame * 0x10000 + slot * 0x2000 + port * 0x100


def _snmp_serial(value_type: str, value: str) -> str:
    if value_type.lower() == "hex-string":
        return "".join(value.split()).upper()
    return value.strip().strip('"')


def _snmp_status(value: str) -> str:
    code = to_int(value.split("(")[-1].rstrip(")") if "(" in value else value, -1)
    return {1: "online", 2: "offline"}.get(code, "unknown")


def _snmp_rx_power(value: str) -> float:
    raw_value = to_int(value.split()[0] if value.split() else "", SNMP_NO_VALUE)
    if raw_value == SNMP_NO_VALUE:
        return 0.0
    return raw_value / 100


def parse_onu_optical(raw: str, observed_at: Optional[str] = None) -> list[OnuRecord]:
    """Join SNMP walks of the serial, run state and Rx power tables."""
    rows: dict[tuple[int, int], dict[str, object]] = {}
    order: list[tuple[int, int]] = []
    tables = {
        OID_ONU_SERIAL: "serial",
        OID_ONU_RUN_STATE: "status",
        OID_ONU_RX_POWER: "signal",
    }
    for line in raw.splitlines():
        match = _SNMP_LINE.match(line.strip())
        if not match:
            continue
        oid = match.group("oid")
        for table, field_name in tables.items():
            if not oid.startswith(table + "."):
                continue
            index = oid[len(table) + 1 :].split(".")
            if len(index) != 2:
                break
            key = (to_int(index[0]), to_int(index[1]))
            if key not in rows:
                rows[key] = {}
                order.append(key)
            value_type = match.group("type") or ""
            value = match.group("value")
            if field_name == "serial":
                rows[key]["serial"] = _snmp_serial(value_type, value)
            elif field_name == "status":
                rows[key]["status"] = _snmp_status(value)
            else:
                rows[key]["signal"] = _snmp_rx_power(value)
            break

    records: list[OnuRecord] = []
    for key in order:
        row = rows[key]
        serial = row.get("serial")
        if not serial:
            continue
        frame, slot, port = decode_gpon_ifindex(key[0])
        records.append(
            OnuRecord(
                location=OnuLocation(frame=frame, slot=slot, port=port, onu_id=key[1]),
                serial=str(serial),
                status=str(row.get("status", "unknown")),
                signal_dbm=float(row.get("signal", 0.0)),
                last_seen=observed_at,
            )
        )
    return records


def _acknowledgement(raw: str, observed_at: Optional[str] = None) -> None:
    return None


_PARSERS: dict[CommandKind, Callable[[str, Optional[str]], ParseResult]] = {
    CommandKind.SYSTEM_INFO: parse_system_info,
    CommandKind.ONU_LIST: parse_onu_list,
    CommandKind.UNAUTHORIZED_ONUS: parse_unauthorized_onus,
    CommandKind.ONU_STATUS: parse_onu_detail,
    CommandKind.PORT_CONFIG: parse_port_config,
    CommandKind.ONU_OPTICAL: parse_onu_optical,
}


def parse(kind: CommandKind, raw: str, observed_at: Optional[str] = None) -> ParseResult:
    """Parse raw output of a command of the given kind.

    Returns a single entity, a list, or None. An empty list or None means
    nothing was recognised; that is a valid result, not an error.
    """
    parser = _PARSERS.get(kind, _acknowledgement)
    return parser(raw or "", observed_at)
