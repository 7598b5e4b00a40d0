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
"""Unit tests for the simulated OLT and its channel."""

from datetime import datetime, timezone

import pytest

from olt_manager.app.application.commands import CommandBuilder
from olt_manager.app.application.parsers import parse
from olt_manager.app.domain.errors import CommandError, CommandTimeoutError
from olt_manager.app.domain.intents import CommandKind, OnuOpticalPoll
from olt_manager.app.infrastructure.simulated_channel import SimulatedChannel, SimulatedOlt

FIXED_WALL = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _olt(seed=7, clock=None):
    return SimulatedOlt(seed=seed, clock=clock or FakeClock(), wall_clock=lambda: FIXED_WALL)


def test_same_seed_gives_identical_output():
    first = _olt(seed=11)
    second = _olt(seed=11)

    for command in ("display ont info 0 all", "display ont autofind all", "display version"):
        assert first.handle(command) == second.handle(command)


def test_onu_table_parses_into_every_simulated_onu():
    olt = _olt()

    records = parse(CommandKind.ONU_LIST, olt.handle("display ont info 0 all"))

    assert sorted(record.serial for record in records) == sorted(olt.serials)
    assert all(record.location.slot == 1 for record in records)


def test_autofind_and_detail_parse():
    olt = _olt()
    serial = olt.serials[0]

    unauthorized = parse(CommandKind.UNAUTHORIZED_ONUS, olt.handle("display ont autofind all"))
    detail = parse(CommandKind.ONU_STATUS, olt.handle(f"display ont info by-sn {serial}"))

    assert [record.serial for record in unauthorized] == olt.unauthorized_serials
    assert detail.serial == serial
    assert detail.location.onu_id == olt.onu(serial).onu_id


def test_system_info_parses():
    olt = _olt()

    info = parse(
        CommandKind.SYSTEM_INFO,
        olt.handle("display version") + "\n" + olt.handle("display temperature"),
    )

    assert info.model == "MA5800-X7"
    assert info.temperature == float(olt.temperature)


def test_reboot_holds_rebooting_until_clock_passes():
    clock = FakeClock()
    olt = _olt(clock=clock)
    serial = olt.serials[0]

    olt.handle(f"onu reboot {serial}")
    assert olt.onu(serial).status == "rebooting"

    clock.now += olt.reboot_seconds - 0.1
    assert olt.onu(serial).status == "rebooting"

    clock.now += 0.2
    assert olt.onu(serial).status == "online"


def test_unknown_command_and_serial_raise_command_error():
    channel = SimulatedChannel(_olt(), delay_ms=0)

    with pytest.raises(CommandError) as unknown:
        channel.send("show running-config", None, 30.0)
    assert "% Unknown command" in unknown.value.output

    with pytest.raises(CommandError) as missing:
        channel.send("onu start NOPE0001", None, 30.0)
    assert "does not exist" in missing.value.output


def test_ont_add_requires_interface_mode():
    olt = _olt()
    serial = olt.unauthorized_serials[0]
    add = (
        f"ont add 0 sn-auth {serial} omci ont-lineprofile-id 1 "
        'ont-srvprofile-id 1 desc "x"'
    )

    assert olt.handle(add).startswith("% Unknown command")
    olt.handle("interface gpon 0/1")
    assert "success: 1" in olt.handle(add)
    olt.handle("quit")

    assert serial in olt.serials
    assert serial not in olt.unauthorized_serials


def test_delay_beyond_timeout_raises_command_timeout():
    sleeps: list[float] = []
    channel = SimulatedChannel(_olt(), delay_ms=5000, sleep=sleeps.append)

    with pytest.raises(CommandTimeoutError):
        channel.send("display version", None, 2.0)
    assert sleeps == [2.0]


def test_delay_is_read_from_environment(monkeypatch):
    monkeypatch.setenv("OLT_MANAGER_SIMULATED_DELAY_MS", "250")
    sleeps: list[float] = []
    channel = SimulatedChannel(_olt(), sleep=sleeps.append)

    channel.send("display temperature", None, 30.0)

    assert channel.delay_ms == 250
    assert sleeps == [0.25]


def test_oid_walk_matches_cli_view():
    olt = _olt()
    channel = SimulatedChannel(olt, delay_ms=0)

    outputs = [channel.send(cmd, None, 30.0) for cmd in CommandBuilder().build(OnuOpticalPoll())]
    records = parse(CommandKind.ONU_OPTICAL, "\n".join(outputs))

    assert sorted(record.serial for record in records) == sorted(olt.serials)
    for record in records:
        onu = olt.onu(record.serial)
        assert record.location.port == onu.port
        assert record.location.onu_id == onu.onu_id
        if onu.status == "online":
            assert record.status == "online"
            assert record.signal_dbm == pytest.approx(onu.rx_power, abs=0.01)
        else:
            assert record.signal_dbm == 0.0
