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
"""OID query channel backed by the net-snmp command line tools."""

from __future__ import annotations

import logging
import math
import subprocess
from typing import Optional

from olt_manager.app.domain.errors import (
    CommandError,
    CommandTimeoutError,
    DeviceConnectionError,
    ValidationError,
)
from olt_manager.app.domain.models import DeviceEndpoint

logger = logging.getLogger(__name__)

SYS_UPTIME_OID = "1.3.6.1.2.1.1.3.0"
NO_RESPONSE_MARKER = "Timeout: No Response"

_TOOLS = {"get": "snmpget", "walk": "snmpbulkwalk"}


class SnmpChannel:
    """Runs ``get <oid>`` / ``walk <oid>`` requests against one agent.

    Each request is a separate ``snmpget``/``snmpbulkwalk`` process;
    ``connect`` only checks that the agent answers.
    """

    def __init__(self, endpoint: DeviceEndpoint, retries: int = 0):
        self.endpoint = endpoint
        self.retries = retries
        self._open = False

    def _args(self, tool: str, oid: str, timeout: float) -> list[str]:
        args = [
            tool,
            "-v2c",
            "-c",
            self.endpoint.community,
            "-On",
            "-t",
            str(max(1, math.ceil(timeout))),
            "-r",
            str(self.retries),
        ]
        if tool == "snmpbulkwalk":
            args.append("-Cr25")
        args += [f"{self.endpoint.host}:{self.endpoint.port}", oid]
        return args

    def _run(self, args: list[str], timeout: float) -> str:
        # The tool gives up on its own after -t seconds; the margin covers process start.
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout + 5,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeoutError(
                f"SNMP request timed out after {timeout:.1f}s: {' '.join(args[-2:])}"
            ) from e
        except FileNotFoundError as e:
            raise DeviceConnectionError(f"SNMP tool not available: {args[0]}") from e
        logger.debug(
            "SNMP cmd=%s rc=%s", " ".join(args[:1] + args[-2:]), result.returncode
        )
        if result.returncode != 0:
            message = result.stderr.strip() or f"{args[0]} exited with {result.returncode}"
            if NO_RESPONSE_MARKER in message:
                raise CommandTimeoutError(message, output=result.stdout)
            raise CommandError(message, output=result.stdout)
        return result.stdout

    def connect(self) -> None:
        if self._open:
            return
        timeout = self.endpoint.connect_timeout
        try:
            self._run(self._args("snmpget", SYS_UPTIME_OID, timeout), timeout)
        except CommandError as e:
            raise DeviceConnectionError(
                f"SNMP agent {self.endpoint.key} not reachable: {e.message}"
            ) from e
        self._open = True
        logger.info("SNMP agent %s reachable", self.endpoint.key)

    def send(self, command: str, terminator: Optional[str], timeout: float) -> str:
        if not self._open:
            raise DeviceConnectionError(f"Not connected to {self.endpoint.key}")
        verb, _, oid = command.strip().partition(" ")
        tool = _TOOLS.get(verb)
        if tool is None or not oid.strip():
            raise ValidationError(f"Unsupported OID request: {command!r}")
        return self._run(self._args(tool, oid.strip(), timeout), timeout)

    def disconnect(self) -> None:
        self._open = False
