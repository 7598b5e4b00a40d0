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
"""Netmiko-based CLI transport channel."""

from __future__ import annotations

import logging
from typing import Any, Optional

from netmiko import ConnectHandler  # type: ignore[import-untyped]
from netmiko.exceptions import (  # type: ignore[import-untyped]
    NetmikoAuthenticationException,
    NetmikoTimeoutException,
    ReadTimeout,
)

from olt_manager.app.application.parsers import check_for_errors
from olt_manager.app.domain.errors import (
    CommandError,
    CommandTimeoutError,
    DeviceConnectionError,
)
from olt_manager.app.domain.models import DeviceEndpoint

logger = logging.getLogger(__name__)


class NetmikoCliChannel:
    """Holds one interactive SSH/Telnet session to the OLT."""

    def __init__(self, endpoint: DeviceEndpoint):
        self.endpoint = endpoint
        self._connection: Any = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def connect(self) -> None:
        if self._connection is not None:
            return
        try:
            self._connection = ConnectHandler(
                device_type=self.endpoint.device_type,
                host=self.endpoint.host,
                port=self.endpoint.port,
                username=self.endpoint.username,
                password=self.endpoint.password,
                timeout=self.endpoint.connect_timeout,
            )
        except NetmikoAuthenticationException as e:
            raise DeviceConnectionError(f"Authentication failed: {str(e)}") from e
        except NetmikoTimeoutException as e:
            raise DeviceConnectionError(f"Connection timeout: {str(e)}") from e
        except (OSError, EOFError, ValueError) as e:
            raise DeviceConnectionError(f"Connection error: {str(e)}") from e
        logger.info("CLI session opened to %s", self.endpoint.key)

    def send(self, command: str, terminator: Optional[str], timeout: float) -> str:
        if self._connection is None:
            raise DeviceConnectionError(f"Not connected to {self.endpoint.key}")
        try:
            output = self._connection.send_command(
                command,
                expect_string=terminator,
                read_timeout=timeout,
            )
        except ReadTimeout as e:
            raise CommandTimeoutError(
                f"No prompt after {timeout:.1f}s for command: {command}"
            ) from e
        except (OSError, EOFError) as e:
            self._drop()
            raise DeviceConnectionError(f"Channel closed: {str(e)}") from e

        error_msg = check_for_errors(output)
        if error_msg:
            raise CommandError(error_msg, output=output)
        return output

    def _drop(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.disconnect()
        except (OSError, EOFError) as e:
            logger.debug("Ignoring disconnect error on %s: %s", self.endpoint.key, e)

    def disconnect(self) -> None:
        self._drop()
