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
"""Error taxonomy shared by every layer."""

from __future__ import annotations


class OltError(Exception):
    """Base error with a stable, machine-checkable kind."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OltError, ValueError):
    """Malformed input. Never retried, no I/O attempted."""

    kind = "validation_error"


class DeviceConnectionError(OltError):
    """Transient transport failure."""

    kind = "connection_error"


class FatalConnectionError(DeviceConnectionError):
    """Connection attempts exhausted."""

    kind = "fatal_connection_error"


class CommandError(OltError):
    """A command failed on a connected channel."""

    kind = "command_error"

    def __init__(self, message: str, output: str | None = None):
        super().__init__(message)
        self.output = output


class CommandTimeoutError(CommandError):
    """No terminator observed before the command timeout."""

    kind = "command_timeout"


class NotFoundError(OltError, LookupError):
    """Unknown batch id or unknown ONU."""

    kind = "not_found"


class ConflictError(OltError):
    """Action not permitted in the current state."""

    kind = "conflict"
