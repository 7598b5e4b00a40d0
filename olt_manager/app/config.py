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
"""Environment-driven settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from olt_manager.app.domain.errors import ValidationError

ENV_PREFIX = "OLT_MANAGER_"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default).strip()


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name, "true" if default else "false").lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValidationError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = _env(name, str(default))
    try:
        return int(value)
    except ValueError as exc:
        raise ValidationError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = _env(name, str(default))
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValidationError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from exc
    if parsed < 0:
        raise ValidationError(f"{ENV_PREFIX}{name} must not be negative, got {value!r}")
    return parsed


@dataclass(frozen=True)
class Settings:
    """Process settings read once at startup."""

    simulation: bool = True
    host: str = "127.0.0.1"
    port: int = 22
    username: str = "admin"
    password: str = "admin"
    device_type: str = "huawei_olt"
    command_timeout: float = 30.0
    connect_backoff: float = 1.0
    snmp_enabled: bool = False
    snmp_port: int = 161
    snmp_community: str = "public"
    reboot_recovery_seconds: float = 5.0
    simulated_seed: int = 7
    simulated_delay_ms: int = 0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            simulation=_env_bool("SIMULATION", True),
            host=_env("HOST", "127.0.0.1"),
            port=_env_int("PORT", 22),
            username=_env("USERNAME", "admin"),
            password=os.getenv(f"{ENV_PREFIX}PASSWORD", "admin"),
            device_type=_env("DEVICE_TYPE", "huawei_olt"),
            command_timeout=_env_float("COMMAND_TIMEOUT", 30.0),
            connect_backoff=_env_float("CONNECT_BACKOFF", 1.0),
            snmp_enabled=_env_bool("SNMP_ENABLED", False),
            snmp_port=_env_int("SNMP_PORT", 161),
            snmp_community=_env("SNMP_COMMUNITY", "public"),
            reboot_recovery_seconds=_env_float("REBOOT_RECOVERY_SECONDS", 5.0),
            simulated_seed=_env_int("SIMULATED_SEED", 7),
            simulated_delay_ms=_env_int("SIMULATED_DELAY_MS", 0),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )
        for name, port in (("PORT", settings.port), ("SNMP_PORT", settings.snmp_port)):
            if not 1 <= port <= 65535:
                raise ValidationError(f"{ENV_PREFIX}{name} must be between 1 and 65535")
        if settings.simulated_delay_ms < 0:
            raise ValidationError(f"{ENV_PREFIX}SIMULATED_DELAY_MS must not be negative")
        return settings


def configure_logging(level: str = "INFO") -> None:
    """Set the root log format and level."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValidationError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)
