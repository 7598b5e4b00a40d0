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
"""Device query and command operations on top of the session manager."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Protocol

from olt_manager.app.application.commands import CommandBuilder
from olt_manager.app.application.events import HistoryRecorder, action_event, utc_now
from olt_manager.app.application.parsers import ParseResult, parse
from olt_manager.app.application.session_manager import SessionManager
from olt_manager.app.domain.entities import (
    OnuLocation,
    OnuRecord,
    PortConfig,
    SystemInfo,
    UnauthorizedOnuRecord,
)
from olt_manager.app.domain.errors import (
    CommandError,
    ConflictError,
    NotFoundError,
    OltError,
    ValidationError,
)
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
from olt_manager.app.domain.models import HistoryEvent, HistoryEventType, OperationType

logger = logging.getLogger(__name__)

ONU_MISSING_MARKER = "does not exist"
CONFIGURE_KEYS = ("line_profile", "service_profile", "native_vlan")


class FollowUpScheduler(Protocol):
    """Subset of the task scheduler used for delayed follow-ups."""

    def schedule(self, name: str, delay: float, callback: Callable[[], Any]) -> Any:
        """Run callback once after delay seconds."""

    def cancel_named(self, name: str) -> int:
        """Cancel pending tasks with this name."""


def reboot_recovery_task_name(serial: str) -> str:
    return f"reboot-recovery:{serial}"


class DeviceService:
    """Runs typed intents against the device and parses the results.

    Every intent's command sequence runs while holding the channel, so
    no other caller's commands can land in between.
    """

    def __init__(
        self,
        session: SessionManager,
        builder: CommandBuilder | None = None,
        history: HistoryRecorder | None = None,
        scheduler: FollowUpScheduler | None = None,
        oid_session: SessionManager | None = None,
        reboot_recovery_seconds: float = 5.0,
    ):
        self.session = session
        self.builder = builder or CommandBuilder()
        self.history = history
        self.scheduler = scheduler
        self.oid_session = oid_session
        self.reboot_recovery_seconds = reboot_recovery_seconds
        self._lock = Lock()
        self._locations: dict[str, OnuLocation] = {}

    # generic

    def _session_for(self, intent: CommandIntent) -> SessionManager:
        if isinstance(intent, OnuOpticalPoll):
            if self.oid_session is None:
                raise ConflictError("OID polling channel is not configured")
            return self.oid_session
        return self.session

    def run(self, intent: CommandIntent, readback: CommandIntent | None = None) -> list[str]:
        """Build and execute the intent, plus an optional read-back query."""
        commands = self.builder.build(intent)
        if readback is not None:
            commands = commands + self.builder.build(readback)
        return self._session_for(intent).execute_sequence(commands)

    def query(self, intent: CommandIntent) -> ParseResult:
        outputs = self.run(intent)
        return parse(intent.kind, "\n".join(outputs), utc_now().isoformat())

    # queries

    def get_system_info(self) -> Optional[SystemInfo]:
        return self.query(SystemInfoQuery())  # type: ignore[return-value]

    def list_onus(self, frame: int = 0) -> list[OnuRecord]:
        records: list[OnuRecord] = self.query(OnuListQuery(frame=frame))  # type: ignore[assignment]
        with self._lock:
            for record in records:
                self._locations[record.serial] = record.location
        return records

    def last_known_location(self, serial: str) -> Optional[OnuLocation]:
        with self._lock:
            return self._locations.get(serial)

    def list_unauthorized_onus(self, port: str | None = None) -> list[UnauthorizedOnuRecord]:
        return self.query(UnauthorizedOnuQuery(port=port))  # type: ignore[return-value]

    def get_onu_status(self, serial: str) -> OnuRecord:
        with _missing_onu_as_not_found(serial):
            record = self.query(OnuStatusQuery(serial=serial))
        if not isinstance(record, OnuRecord):
            raise NotFoundError(f"ONU not found: {serial}")
        with self._lock:
            self._locations[record.serial] = record.location
        return record

    def poll_optical(self, port: str | None = None) -> list[OnuRecord]:
        return self.query(OnuOpticalPoll(port=port))  # type: ignore[return-value]

    def get_port_config(self, port: str) -> PortConfig:
        config = self.query(PortConfigQuery(port=port))
        if not isinstance(config, PortConfig):
            raise NotFoundError(f"Port not found: {port}")
        return config

    # provisioning

    def authorize_onu(
        self,
        port: str,
        serial: str,
        description: str = "",
        line_profile: str = "1",
        service_profile: str = "1",
        native_vlan: int | None = None,
        onu_id: int | None = None,
    ) -> OnuRecord:
        """Authorize an ONU and read it back without releasing the channel.

        When the device picks the ONU id, the native VLAN is set after the
        read-back reports that id.
        """
        intent = AuthorizeOnu(
            port=port,
            serial=serial,
            description=description,
            line_profile=line_profile,
            service_profile=service_profile,
            native_vlan=native_vlan,
            onu_id=onu_id,
        )
        with self.session.exclusive():
            outputs = self.run(intent, readback=OnuStatusQuery(serial=serial))
            record = parse(OnuStatusQuery.kind, outputs[-1], utc_now().isoformat())
            if not isinstance(record, OnuRecord):
                raise CommandError(
                    f"ONU {serial} not visible after authorization", output=outputs[-1]
                )
            if native_vlan is not None and onu_id is None:
                self.run(
                    OnuNativeVlan(
                        port=port, onu_id=record.location.onu_id, vlan=native_vlan
                    )
                )
        with self._lock:
            self._locations[serial] = record.location
        logger.info("Authorized ONU %s at %s id=%s", serial, port, record.location.onu_id)
        self._record(
            serial,
            HistoryEvent(
                type=HistoryEventType.AUTHORIZE.value,
                status=record.status,
                description=f"ONU authorized on {port}",
                config={
                    "line_profile": line_profile,
                    "service_profile": service_profile,
                    "native_vlan": native_vlan,
                },
            ),
        )
        return record

    def delete_onu(self, port: str, onu_id: int) -> None:
        self.run(DeleteOnu(port=port, onu_id=onu_id))
        path = port.split("/")
        with self._lock:
            stale = [
                serial
                for serial, location in self._locations.items()
                if [str(location.frame), str(location.slot), str(location.port)] == path
                and location.onu_id == onu_id
            ]
            for serial in stale:
                self._locations.pop(serial, None)
        logger.info("Deleted ONU %s at %s", onu_id, port)

    def configure_port(
        self,
        port: str,
        admin_state: str = "enable",
        mode: str = "lan",
        dhcp_mode: str = "none",
        vlan: int | None = None,
    ) -> PortConfig:
        """Apply port settings and return the configuration read back."""
        intent = ConfigurePort(
            port=port, admin_state=admin_state, mode=mode, dhcp_mode=dhcp_mode, vlan=vlan
        )
        outputs = self.run(intent, readback=PortConfigQuery(port=port))
        config = parse(PortConfigQuery.kind, outputs[-1])
        if not isinstance(config, PortConfig):
            raise CommandError(f"Port {port} configuration not readable", output=outputs[-1])
        return config

    def configure_vlan(
        self, vlan_id: int, description: str = "", ports: Iterable[str] = ()
    ) -> None:
        self.run(ConfigureVlan(vlan_id=vlan_id, description=description, ports=tuple(ports)))

    def save_config(self) -> None:
        self.run(SaveConfig())

    # ONU actions

    def _run_for_onu(self, intent: StartOnu | StopOnu | RebootOnu | ConfigureOnu) -> None:
        with _missing_onu_as_not_found(intent.serial):
            self.run(intent)

    def start_onu(self, serial: str) -> None:
        self._run_for_onu(StartOnu(serial=serial))

    def stop_onu(self, serial: str) -> None:
        self._run_for_onu(StopOnu(serial=serial))

    def reboot_onu(self, serial: str) -> None:
        self._run_for_onu(RebootOnu(serial=serial))
        self._watch_reboot(serial)

    def configure_onu(
        self,
        serial: str,
        line_profile: str | None = None,
        service_profile: str | None = None,
        native_vlan: int | None = None,
    ) -> None:
        self._run_for_onu(
            ConfigureOnu(
                serial=serial,
                line_profile=line_profile,
                service_profile=service_profile,
                native_vlan=native_vlan,
            )
        )

    def run_onu_action(
        self,
        op_type: OperationType,
        serial: str,
        config: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Dispatch one per-ONU action. Used by the batch engine."""
        if op_type == OperationType.START:
            self.start_onu(serial)
        elif op_type == OperationType.STOP:
            self.stop_onu(serial)
        elif op_type == OperationType.REBOOT:
            self.reboot_onu(serial)
        elif op_type == OperationType.CONFIGURE:
            self.configure_onu(serial, **_configure_arguments(config))
        else:
            raise ValidationError(f"Unsupported ONU action: {op_type!r}")

    def perform_onu_action(
        self,
        op_type: OperationType,
        serial: str,
        config: Optional[Mapping[str, Any]] = None,
    ) -> HistoryEvent | None:
        """Run a single action and record its outcome in the history."""
        config_dict = dict(config) if config else None
        try:
            self.run_onu_action(op_type, serial, config)
        except OltError as exc:
            self._record(serial, action_event(op_type, config_dict, error=exc.message))
            raise
        return self._record(serial, action_event(op_type, config_dict))

    # follow-ups

    def _record(self, serial: str, event: HistoryEvent) -> HistoryEvent | None:
        if self.history is None:
            return None
        return self.history.append(serial, event)

    def _watch_reboot(self, serial: str) -> None:
        if self.scheduler is None:
            return
        name = reboot_recovery_task_name(serial)
        self.scheduler.cancel_named(name)
        self.scheduler.schedule(
            name, self.reboot_recovery_seconds, lambda: self.check_reboot_recovery(serial)
        )

    def check_reboot_recovery(self, serial: str) -> HistoryEvent | None:
        """Query an ONU after reboot and record the observed status."""
        try:
            record = self.get_onu_status(serial)
        except OltError as exc:
            logger.warning("Status check after reboot failed for %s: %s", serial, exc.message)
            self._record(
                serial,
                HistoryEvent(
                    type=HistoryEventType.ERROR.value,
                    status="error",
                    description=f"Status check after reboot failed: {exc.message}",
                ),
            )
            raise
        logger.info("ONU %s is %s after reboot", serial, record.status)
        return self._record(
            serial,
            HistoryEvent(
                type=HistoryEventType.STATUS_CHANGE.value,
                status=record.status,
                description=f"ONU {record.status} after reboot",
            ),
        )


@contextmanager
def _missing_onu_as_not_found(serial: str) -> Iterator[None]:
    """Turn the device's unknown-ONT failure into NotFoundError."""
    try:
        yield
    except CommandError as exc:
        if ONU_MISSING_MARKER in (exc.output or ""):
            raise NotFoundError(f"ONU not found: {serial}") from exc
        raise

def _configure_arguments(config: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if config is None:
        raise ValidationError("Configure action requires a config")
    if not isinstance(config, Mapping):
        raise ValidationError("ONU config must be a mapping")
    unknown = sorted(set(config) - set(CONFIGURE_KEYS))
    if unknown:
        raise ValidationError(f"Unknown ONU config keys: {', '.join(unknown)}")
    arguments: dict[str, Any] = {}
    for key in ("line_profile", "service_profile"):
        if config.get(key) is not None:
            arguments[key] = str(config[key])
    vlan = config.get("native_vlan")
    if isinstance(vlan, str) and vlan.strip().isdigit():
        vlan = int(vlan)
    if vlan is not None:
        arguments["native_vlan"] = vlan
    return arguments
