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
"""FastAPI entrypoint for the OLT manager."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from olt_manager.app.api.schemas import (
    AuthorizeOnuRequest,
    BatchResponse,
    ClearHistoryResponse,
    CreateBatchRequest,
    GlobalMetricsResponse,
    HistoryEventResponse,
    HistoryMetricsResponse,
    MessageResponse,
    OnuActionRequest,
    OnuResponse,
    PortConfigRequest,
    PortConfigResponse,
    RecentActivityResponse,
    ScheduledTaskResponse,
    SessionResponse,
    SubOperationResponse,
    SystemInfoResponse,
    UnauthorizedOnuResponse,
    VlanRequest,
)
from olt_manager.app.application.batch_service import BatchService
from olt_manager.app.application.device_service import DeviceService
from olt_manager.app.config import Settings, configure_logging
from olt_manager.app.domain.entities import OnuRecord
from olt_manager.app.domain.errors import (
    CommandError,
    CommandTimeoutError,
    ConflictError,
    DeviceConnectionError,
    NotFoundError,
    OltError,
    ValidationError,
)
from olt_manager.app.domain.models import BatchOperation, HistoryEvent, OperationType
from olt_manager.app.infrastructure.channel_factory import DeviceSessions, build_sessions
from olt_manager.app.infrastructure.in_memory_batch_store import InMemoryBatchStore
from olt_manager.app.infrastructure.in_memory_history_store import InMemoryHistoryStore
from olt_manager.app.infrastructure.run_coordinator import RunCoordinator
from olt_manager.app.infrastructure.task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Components owned by one application instance."""

    settings: Settings
    sessions: DeviceSessions
    history: InMemoryHistoryStore
    batch_store: InMemoryBatchStore
    scheduler: TaskScheduler
    coordinator: RunCoordinator
    device_service: DeviceService
    batch_service: BatchService

    def shutdown(self, batch_timeout: float = 10.0) -> None:
        self.scheduler.stop()
        for batch_id in self.coordinator.running():
            if not self.coordinator.join(batch_id, batch_timeout):
                logger.warning("Batch %s still running at shutdown", batch_id)
        self.sessions.cli.disconnect()
        if self.sessions.oid is not None:
            self.sessions.oid.disconnect()


def build_container(settings: Settings) -> ServiceContainer:
    sessions = build_sessions(settings)
    history = InMemoryHistoryStore()
    batch_store = InMemoryBatchStore()
    scheduler = TaskScheduler()
    device_service = DeviceService(
        session=sessions.cli,
        history=history,
        scheduler=scheduler,
        oid_session=sessions.oid,
        reboot_recovery_seconds=settings.reboot_recovery_seconds,
    )
    batch_service = BatchService(
        repository=batch_store,
        executor=device_service,
        history=history,
    )
    return ServiceContainer(
        settings=settings,
        sessions=sessions,
        history=history,
        batch_store=batch_store,
        scheduler=scheduler,
        coordinator=RunCoordinator(),
        device_service=device_service,
        batch_service=batch_service,
    )


def status_code_for(exc: OltError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, CommandTimeoutError):
        return 504
    if isinstance(exc, CommandError):
        return 502
    if isinstance(exc, DeviceConnectionError):
        return 503
    return 500


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_batch_response(batch: BatchOperation) -> BatchResponse:
    """Convert domain model to API response."""
    return BatchResponse(
        batch_id=batch.batch_id,
        status=batch.status.value,
        created_at=batch.created_at,
        started_at=batch.started_at,
        completed_at=batch.completed_at,
        error=batch.error,
        operations=[
            SubOperationResponse(
                type=op.type.value,
                serial=op.serial,
                status=op.status.value,
                config=op.config,
                error=op.error,
                started_at=op.started_at,
                completed_at=op.completed_at,
            )
            for op in batch.operations
        ],
    )


def to_event_response(event: HistoryEvent) -> HistoryEventResponse:
    return HistoryEventResponse(
        serial=event.serial,
        type=event.type,
        timestamp=event.timestamp,
        status=event.status,
        description=event.description,
        config=event.config,
    )


def to_onu_response(record: OnuRecord) -> OnuResponse:
    return OnuResponse(
        frame=record.location.frame,
        slot=record.location.slot,
        port=record.location.port,
        onu_id=record.location.onu_id,
        serial=record.serial,
        status=record.status,
        signal_dbm=record.signal_dbm,
        description=record.description,
        last_seen=record.last_seen,
        equipment=record.equipment,
    )


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Build the API around an explicit service container."""
    if container is None:
        settings = Settings.from_env()
        configure_logging(settings.log_level)
        container = build_container(settings)
    services = container

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        services.scheduler.start()
        try:
            yield
        finally:
            services.shutdown()

    app = FastAPI(title="OLT Manager", version="0.1.0", lifespan=lifespan)
    app.state.container = services

    @app.exception_handler(OltError)
    async def handle_olt_error(request: Request, exc: OltError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": ValidationError.kind, "detail": str(exc.errors())},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # batches

    @app.post("/api/batches", response_model=BatchResponse)
    def create_batch(payload: CreateBatchRequest) -> BatchResponse:
        return to_batch_response(services.batch_service.create_batch(payload.operations))

    @app.get("/api/batches", response_model=list[BatchResponse])
    def list_batches(
        status: Optional[str] = None,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
    ) -> list[BatchResponse]:
        batches = services.batch_service.list_batches(
            status=status,
            created_after=_as_utc(created_after),
            created_before=_as_utc(created_before),
        )
        return [to_batch_response(batch) for batch in batches]

    @app.get("/api/batches/{batch_id}", response_model=BatchResponse)
    def get_batch(batch_id: str) -> BatchResponse:
        return to_batch_response(services.batch_service.get_batch(batch_id))

    @app.post("/api/batches/{batch_id}/process", response_model=BatchResponse)
    def process_batch(batch_id: str) -> BatchResponse:
        return to_batch_response(services.batch_service.process_batch(batch_id))

    @app.post("/api/batches/{batch_id}/process/async", response_model=BatchResponse)
    def process_batch_async(batch_id: str) -> BatchResponse:
        batch = services.batch_service.process_batch_async(batch_id, services.coordinator)
        return to_batch_response(batch)

    @app.delete("/api/batches/{batch_id}", response_model=MessageResponse)
    def remove_batch(batch_id: str) -> MessageResponse:
        services.batch_service.remove_batch(batch_id)
        return MessageResponse(status="removed", detail=batch_id)

    # history

    @app.get("/api/history/metrics", response_model=GlobalMetricsResponse)
    def global_metrics() -> GlobalMetricsResponse:
        metrics = services.history.global_metrics()
        return GlobalMetricsResponse(
            total_events=metrics.total_events,
            active_serials=metrics.active_serials,
            events_by_type=metrics.events_by_type,
            recent_activity=RecentActivityResponse(
                last_24h=metrics.recent_activity.last_24h,
                last_week=metrics.recent_activity.last_week,
            ),
        )

    @app.get("/api/onus/{serial}/history", response_model=list[HistoryEventResponse])
    def onu_history(
        serial: str,
        event_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[HistoryEventResponse]:
        events = services.history.query(
            serial,
            event_type=event_type,
            start_date=_as_utc(start_date),
            end_date=_as_utc(end_date),
            limit=limit,
        )
        return [to_event_response(event) for event in events]

    @app.get("/api/onus/{serial}/metrics", response_model=HistoryMetricsResponse)
    def onu_metrics(serial: str) -> HistoryMetricsResponse:
        metrics = services.history.metrics(serial)
        return HistoryMetricsResponse(
            total=metrics.total,
            last_24h=metrics.last_24h,
            last_week=metrics.last_week,
            by_type=metrics.by_type,
            last_event=to_event_response(metrics.last_event) if metrics.last_event else None,
        )

    @app.delete("/api/onus/{serial}/history", response_model=ClearHistoryResponse)
    def clear_history(serial: str) -> ClearHistoryResponse:
        return ClearHistoryResponse(serial=serial, removed=services.history.clear(serial))

    # device

    @app.get("/api/device/system-info", response_model=Optional[SystemInfoResponse])
    def system_info() -> Optional[SystemInfoResponse]:
        info = services.device_service.get_system_info()
        if info is None:
            return None
        return SystemInfoResponse(
            model=info.model,
            version=info.version,
            uptime=info.uptime,
            temperature=info.temperature,
        )

    def _session_response() -> SessionResponse:
        session = services.sessions.cli
        snapshot = session.snapshot()
        return SessionResponse(
            endpoint=snapshot.endpoint,
            state=snapshot.state.value,
            consecutive_failures=snapshot.consecutive_failures,
            last_error=snapshot.last_error,
            queued=session.queued(),
        )

    @app.get("/api/device/session", response_model=SessionResponse)
    def session_state() -> SessionResponse:
        return _session_response()

    @app.post("/api/device/connect", response_model=SessionResponse)
    def connect_device() -> SessionResponse:
        services.sessions.cli.connect()
        return _session_response()

    @app.post("/api/device/disconnect", response_model=SessionResponse)
    def disconnect_device() -> SessionResponse:
        services.sessions.cli.disconnect()
        return _session_response()

    @app.post("/api/device/save", response_model=MessageResponse)
    def save_config() -> MessageResponse:
        services.device_service.save_config()
        return MessageResponse(status="saved")

    # ONUs

    @app.get("/api/onus", response_model=list[OnuResponse])
    def list_onus(frame: int = 0) -> list[OnuResponse]:
        return [to_onu_response(r) for r in services.device_service.list_onus(frame)]

    @app.get("/api/onus/unauthorized", response_model=list[UnauthorizedOnuResponse])
    def list_unauthorized(port: Optional[str] = None) -> list[UnauthorizedOnuResponse]:
        return [
            UnauthorizedOnuResponse(
                serial=record.serial,
                port=record.port,
                first_seen_at=record.first_seen_at,
                equipment=record.equipment,
            )
            for record in services.device_service.list_unauthorized_onus(port)
        ]

    @app.get("/api/onus/optical", response_model=list[OnuResponse])
    def poll_optical(port: Optional[str] = None) -> list[OnuResponse]:
        return [to_onu_response(r) for r in services.device_service.poll_optical(port)]

    @app.post("/api/onus/authorize", response_model=OnuResponse)
    def authorize_onu(payload: AuthorizeOnuRequest) -> OnuResponse:
        record = services.device_service.authorize_onu(
            port=payload.port,
            serial=payload.serial,
            description=payload.description,
            line_profile=payload.line_profile,
            service_profile=payload.service_profile,
            native_vlan=payload.native_vlan,
            onu_id=payload.onu_id,
        )
        return to_onu_response(record)

    @app.get("/api/onus/{serial}", response_model=OnuResponse)
    def onu_status(serial: str) -> OnuResponse:
        return to_onu_response(services.device_service.get_onu_status(serial))

    @app.delete("/api/onus/{frame}/{slot}/{port}/{onu_id}", response_model=MessageResponse)
    def delete_onu(frame: int, slot: int, port: int, onu_id: int) -> MessageResponse:
        services.device_service.delete_onu(f"{frame}/{slot}/{port}", onu_id)
        return MessageResponse(status="deleted", detail=f"{frame}/{slot}/{port} {onu_id}")

    @app.post("/api/onus/{serial}/actions/{action}", response_model=HistoryEventResponse)
    def onu_action(
        serial: str, action: str, payload: Optional[OnuActionRequest] = None
    ) -> HistoryEventResponse:
        try:
            op_type = OperationType(action)
        except ValueError as exc:
            raise ValidationError(f"Unknown ONU action: {action}") from exc
        event = services.device_service.perform_onu_action(
            op_type, serial, payload.config if payload else None
        )
        return to_event_response(event)

    # ports and VLANs

    @app.post("/api/ports/configure", response_model=PortConfigResponse)
    def configure_port(payload: PortConfigRequest) -> PortConfigResponse:
        config = services.device_service.configure_port(
            port=payload.port,
            admin_state=payload.admin_state,
            mode=payload.mode,
            dhcp_mode=payload.dhcp_mode,
            vlan=payload.vlan,
        )
        return PortConfigResponse(**config.__dict__)

    @app.get("/api/ports/config", response_model=PortConfigResponse)
    def port_config(port: str) -> PortConfigResponse:
        config = services.device_service.get_port_config(port)
        return PortConfigResponse(**config.__dict__)

    @app.post("/api/vlans", response_model=MessageResponse)
    def configure_vlan(payload: VlanRequest) -> MessageResponse:
        services.device_service.configure_vlan(
            payload.vlan_id, payload.description, payload.ports
        )
        return MessageResponse(status="configured", detail=f"vlan {payload.vlan_id}")

    # scheduled tasks

    @app.get("/api/tasks", response_model=list[ScheduledTaskResponse])
    def list_tasks() -> list[ScheduledTaskResponse]:
        return [
            ScheduledTaskResponse(
                task_id=task.task_id,
                name=task.name,
                state=task.state.value,
                due_at=task.due_at,
                error=task.error,
            )
            for task in services.scheduler.list()
        ]

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
