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
"""Unit tests for batch creation and processing."""

from datetime import datetime, timedelta, timezone

import pytest

from olt_manager.app.application.batch_service import BatchService
from olt_manager.app.application.device_service import DeviceService
from olt_manager.app.application.session_manager import SessionConfig, SessionManager
from olt_manager.app.domain.errors import (
    CommandError,
    ConflictError,
    DeviceConnectionError,
    FatalConnectionError,
    NotFoundError,
    ValidationError,
)
from olt_manager.app.domain.models import (
    BatchStatus,
    DeviceEndpoint,
    OperationType,
    SubOperationStatus,
    SessionState,
)
from olt_manager.app.infrastructure.in_memory_batch_store import InMemoryBatchStore
from olt_manager.app.infrastructure.in_memory_history_store import InMemoryHistoryStore
from olt_manager.app.infrastructure.run_coordinator import RunCoordinator


class StubExecutor:
    """Records actions; raises the error mapped to (type, serial) if any."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls = []

    def run_onu_action(self, op_type, serial, config=None):
        self.calls.append((op_type, serial, config))
        error = self.failures.get((op_type, serial))
        if error is not None:
            raise error


class StepClock:
    def __init__(self):
        self.now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


def _service(executor=None, history=None):
    return BatchService(
        repository=InMemoryBatchStore(),
        executor=executor or StubExecutor(),
        history=history,
        clock=StepClock(),
    )


def test_create_batch_is_pending():
    service = _service()

    batch = service.create_batch(
        [
            {"type": "start", "serial": "HWTC00000001"},
            {"type": "configure", "serial": "HWTC00000002", "config": {"native_vlan": 100}},
        ]
    )

    stored = service.get_batch(batch.batch_id)
    assert stored.status == BatchStatus.PENDING
    assert [op.type for op in stored.operations] == [OperationType.START, OperationType.CONFIGURE]
    assert all(op.status == SubOperationStatus.PENDING for op in stored.operations)
    assert stored.operations[1].config == {"native_vlan": 100}


@pytest.mark.parametrize(
    "operations",
    [
        [],
        None,
        "start",
        [{"type": "explode", "serial": "HWTC00000001"}],
        [{"type": "start", "serial": ""}],
        [{"type": "start"}],
        [{"type": "configure", "serial": "HWTC00000001", "config": "vlan=1"}],
        ["start HWTC00000001"],
    ],
)
def test_create_batch_rejects_malformed_operations(operations):
    service = _service()

    with pytest.raises(ValidationError):
        service.create_batch(operations)
    assert service.list_batches() == []


def test_process_batch_mixed_results_records_history():
    executor = StubExecutor(
        failures={(OperationType.REBOOT, "HWTC0000000B"): CommandError("ONU not found")}
    )
    history = InMemoryHistoryStore()
    service = _service(executor, history)
    batch = service.create_batch(
        [
            {"type": "start", "serial": "HWTC0000000A"},
            {"type": "reboot", "serial": "HWTC0000000B"},
        ]
    )

    result = service.process_batch(batch.batch_id)

    assert result.status == BatchStatus.COMPLETED_WITH_ERRORS
    first, second = result.operations
    assert first.status == SubOperationStatus.COMPLETED
    assert first.error is None
    assert second.status == SubOperationStatus.FAILED
    assert second.error == "ONU not found"
    assert [event.type for event in history.query("HWTC0000000A")] == ["START"]
    assert [event.type for event in history.query("HWTC0000000B")] == ["ERROR"]
    assert service.get_batch(batch.batch_id).status == BatchStatus.COMPLETED_WITH_ERRORS


def test_process_batch_all_succeed_runs_in_order():
    executor = StubExecutor()
    service = _service(executor)
    batch = service.create_batch(
        [
            {"type": "stop", "serial": "HWTC00000003"},
            {"type": "start", "serial": "HWTC00000001"},
            {"type": "reboot", "serial": "HWTC00000002"},
        ]
    )

    result = service.process_batch(batch.batch_id)

    assert result.status == BatchStatus.COMPLETED
    assert [call[1] for call in executor.calls] == [
        "HWTC00000003",
        "HWTC00000001",
        "HWTC00000002",
    ]
    assert result.started_at < result.completed_at
    for operation in result.operations:
        assert operation.started_at <= operation.completed_at


def test_process_batch_is_at_most_once():
    executor = StubExecutor()
    service = _service(executor)
    batch = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])
    service.process_batch(batch.batch_id)

    with pytest.raises(ConflictError):
        service.process_batch(batch.batch_id)
    assert len(executor.calls) == 1


def test_process_unknown_batch_is_not_found():
    with pytest.raises(NotFoundError):
        _service().process_batch("missing")


def test_fatal_connection_error_aborts_batch():
    executor = StubExecutor(
        failures={(OperationType.STOP, "HWTC00000002"): FatalConnectionError("gave up")}
    )
    service = _service(executor)
    batch = service.create_batch(
        [
            {"type": "start", "serial": "HWTC00000001"},
            {"type": "stop", "serial": "HWTC00000002"},
            {"type": "reboot", "serial": "HWTC00000003"},
        ]
    )

    with pytest.raises(FatalConnectionError):
        service.process_batch(batch.batch_id)

    stored = service.get_batch(batch.batch_id)
    assert stored.status == BatchStatus.FAILED
    assert stored.error == "gave up"
    assert [op.status for op in stored.operations] == [
        SubOperationStatus.COMPLETED,
        SubOperationStatus.FAILED,
        SubOperationStatus.PENDING,
    ]
    assert len(executor.calls) == 2


def test_unexpected_exception_aborts_batch():
    executor = StubExecutor(failures={(OperationType.START, "HWTC00000001"): KeyError("boom")})
    service = _service(executor)
    batch = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])

    with pytest.raises(KeyError):
        service.process_batch(batch.batch_id)

    stored = service.get_batch(batch.batch_id)
    assert stored.status == BatchStatus.FAILED
    assert stored.operations[0].status == SubOperationStatus.FAILED
    assert stored.operations[0].error.startswith("Unexpected error:")


def test_list_batches_filters():
    service = _service()
    first = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])
    second = service.create_batch([{"type": "stop", "serial": "HWTC00000002"}])
    service.process_batch(first.batch_id)

    assert [b.batch_id for b in service.list_batches()] == [first.batch_id, second.batch_id]
    assert [b.batch_id for b in service.list_batches(status="pending")] == [second.batch_id]
    assert [b.batch_id for b in service.list_batches(status=BatchStatus.COMPLETED)] == [
        first.batch_id
    ]
    assert [
        b.batch_id for b in service.list_batches(created_after=second.created_at)
    ] == [second.batch_id]
    assert [
        b.batch_id for b in service.list_batches(created_before=first.created_at)
    ] == [first.batch_id]

    with pytest.raises(ValidationError):
        service.list_batches(status="bogus")


def test_remove_batch():
    service = _service()
    batch = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])

    service.remove_batch(batch.batch_id)

    with pytest.raises(NotFoundError):
        service.get_batch(batch.batch_id)
    with pytest.raises(NotFoundError):
        service.remove_batch(batch.batch_id)


def test_remove_in_progress_batch_is_conflict():
    service = _service()
    batch = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])
    stored = service.repository.get(batch.batch_id)
    stored.status = BatchStatus.IN_PROGRESS
    service.repository.save(stored)

    with pytest.raises(ConflictError):
        service.remove_batch(batch.batch_id)


def test_process_batch_async_runs_in_background():
    history = InMemoryHistoryStore()
    service = _service(StubExecutor(), history)
    coordinator = RunCoordinator()
    batch = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])

    accepted = service.process_batch_async(batch.batch_id, coordinator)
    coordinator.join(batch.batch_id, timeout=5)

    assert accepted.status == BatchStatus.PENDING
    assert service.get_batch(batch.batch_id).status == BatchStatus.COMPLETED
    assert len(history.query("HWTC00000001")) == 1

    with pytest.raises(ConflictError):
        service.process_batch_async(batch.batch_id, coordinator)


def test_process_batch_async_rejected_when_runner_busy():
    class BusyRunner:
        def start(self, batch_id, target):
            return False

    service = _service()
    batch = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])

    with pytest.raises(ConflictError):
        service.process_batch_async(batch.batch_id, BusyRunner())


class FailingHistory:
    """History sink that breaks on the first append."""

    def append(self, serial, event):
        raise RuntimeError("history unavailable")


def test_error_after_successful_action_still_fails_batch():
    service = _service(StubExecutor(), FailingHistory())
    batch = service.create_batch(
        [
            {"type": "start", "serial": "HWTC00000001"},
            {"type": "stop", "serial": "HWTC00000002"},
        ]
    )

    with pytest.raises(RuntimeError):
        service.process_batch(batch.batch_id)

    stored = service.get_batch(batch.batch_id)
    assert stored.status == BatchStatus.FAILED
    assert stored.error == "Unexpected error: history unavailable"
    assert stored.completed_at is not None
    assert stored.operations[1].status == SubOperationStatus.PENDING
    service.remove_batch(batch.batch_id)


def test_error_while_failing_sub_operation_still_fails_batch():
    executor = StubExecutor(
        failures={(OperationType.START, "HWTC00000001"): CommandError("rejected")}
    )
    service = _service(executor, FailingHistory())
    batch = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])

    with pytest.raises(RuntimeError):
        service.process_batch(batch.batch_id)

    stored = service.get_batch(batch.batch_id)
    assert stored.status == BatchStatus.FAILED
    assert stored.operations[0].status == SubOperationStatus.FAILED


class ScriptedChannel:
    """Transport channel whose connect outcomes follow a script."""

    def __init__(self, connect_plan):
        self.connect_plan = list(connect_plan)
        self.sent = []

    def connect(self):
        outcome = self.connect_plan.pop(0) if self.connect_plan else None
        if outcome is not None:
            raise outcome

    def send(self, command, terminator, timeout):
        self.sent.append(command)
        return ""

    def disconnect(self):
        pass


def test_connection_failures_through_real_session_abort_then_reset():
    refused = DeviceConnectionError("refused")
    channel = ScriptedChannel([refused, refused, refused, None, refused])
    sleeps = []
    session = SessionManager(
        DeviceEndpoint(host="192.0.2.10"),
        channel,
        SessionConfig(backoff_seconds=1.0),
        sleep=sleeps.append,
    )
    service = _service(DeviceService(session=session))
    first = service.create_batch([{"type": "start", "serial": "HWTC00000001"}])

    with pytest.raises(FatalConnectionError):
        service.process_batch(first.batch_id)

    assert service.get_batch(first.batch_id).status == BatchStatus.FAILED
    assert session.state == SessionState.FAILED
    assert sleeps == [1.0, 2.0]
    assert channel.sent == []

    second = service.create_batch([{"type": "stop", "serial": "HWTC00000001"}])
    assert service.process_batch(second.batch_id).status == BatchStatus.COMPLETED
    assert session.consecutive_failures == 0
    assert channel.sent == ["onu stop HWTC00000001"]

    session.disconnect()
    with pytest.raises(DeviceConnectionError) as exc_info:
        session.connect()
    assert not isinstance(exc_info.value, FatalConnectionError)
    assert session.consecutive_failures == 1
