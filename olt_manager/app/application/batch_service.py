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
"""Application layer use-cases for batch operations."""

from __future__ import annotations

import logging
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol
from uuid import uuid4

from olt_manager.app.application.events import HistoryRecorder, action_event, utc_now
from olt_manager.app.domain.errors import (
    ConflictError,
    FatalConnectionError,
    NotFoundError,
    OltError,
    ValidationError,
)
from olt_manager.app.domain.models import (
    BatchEvent,
    BatchOperation,
    BatchStatus,
    OperationType,
    SubOperation,
    SubOperationEvent,
    SubOperationStatus,
)
from olt_manager.app.domain.state_machine import (
    BatchStateMachine,
    SubOperationStateMachine,
)

logger = logging.getLogger(__name__)


class BatchRepository(Protocol):
    """Repository contract for batch persistence."""

    def save(self, batch: BatchOperation) -> None:
        """Store or update a batch."""

    def get(self, batch_id: str) -> BatchOperation | None:
        """Fetch a batch by ID."""

    def list(self) -> list[BatchOperation]:
        """Return every stored batch."""

    def delete(self, batch_id: str) -> bool:
        """Remove a batch; True if it existed."""


class OnuActionExecutor(Protocol):
    """Runs one per-ONU action against the device."""

    def run_onu_action(
        self,
        op_type: OperationType,
        serial: str,
        config: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Execute the action or raise an OltError."""


class BackgroundRunner(Protocol):
    """Starts at most one background run per id."""

    def start(self, batch_id: str, target: Callable[[], Any]) -> bool:
        """Start target unless a run for batch_id is alive."""


def _parse_operation(index: int, raw: Any) -> SubOperation:
    if not isinstance(raw, Mapping):
        raise ValidationError(f"Operation {index} must be an object")
    try:
        op_type = OperationType(raw.get("type"))
    except ValueError as exc:
        allowed = ", ".join(item.value for item in OperationType)
        raise ValidationError(
            f"Operation {index} has invalid type {raw.get('type')!r} (expected {allowed})"
        ) from exc
    serial = raw.get("serial")
    if not isinstance(serial, str) or not serial.strip():
        raise ValidationError(f"Operation {index} needs a non-empty serial")
    config = raw.get("config")
    if config is not None and not isinstance(config, Mapping):
        raise ValidationError(f"Operation {index} config must be an object")
    return SubOperation(
        type=op_type,
        serial=serial.strip(),
        config=dict(config) if config is not None else None,
    )


class BatchService:
    """Creates batches and processes each one at most once.

    Sub-operations run strictly in submission order. A device or command
    error fails only that sub-operation; a fatal connection error or an
    unexpected exception aborts the batch.
    """

    def __init__(
        self,
        repository: BatchRepository,
        executor: OnuActionExecutor,
        history: HistoryRecorder | None = None,
        state_machine: BatchStateMachine | None = None,
        sub_state_machine: SubOperationStateMachine | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.executor = executor
        self.history = history
        self.state_machine = state_machine or BatchStateMachine()
        self.sub_state_machine = sub_state_machine or SubOperationStateMachine()
        self._clock = clock
        self._claim_lock = Lock()

    def create_batch(self, operations: Iterable[Any]) -> BatchOperation:
        """Validate and store a pending batch."""
        if operations is None or isinstance(operations, (str, bytes, Mapping)):
            raise ValidationError("Operations must be a non-empty list")
        items = list(operations)
        if not items:
            raise ValidationError("Operations must be a non-empty list")
        batch = BatchOperation(
            batch_id=str(uuid4()),
            status=BatchStatus.PENDING,
            created_at=self._clock(),
            operations=[_parse_operation(index, raw) for index, raw in enumerate(items)],
        )
        self.repository.save(batch)
        logger.info(
            "Created batch %s with %s operation(s)", batch.batch_id, len(batch.operations)
        )
        return batch

    def get_batch(self, batch_id: str) -> BatchOperation:
        batch = self.repository.get(batch_id)
        if batch is None:
            raise NotFoundError(f"Batch not found: {batch_id}")
        return batch

    def list_batches(
        self,
        status: BatchStatus | str | None = None,
        created_after: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[BatchOperation]:
        """Batches matching every given filter, oldest first."""
        if status is not None and not isinstance(status, BatchStatus):
            try:
                status = BatchStatus(status)
            except ValueError as exc:
                raise ValidationError(f"Unknown batch status: {status}") from exc
        batches = self.repository.list()
        if status is not None:
            batches = [batch for batch in batches if batch.status == status]
        if created_after is not None:
            batches = [batch for batch in batches if batch.created_at >= created_after]
        if created_before is not None:
            batches = [batch for batch in batches if batch.created_at <= created_before]
        return sorted(batches, key=lambda batch: batch.created_at)

    def remove_batch(self, batch_id: str) -> None:
        with self._claim_lock:
            batch = self.get_batch(batch_id)
            if batch.status == BatchStatus.IN_PROGRESS:
                raise ConflictError(f"Batch {batch_id} is in progress and cannot be removed")
            self.repository.delete(batch_id)
        logger.info("Removed batch %s", batch_id)

    def _claim(self, batch_id: str) -> BatchOperation:
        with self._claim_lock:
            batch = self.get_batch(batch_id)
            if batch.status != BatchStatus.PENDING:
                raise ConflictError(f"Batch {batch_id} already processed or in progress")
            transition = self.state_machine.transition(batch.status, BatchEvent.START)
            batch.status = BatchStatus(transition.next_status)
            batch.started_at = self._clock()
            self.repository.save(batch)
        logger.info(
            "Batch %s: %s -> %s", batch_id, transition.current, transition.next_status
        )
        return batch

    def _finish(self, batch: BatchOperation, event: BatchEvent, error: str | None = None) -> None:
        transition = self.state_machine.transition(batch.status, event)
        batch.status = BatchStatus(transition.next_status)
        batch.completed_at = self._clock()
        batch.error = error
        self.repository.save(batch)
        logger.info(
            "Batch %s: %s -> %s", batch.batch_id, transition.current, transition.next_status
        )

    def _settle(
        self,
        operation: SubOperation,
        event: SubOperationEvent,
        error: str | None = None,
    ) -> None:
        operation.status = self.sub_state_machine.transition(operation.status, event)
        operation.completed_at = self._clock()
        operation.error = error
        if self.history is not None:
            self.history.append(
                operation.serial,
                action_event(operation.type, operation.config, error=error),
            )

    def process_batch(self, batch_id: str) -> BatchOperation:
        """Run every sub-operation of a pending batch once, in order.

        Any exception that escapes the run leaves the batch `failed`, never
        `in_progress`.
        """
        batch = self._claim(batch_id)
        try:
            self._run_operations(batch)
            self._finish(batch, self.state_machine.completion_event(batch.operations))
        except Exception as exc:
            if batch.status == BatchStatus.IN_PROGRESS:
                self._fail_unfinished(batch, f"Unexpected error: {exc}")
            raise
        return batch

    def _run_operations(self, batch: BatchOperation) -> None:
        batch_id = batch.batch_id
        for index, operation in enumerate(batch.operations):
            operation.status = self.sub_state_machine.transition(
                operation.status, SubOperationEvent.START
            )
            operation.started_at = self._clock()
            self.repository.save(batch)
            try:
                self.executor.run_onu_action(operation.type, operation.serial, operation.config)
            except FatalConnectionError as exc:
                self._abort(batch, operation, exc.message)
                raise
            except OltError as exc:
                logger.warning(
                    "Batch %s op %s %s %s failed: %s",
                    batch_id,
                    index,
                    operation.type.value,
                    operation.serial,
                    exc.message,
                )
                self._settle(operation, SubOperationEvent.FAIL, exc.message)
            except Exception as exc:
                self._abort(batch, operation, f"Unexpected error: {exc}")
                raise
            else:
                logger.info(
                    "Batch %s op %s %s %s completed",
                    batch_id,
                    index,
                    operation.type.value,
                    operation.serial,
                )
                self._settle(operation, SubOperationEvent.SUCCEED)
            self.repository.save(batch)

    def _abort(self, batch: BatchOperation, operation: SubOperation, message: str) -> None:
        logger.error(
            "Batch %s aborted at %s %s: %s",
            batch.batch_id,
            operation.type.value,
            operation.serial,
            message,
        )
        self._settle(operation, SubOperationEvent.FAIL, message)
        self._finish(batch, BatchEvent.ABORT, message)

    def _fail_unfinished(self, batch: BatchOperation, message: str) -> None:
        logger.error("Batch %s aborted: %s", batch.batch_id, message)
        for operation in batch.operations:
            if operation.status == SubOperationStatus.IN_PROGRESS:
                operation.status = self.sub_state_machine.transition(
                    operation.status, SubOperationEvent.FAIL
                )
                operation.completed_at = self._clock()
                operation.error = message
        self._finish(batch, BatchEvent.ABORT, message)

    def process_batch_async(self, batch_id: str, runner: BackgroundRunner) -> BatchOperation:
        """Check the batch can run, then process it on a background thread."""
        batch = self.get_batch(batch_id)
        if batch.status != BatchStatus.PENDING:
            raise ConflictError(f"Batch {batch_id} already processed or in progress")
        if not runner.start(batch_id, lambda: self._process_in_background(batch_id)):
            raise ConflictError(f"Batch {batch_id} is already running")
        return batch

    def _process_in_background(self, batch_id: str) -> None:
        try:
            self.process_batch(batch_id)
        except OltError as exc:
            logger.error("Background run of batch %s ended: %s", batch_id, exc.message)
        except Exception:
            logger.exception("Background run of batch %s crashed", batch_id)
