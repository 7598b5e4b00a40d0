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
"""Finite state machines for batch and sub-operation lifecycles."""

from __future__ import annotations

from typing import Iterable

from .errors import ConflictError
from .models import (
    BatchEvent,
    BatchStatus,
    SubOperation,
    SubOperationEvent,
    SubOperationStatus,
    Transition,
)


class BatchStateMachine:
    """Validates and executes batch status transitions."""

    _transitions = {
        (BatchStatus.PENDING, BatchEvent.START): BatchStatus.IN_PROGRESS,
        (BatchStatus.IN_PROGRESS, BatchEvent.COMPLETE): BatchStatus.COMPLETED,
        (
            BatchStatus.IN_PROGRESS,
            BatchEvent.COMPLETE_WITH_ERRORS,
        ): BatchStatus.COMPLETED_WITH_ERRORS,
        (BatchStatus.IN_PROGRESS, BatchEvent.ABORT): BatchStatus.FAILED,
    }

    def can_transition(self, status: BatchStatus, event: BatchEvent) -> bool:
        """Return True if transition is valid for the current status."""
        return (status, event) in self._transitions

    def transition(self, status: BatchStatus, event: BatchEvent) -> Transition:
        """Apply a transition or raise ConflictError for invalid transitions."""
        key = (status, event)
        if key not in self._transitions:
            raise ConflictError(
                f"Invalid batch transition: status={status.value}, event={event.value}"
            )
        return Transition(
            current=status.value,
            event=event.value,
            next_status=self._transitions[key].value,
        )

    @staticmethod
    def completion_event(operations: Iterable[SubOperation]) -> BatchEvent:
        """Terminal event for a batch whose iteration finished."""
        statuses = [op.status for op in operations]
        unfinished = {SubOperationStatus.PENDING, SubOperationStatus.IN_PROGRESS}
        if any(status in unfinished for status in statuses):
            raise ConflictError("Batch still has unfinished sub-operations")
        if all(status == SubOperationStatus.COMPLETED for status in statuses):
            return BatchEvent.COMPLETE
        return BatchEvent.COMPLETE_WITH_ERRORS


class SubOperationStateMachine:
    """Forward-only transitions for a sub-operation."""

    _transitions = {
        (
            SubOperationStatus.PENDING,
            SubOperationEvent.START,
        ): SubOperationStatus.IN_PROGRESS,
        (
            SubOperationStatus.IN_PROGRESS,
            SubOperationEvent.SUCCEED,
        ): SubOperationStatus.COMPLETED,
        (
            SubOperationStatus.IN_PROGRESS,
            SubOperationEvent.FAIL,
        ): SubOperationStatus.FAILED,
    }

    def transition(
        self, status: SubOperationStatus, event: SubOperationEvent
    ) -> SubOperationStatus:
        key = (status, event)
        if key not in self._transitions:
            raise ConflictError(
                "Invalid sub-operation transition: "
                f"status={status.value}, event={event.value}"
            )
        return self._transitions[key]
