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
"""Deterministic scheduler for delayed follow-up work."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import replace
from threading import Event, Lock, Thread
from typing import Any, Callable, Optional

from olt_manager.app.domain.errors import ConflictError, NotFoundError
from olt_manager.app.domain.models import ScheduledTask, TaskState

logger = logging.getLogger(__name__)

MAX_FINISHED_TASKS = 100
_FINISHED_STATES = frozenset(
    {TaskState.COMPLETED, TaskState.CANCELLED, TaskState.FAILED}
)


class TaskScheduler:
    """Owns delayed callbacks and runs them when their due time passes.

    Nothing runs on its own unless ``start`` launched the ticker thread;
    tests drive the scheduler with ``run_due`` and an injected clock.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_finished: int = MAX_FINISHED_TASKS,
    ) -> None:
        self._clock = clock
        self._max_finished = max_finished
        self._lock = Lock()
        self._tasks: dict[str, ScheduledTask] = {}
        self._callbacks: dict[str, Callable[[], Any]] = {}
        self._stop = Event()
        self._thread: Optional[Thread] = None

    def schedule(self, name: str, delay: float, callback: Callable[[], Any]) -> ScheduledTask:
        task = ScheduledTask(
            task_id=str(uuid.uuid4()),
            name=name,
            due_at=self._clock() + max(0.0, delay),
        )
        with self._lock:
            self._tasks[task.task_id] = task
            self._callbacks[task.task_id] = callback
            self._prune_finished_locked()
        logger.info("Scheduled task %s (%s) in %.1fs", task.task_id, name, delay)
        return replace(task)

    def _prune_finished_locked(self) -> None:
        """Keep only the newest finished tasks; pending and running stay."""
        finished = [
            task_id
            for task_id, task in self._tasks.items()
            if task.state in _FINISHED_STATES
        ]
        for task_id in finished[: max(0, len(finished) - self._max_finished)]:
            self._tasks.pop(task_id, None)

    def cancel(self, task_id: str) -> bool:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.state != TaskState.PENDING:
                return False
            task.state = TaskState.CANCELLED
            self._callbacks.pop(task_id, None)
        logger.info("Cancelled task %s (%s)", task_id, task.name)
        return True

    def cancel_named(self, name: str) -> int:
        """Cancel every pending task with the given name."""
        with self._lock:
            task_ids = [
                task.task_id
                for task in self._tasks.values()
                if task.name == name and task.state == TaskState.PENDING
            ]
        return sum(1 for task_id in task_ids if self.cancel(task_id))

    def get(self, task_id: str) -> ScheduledTask | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return replace(task) if task is not None else None

    def list(self, state: TaskState | None = None) -> list[ScheduledTask]:
        with self._lock:
            return [
                replace(task)
                for task in self._tasks.values()
                if state is None or task.state == state
            ]

    def _claim_locked(self, task: ScheduledTask) -> Callable[[], Any]:
        task.state = TaskState.RUNNING
        return self._callbacks.pop(task.task_id)

    def _execute(self, task_id: str, callback: Callable[[], Any]) -> None:
        try:
            callback()
        except Exception as exc:
            logger.exception("Task %s failed: %s", task_id, exc)
            with self._lock:
                self._tasks[task_id].state = TaskState.FAILED
                self._tasks[task_id].error = str(exc)
            return
        with self._lock:
            self._tasks[task_id].state = TaskState.COMPLETED

    def run_due(self) -> int:
        """Run every pending task whose due time has passed."""
        now = self._clock()
        with self._lock:
            due = sorted(
                (
                    task
                    for task in self._tasks.values()
                    if task.state == TaskState.PENDING and task.due_at <= now
                ),
                key=lambda task: task.due_at,
            )
            self._prune_finished_locked()
            claimed = [(task.task_id, self._claim_locked(task)) for task in due]
        for task_id, callback in claimed:
            self._execute(task_id, callback)
        return len(claimed)

    def trigger(self, task_id: str) -> ScheduledTask:
        """Run a pending task now regardless of its due time."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task not found: {task_id}")
            if task.state != TaskState.PENDING:
                raise ConflictError(f"Task {task_id} is {task.state.value}")
            callback = self._claim_locked(task)
        self._execute(task_id, callback)
        return self.get(task_id)  # type: ignore[return-value]

    def start(self, interval: float = 0.5) -> None:
        """Run due tasks from a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self._loop, args=(interval,), daemon=True)
        self._thread.start()

    def _loop(self, interval: float) -> None:
        while not self._stop.wait(interval):
            self.run_due()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
