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
"""Background threads for asynchronous batch processing."""

import logging
from threading import Lock, Thread
from typing import Any, Callable

logger = logging.getLogger(__name__)


class RunCoordinator:
    """Owns at most one live processing thread per batch id.

    Batch status is the source of truth for at-most-once processing; this
    only stops a second thread from being started for a batch still running.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._threads: dict[str, Thread] = {}

    def _forget_finished_locked(self) -> None:
        finished = [
            batch_id
            for batch_id, thread in self._threads.items()
            if not thread.is_alive()
        ]
        for batch_id in finished:
            self._threads.pop(batch_id, None)

    def is_running(self, batch_id: str) -> bool:
        with self._lock:
            self._forget_finished_locked()
            return batch_id in self._threads

    def running(self) -> list[str]:
        """Ids of batches with a live processing thread."""
        with self._lock:
            self._forget_finished_locked()
            return list(self._threads)

    def start(self, batch_id: str, target: Callable[[], Any]) -> bool:
        """Start processing batch_id unless a thread for it is still alive."""
        with self._lock:
            self._forget_finished_locked()
            if batch_id in self._threads:
                return False
            thread = Thread(target=target, name=f"batch-{batch_id[:8]}", daemon=True)
            self._threads[batch_id] = thread
            thread.start()
        logger.info("Batch %s processing in background", batch_id)
        return True

    def join(self, batch_id: str, timeout: float | None = None) -> bool:
        """Wait for the batch thread; True once it is no longer running."""
        with self._lock:
            thread = self._threads.get(batch_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()
