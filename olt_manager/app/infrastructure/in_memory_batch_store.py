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
"""In-memory repository for batch operations."""

from __future__ import annotations

from copy import deepcopy
from threading import Lock

from olt_manager.app.domain.models import BatchOperation


class InMemoryBatchStore:
    """Thread-safe in-memory batch repository.

    Batches are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._batches: dict[str, BatchOperation] = {}

    def save(self, batch: BatchOperation) -> None:
        snapshot = deepcopy(batch)
        with self._lock:
            self._batches[batch.batch_id] = snapshot

    def get(self, batch_id: str) -> BatchOperation | None:
        with self._lock:
            batch = self._batches.get(batch_id)
            return deepcopy(batch) if batch is not None else None

    def list(self) -> list[BatchOperation]:
        with self._lock:
            return [deepcopy(batch) for batch in self._batches.values()]

    def delete(self, batch_id: str) -> bool:
        with self._lock:
            return self._batches.pop(batch_id, None) is not None
