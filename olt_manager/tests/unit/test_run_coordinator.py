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
"""Unit tests for the background run coordinator."""

import threading

from olt_manager.app.infrastructure.run_coordinator import RunCoordinator


def test_start_rejects_second_run_while_alive():
    coordinator = RunCoordinator()
    release = threading.Event()

    assert coordinator.start("batch-1", release.wait) is True
    assert coordinator.is_running("batch-1") is True
    assert coordinator.start("batch-1", lambda: None) is False

    release.set()
    coordinator.join("batch-1", timeout=5)

    assert coordinator.is_running("batch-1") is False


def test_finished_run_can_start_again():
    coordinator = RunCoordinator()
    calls = []

    coordinator.start("batch-1", lambda: calls.append(1))
    coordinator.join("batch-1", timeout=5)
    assert coordinator.start("batch-1", lambda: calls.append(2)) is True
    coordinator.join("batch-1", timeout=5)

    assert calls == [1, 2]


def test_join_reports_whether_run_finished():
    coordinator = RunCoordinator()
    release = threading.Event()
    coordinator.start("batch-1", release.wait)

    assert coordinator.running() == ["batch-1"]
    assert coordinator.join("batch-1", timeout=0.05) is False

    release.set()
    assert coordinator.join("batch-1", timeout=5) is True
    assert coordinator.running() == []
    assert coordinator.join("missing", timeout=0.1) is True
