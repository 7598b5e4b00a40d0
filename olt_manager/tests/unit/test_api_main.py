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
"""API tests for the OLT manager endpoints."""

import threading

import pytest
from fastapi.testclient import TestClient

from olt_manager.app.api.main import build_container, create_app, status_code_for
from olt_manager.app.config import Settings
from olt_manager.app.domain.errors import (
    CommandError,
    CommandTimeoutError,
    ConflictError,
    DeviceConnectionError,
    FatalConnectionError,
    NotFoundError,
    OltError,
    ValidationError,
)


@pytest.fixture
def container():
    return build_container(Settings(simulation=True, simulated_seed=7))


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


@pytest.fixture
def serials(container):
    return container.sessions.simulated_olt.serials


@pytest.mark.parametrize(
    "error, status",
    [
        (ValidationError("x"), 400),
        (NotFoundError("x"), 404),
        (ConflictError("x"), 409),
        (CommandTimeoutError("x"), 504),
        (CommandError("x"), 502),
        (FatalConnectionError("x"), 503),
        (DeviceConnectionError("x"), 503),
        (OltError("x"), 500),
    ],
)
def test_status_code_mapping(error, status):
    assert status_code_for(error) == status


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_batch_lifecycle(client, serials):
    created = client.post(
        "/api/batches",
        json={
            "operations": [
                {"type": "start", "serial": serials[0]},
                {"type": "reboot", "serial": "4857544399999999"},
            ]
        },
    )
    assert created.status_code == 200
    batch_id = created.json()["batch_id"]
    assert created.json()["status"] == "pending"

    processed = client.post(f"/api/batches/{batch_id}/process")
    assert processed.status_code == 200
    body = processed.json()
    assert body["status"] == "completed_with_errors"
    assert [op["status"] for op in body["operations"]] == ["completed", "failed"]
    assert body["operations"][1]["error"]

    again = client.post(f"/api/batches/{batch_id}/process")
    assert again.status_code == 409
    assert again.json()["error"] == "conflict"

    listed = client.get("/api/batches", params={"status": "completed_with_errors"})
    assert [item["batch_id"] for item in listed.json()] == [batch_id]

    assert client.delete(f"/api/batches/{batch_id}").status_code == 200
    assert client.get(f"/api/batches/{batch_id}").status_code == 404


def test_create_batch_validation_errors_are_400(client):
    response = client.post(
        "/api/batches", json={"operations": [{"type": "explode", "serial": "A"}]}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"

    response = client.post("/api/batches", json={})
    assert response.status_code == 400


def test_process_async_runs_batch(client, container, serials):
    batch_id = client.post(
        "/api/batches", json={"operations": [{"type": "stop", "serial": serials[1]}]}
    ).json()["batch_id"]

    response = client.post(f"/api/batches/{batch_id}/process/async")
    container.coordinator.join(batch_id, timeout=5)

    assert response.status_code == 200
    assert client.get(f"/api/batches/{batch_id}").json()["status"] == "completed"


def test_onu_action_records_history(client, serials):
    serial = serials[0]

    response = client.post(f"/api/onus/{serial}/actions/stop")
    assert response.status_code == 200
    assert response.json()["type"] == "STOP"

    history = client.get(f"/api/onus/{serial}/history").json()
    assert [event["type"] for event in history] == ["STOP"]

    metrics = client.get(f"/api/onus/{serial}/metrics").json()
    assert metrics["total"] == 1
    assert metrics["by_type"] == {"STOP": 1}

    overall = client.get("/api/history/metrics").json()
    assert overall["total_events"] == 1
    assert overall["active_serials"] == 1

    cleared = client.delete(f"/api/onus/{serial}/history").json()
    assert cleared == {"serial": serial, "removed": 1}


def test_action_on_unknown_serial_is_404(client):
    response = client.post("/api/onus/4857544399999999/actions/start")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
    history = client.get("/api/onus/4857544399999999/history").json()
    assert [event["type"] for event in history] == ["ERROR"]


def test_unknown_action_is_400(client, serials):
    response = client.post(f"/api/onus/{serials[0]}/actions/explode")
    assert response.status_code == 400


def test_configure_action_with_bad_config_is_400(client, serials):
    response = client.post(
        f"/api/onus/{serials[0]}/actions/configure", json={"config": {"speed": "1g"}}
    )
    assert response.status_code == 400


def test_history_limit_must_be_positive(client, serials):
    response = client.get(f"/api/onus/{serials[0]}/history", params={"limit": 0})
    assert response.status_code == 400


def test_device_queries(client, serials):
    info = client.get("/api/device/system-info").json()
    assert info["model"] == "MA5800-X7"

    onus = client.get("/api/onus").json()
    assert sorted(onu["serial"] for onu in onus) == sorted(serials)

    unauthorized = client.get("/api/onus/unauthorized").json()
    assert len(unauthorized) == 2

    optical = client.get("/api/onus/optical").json()
    assert sorted(onu["serial"] for onu in optical) == sorted(serials)

    status = client.get(f"/api/onus/{serials[0]}").json()
    assert status["serial"] == serials[0]

    assert client.get("/api/onus/4857544399999999").status_code == 404


def test_authorize_and_delete(client):
    pending = client.get("/api/onus/unauthorized").json()[0]

    response = client.post(
        "/api/onus/authorize",
        json={
            "port": pending["port"],
            "serial": pending["serial"],
            "description": "lab",
            "onu_id": 30,
        },
    )
    assert response.status_code == 200
    record = response.json()
    assert record["onu_id"] == 30

    path = f"{record['frame']}/{record['slot']}/{record['port']}/{record['onu_id']}"
    assert client.delete(f"/api/onus/{path}").status_code == 200
    assert client.get(f"/api/onus/{pending['serial']}").status_code == 404


def test_port_and_vlan_configuration(client):
    configured = client.post(
        "/api/ports/configure",
        json={"port": "0/1/1", "admin_state": "enable", "mode": "wan", "vlan": 200},
    )
    assert configured.status_code == 200
    assert configured.json()["mode"] == "wan"
    assert client.get("/api/ports/config", params={"port": "0/1/1"}).json()["vlan"] == 200

    bad = client.post("/api/ports/configure", json={"port": "0/1", "mode": "wan"})
    assert bad.status_code == 400

    vlan = client.post(
        "/api/vlans", json={"vlan_id": 200, "description": "iptv", "ports": ["0/1/1"]}
    )
    assert vlan.status_code == 200
    assert client.post("/api/device/save").json()["status"] == "saved"


def test_session_endpoints(client):
    state = client.get("/api/device/session").json()
    assert state["state"] == "connected"
    assert state["queued"] == 0

    assert client.post("/api/device/connect").json()["state"] == "connected"
    assert client.post("/api/device/disconnect").json()["state"] == "connected"


def test_reboot_schedules_recovery_task(client, serials):
    client.post(f"/api/onus/{serials[0]}/actions/reboot")

    tasks = client.get("/api/tasks").json()
    assert [task["name"] for task in tasks] == [f"reboot-recovery:{serials[0]}"]
    assert tasks[0]["state"] in {"pending", "running", "completed"}


def test_shutdown_waits_for_background_batches(container):
    release = threading.Event()
    finished = []

    def run():
        release.wait(5)
        finished.append(True)

    container.coordinator.start("batch-1", run)
    threading.Timer(0.05, release.set).start()
    container.shutdown()

    assert finished == [True]
    assert container.coordinator.running() == []
