from __future__ import annotations

import os
import time
import uuid

import httpx
import pytest


pytestmark = pytest.mark.e2e


def _require_env(name: str) -> str:
    value = (os.getenv(name) or "").strip()
    if not value:
        pytest.fail(f"Missing required environment variable: {name}")
    return value


def _api_base_url() -> str:
    return (os.getenv("TRAVELCRM_E2E_API_BASE_URL") or "http://127.0.0.1:8000").rstrip("/")


def _leads(n: int, run: str) -> list[dict]:
    return [
        {
            "fullName": f"E2E Lead {i}",
            "email": f"e2e-{run}-{i}@example.com",
            "phone": "555-0100",
            "duplicateKey": f"e2e-{run}-{i}",
            "travelDetails": {"destination": "Lisbon", "budget": {"value": 1000 * i}},
        }
        for i in range(n)
    ]


@pytest.fixture(scope="session")
def agency_headers() -> dict[str, str]:
    return {"X-Agency-Id": _require_env("TRAVELCRM_E2E_AGENCY_ID")}


@pytest.fixture(scope="session")
def client() -> httpx.Client:
    with httpx.Client(base_url=_api_base_url(), timeout=30.0) as http:
        yield http


def test_e2e_worker_health(client: httpx.Client) -> None:
    response = client.get("/api/v1/worker/health")
    assert response.status_code == 200, response.text
    data = response.json()
    if data["worker"] == "disabled":
        pytest.skip("in-process workers disabled; expecting python -m travelcrm.worker")
    assert data["status"] == "ok", data
    assert all(c["running"] for c in data["consumers"])


def test_e2e_import_completes(client: httpx.Client, agency_headers: dict[str, str]) -> None:
    run = uuid.uuid4().hex[:8]
    leads = _leads(120, run)
    # same duplicate key twice: exactly one of the two rows is rejected
    leads.append(dict(leads[0], fullName="E2E Duplicate"))

    response = client.post(
        "/api/v1/leads/import",
        json={"importId": f"e2e-{run}", "leads": leads},
        headers=agency_headers,
    )
    assert response.status_code == 202, response.text
    accepted = response.json()
    assert accepted["total"] == 121

    deadline = time.monotonic() + 60
    progress = {}
    while time.monotonic() < deadline:
        status_resp = client.get(f"/api/v1/leads/import/{accepted['import_id']}", headers=agency_headers)
        assert status_resp.status_code == 200, status_resp.text
        progress = status_resp.json()
        if progress["status"] == "completed":
            break
        time.sleep(0.5)

    assert progress.get("status") == "completed", progress
    assert progress["processed"] == 121
    assert progress["succeeded"] == 120
    assert progress["failed"] == 1
    # batches may land in any order across consumers
    assert progress["errors"][0]["index"] in (0, 120)


def test_e2e_reused_import_id_conflicts(client: httpx.Client, agency_headers: dict[str, str]) -> None:
    payload = {"importId": f"e2e-dup-{uuid.uuid4().hex[:8]}", "leads": _leads(1, uuid.uuid4().hex[:8])}

    first = client.post("/api/v1/leads/import", json=payload, headers=agency_headers)
    assert first.status_code == 202, first.text
    second = client.post("/api/v1/leads/import", json=payload, headers=agency_headers)
    assert second.status_code == 409, second.text
