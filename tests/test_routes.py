from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from fleetwatch.errors import StoreUnavailable


@pytest.fixture
def client(port):
    from fleetwatch.web import create_app

    app = create_app(port)
    with TestClient(app) as test_client:
        yield test_client


def _iso(delta_days: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=delta_days)).isoformat()


def _create(client, name, *date_fields):
    resp = client.post(
        "/trucks",
        json={
            "name": name,
            "note": "",
            "custom_fields": [
                {"type": "DATE", "label": label, "value": value} for label, value in date_fields
            ],
        },
    )
    assert resp.status_code == 201
    return resp.json()


def test_index_redirects_to_summary(client):
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/notifications/summary"


def test_startup_registers_daily_trigger(client, port):
    assert port.trigger == (7, 0)


def test_trucks_list_empty(client):
    resp = client.get("/trucks")
    assert resp.status_code == 200
    assert resp.json() == []


def test_create_and_view_truck(client):
    truck = _create(client, "Volvo 1", ("Insurance", _iso(3)))
    assert truck["custom_fields"][0]["id"]
    assert truck["custom_fields"][0]["type"] == "DATE"

    resp = client.get(f"/trucks/{truck['id']}")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Volvo 1"


def test_create_requires_name(client):
    resp = client.post("/trucks", json={"name": "", "custom_fields": []})
    assert resp.status_code == 422


def test_update_truck(client):
    truck = _create(client, "Old")
    resp = client.patch(f"/trucks/{truck['id']}", json={"name": "New"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "New"

    resp = client.patch("/trucks/missing", json={"name": "New"})
    assert resp.status_code == 404


def test_delete_truck(client):
    truck = _create(client, "Delete Me")
    resp = client.delete(f"/trucks/{truck['id']}")
    assert resp.status_code == 204

    resp = client.get(f"/trucks/{truck['id']}")
    assert resp.status_code == 404


def test_field_templates(client):
    labels = [t["label"] for t in client.get("/trucks/templates").json()]
    assert "Insurance Deadline" in labels
    assert "Tech Inspection Deadline" in labels


def test_truck_status(client):
    truck = _create(client, "Volvo 1", ("Insurance", _iso(3)), ("Tech Inspection", _iso(-1)))
    resp = client.get(f"/trucks/{truck['id']}/status")
    assert resp.status_code == 200
    data = resp.json()
    assert data["insurance"]["status"] == "warning"
    assert data["tech_inspection"]["status"] == "overdue"
    assert len(data["custom_fields"]) == 2

    assert client.get("/trucks/missing/status").status_code == 404


def test_summary_upcoming_overdue(client):
    _create(client, "Volvo 1", ("Insurance", _iso(3)))
    _create(client, "Scania", ("Insurance", _iso(-2)))
    _create(client, "DAF", ("Insurance", None))

    summary = client.get("/notifications/summary").json()
    assert summary["total_trucks"] == 3
    assert summary["upcoming_count"] == 1
    assert summary["overdue_count"] == 1
    assert summary["permissions_granted"] is True
    assert summary["next_check_time"] is not None

    assert [t["name"] for t in client.get("/notifications/upcoming").json()] == ["Volvo 1"]
    assert [t["name"] for t in client.get("/notifications/overdue").json()] == ["Scania"]


def test_settings_update_reschedules(client, port):
    resp = client.patch("/notifications/settings", json={"daily_time": "18:30", "warning_days": 14})
    assert resp.status_code == 200
    assert resp.json()["warning_days"] == 14
    assert port.trigger == (18, 30)
    assert client.get("/notifications/settings").json()["daily_time"] == "18:30"


def test_settings_validation(client):
    resp = client.patch("/notifications/settings", json={"daily_time": "7pm"})
    assert resp.status_code == 422


def test_manual_check_delivers(client, port):
    _create(client, "Volvo 1", ("Insurance", _iso(3.5)))
    resp = client.post("/notifications/check")
    assert resp.status_code == 200
    data = resp.json()
    assert data["outcome"] == "completed"
    assert data["title"] == "Volvo 1 - Insurance Due Soon"
    assert data["body"] == "Insurance expires in 4 days"
    assert data["delivered"] is True
    assert len(port.delivered) == 1

    # manual checks are never suppressed by the same-day guard
    client.post("/notifications/check")
    assert len(port.delivered) == 2


def test_manual_check_store_failure(client):
    client.app.state.notifications.runner.trucks = AsyncMock()
    client.app.state.notifications.runner.trucks.list.side_effect = StoreUnavailable("offline")
    resp = client.post("/notifications/check")
    assert resp.status_code == 503
    assert "Deadline check failed" in resp.json()["detail"]


def test_disable_and_enable(client, port):
    resp = client.post("/notifications/disable")
    assert resp.json()["enabled"] is False
    assert port.trigger is None
    assert client.get("/notifications/setup").json()["complete"] is False

    resp = client.post("/notifications/enable")
    assert resp.status_code == 200
    assert port.trigger == (7, 0)
    assert client.get("/notifications/setup").json()["complete"] is True


def test_enable_without_permission(client, port):
    port.granted = False
    resp = client.post("/notifications/enable")
    assert resp.status_code == 403
    setup = client.get("/notifications/setup").json()
    assert setup["complete"] is False
    assert setup["permission"]["granted"] is False


def test_send_test_notification(client, port):
    resp = client.post("/notifications/test")
    assert resp.json() == {"sent": True}
    assert port.delivered[0][0] == "Test Notification"
