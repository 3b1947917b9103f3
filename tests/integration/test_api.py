"""Integration tests for API endpoints"""

import json
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

from sports_lending.api.dependencies import get_notification_client
from sports_lending.infrastructure.clients.notifications import NotificationClient
from tests.conftest import T0


def borrow(client: TestClient, student_id: str, equipment_ids, duration_minutes=60):
    return client.post(
        "/v1/loans",
        json={"student_id": student_id, "equipment_ids": list(equipment_ids), "duration_minutes": duration_minutes},
    )


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "lending_loans_created_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_create_loan(client: TestClient, make_student, make_equipment):
    """Test POST /v1/loans"""
    student = make_student()
    item = make_equipment()

    response = borrow(client, student.id, [item.id], 45)

    assert response.status_code == 201
    [loan] = response.json()["loans"]
    assert loan["student_id"] == student.id
    assert loan["equipment_id"] == item.id
    assert loan["status"] == "active"
    assert loan["is_overdue"] is False
    assert loan["returned_at"] is None


def test_create_loan_validation(client: TestClient, make_student):
    response = client.post("/v1/loans", json={"student_id": make_student().id, "equipment_ids": []})
    assert response.status_code == 422


def test_borrow_unavailable_item_conflicts(client: TestClient, make_student, make_equipment):
    item = make_equipment()
    assert borrow(client, make_student().id, [item.id]).status_code == 201

    response = borrow(client, make_student().id, [item.id])

    assert response.status_code == 409
    assert "not available" in response.json()["detail"]


def test_borrow_unknown_student(client: TestClient, make_equipment):
    response = borrow(client, "missing", [make_equipment().id])
    assert response.status_code == 404


def test_return_and_return_again(client: TestClient, clock, make_student, make_equipment):
    """Test POST /v1/loans/{loan_id}/return"""
    [loan] = borrow(client, make_student().id, [make_equipment().id]).json()["loans"]
    clock.advance(minutes=30)

    response = client.post(f"/v1/loans/{loan['id']}/return")
    assert response.status_code == 200
    assert response.json()["status"] == "returned"

    again = client.post(f"/v1/loans/{loan['id']}/return")
    assert again.status_code == 409


def test_get_loan_reports_overdue(client: TestClient, clock, make_student, make_equipment):
    """Test GET /v1/loans/{loan_id}"""
    [loan] = borrow(client, make_student().id, [make_equipment().id], 60).json()["loans"]
    clock.advance(minutes=90)

    response = client.get(f"/v1/loans/{loan['id']}")

    assert response.status_code == 200
    assert response.json()["status"] == "overdue"
    assert response.json()["is_overdue"] is True


def test_get_loan_not_found(client: TestClient):
    response = client.get("/v1/loans/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


def test_refresh_overdue_and_overdue_roster(client: TestClient, clock, make_student, make_equipment):
    student = make_student()
    borrow(client, student.id, [make_equipment().id], 30)
    clock.advance(minutes=45)

    assert client.post("/v1/loans/refresh-overdue").json() == {"changed": 1}
    assert client.get("/v1/students/overdue").json() == {"student_ids": [student.id]}


def test_edit_due_date(client: TestClient, clock, make_student, make_equipment):
    """Test PATCH /v1/loans/{loan_id}"""
    [loan] = borrow(client, make_student().id, [make_equipment().id], 60).json()["loans"]
    clock.advance(minutes=90)

    response = client.patch(f"/v1/loans/{loan['id']}", json={"due_at": (T0 + timedelta(hours=3)).isoformat()})

    assert response.status_code == 200
    assert response.json()["status"] == "active"

    before_borrow = client.patch(f"/v1/loans/{loan['id']}", json={"due_at": (T0 - timedelta(hours=1)).isoformat()})
    assert before_borrow.status_code == 409


def test_delete_loan_frees_equipment(client: TestClient, make_student, make_equipment):
    """Test DELETE /v1/loans/{loan_id}"""
    item = make_equipment()
    [loan] = borrow(client, make_student().id, [item.id]).json()["loans"]

    assert client.delete(f"/v1/loans/{loan['id']}").status_code == 204
    assert client.get(f"/v1/loans/{loan['id']}").status_code == 404
    # Item can be lent again
    assert borrow(client, make_student().id, [item.id]).status_code == 201


def test_suspension_lifecycle(client: TestClient, make_student, make_equipment):
    """Test POST, GET and DELETE /v1/students/{student_id}/suspension"""
    student = make_student(trust_score=50.0)
    end_date = (T0 + timedelta(days=7)).isoformat()

    response = client.post(
        f"/v1/students/{student.id}/suspension",
        json={"end_date": end_date, "reason": "Left kit outside"},
    )
    assert response.status_code == 200
    assert response.json()["is_blacklisted"] is True
    assert client.get(f"/v1/students/{student.id}/trust-score").json()["trust_score"] == 25.0

    blocked = borrow(client, student.id, [make_equipment().id])
    assert blocked.status_code == 409
    assert "suspended" in blocked.json()["detail"]

    state = client.get(f"/v1/students/{student.id}/suspension").json()
    assert state["reason"] == "Left kit outside"

    lifted = client.delete(f"/v1/students/{student.id}/suspension")
    assert lifted.status_code == 200
    assert lifted.json()["is_blacklisted"] is False
    assert client.get(f"/v1/students/{student.id}/trust-score").json()["trust_score"] == 25.0


@pytest.mark.parametrize(
    "body",
    [
        {"end_date": (T0 + timedelta(days=7)).isoformat(), "reason": ""},
        {"end_date": (T0 - timedelta(days=1)).isoformat(), "reason": "Past"},
    ],
)
def test_invalid_suspension_rejected(client: TestClient, make_student, body):
    response = client.post(f"/v1/students/{make_student().id}/suspension", json=body)
    assert response.status_code == 409


def test_reconcile_suspensions(client: TestClient, clock, make_student):
    student = make_student()
    client.post(
        f"/v1/students/{student.id}/suspension",
        json={"end_date": (T0 + timedelta(days=1)).isoformat(), "reason": "Short"},
    )
    clock.advance(days=2)

    assert client.post("/v1/students/reconcile-suspensions").json() == {"expired_student_ids": [student.id]}
    assert client.post("/v1/students/reconcile-suspensions").json() == {"expired_student_ids": []}


def test_trust_score_and_summary(client: TestClient, clock, make_student, make_equipment):
    student = make_student()
    for held in (30, 90):
        [loan] = borrow(client, student.id, [make_equipment().id], 60).json()["loans"]
        clock.advance(minutes=held)
        client.post(f"/v1/loans/{loan['id']}/return")
    borrow(client, student.id, [make_equipment().id], 60)

    trust = client.get(f"/v1/students/{student.id}/trust-score").json()
    assert trust == {
        "student_id": student.id,
        "trust_score": 50.0,
        "trust_band": "fair",
        "on_time_ratio_score": 50.0,
    }

    summary = client.get(f"/v1/students/{student.id}/summary").json()
    assert summary["total_loans"] == 3
    assert summary["active_loans"] == 1
    assert summary["overdue_count"] == 1


def test_student_and_equipment_history(client: TestClient, make_student, make_equipment):
    student = make_student()
    item = make_equipment()
    [loan] = borrow(client, student.id, [item.id]).json()["loans"]

    student_loans = client.get(f"/v1/students/{student.id}/loans").json()["loans"]
    item_loans = client.get(f"/v1/equipment/{item.id}/loans").json()["loans"]

    assert [row["id"] for row in student_loans] == [loan["id"]]
    assert [row["id"] for row in item_loans] == [loan["id"]]
    assert client.get("/v1/equipment/missing/loans").status_code == 404


def test_at_risk_and_dismiss(client: TestClient, clock, make_student, make_equipment):
    """Test GET /v1/at-risk and POST /v1/at-risk/{student_id}/dismiss"""
    student = make_student()
    for _ in range(3):
        [loan] = borrow(client, student.id, [make_equipment().id], 30).json()["loans"]
        clock.advance(minutes=60)
        client.post(f"/v1/loans/{loan['id']}/return")

    [flagged] = client.get("/v1/at-risk").json()["students"]
    assert flagged["student_id"] == student.id
    assert flagged["late_returns_since_last_suspension"] == 3

    dismissed = client.post(f"/v1/at-risk/{student.id}/dismiss")
    assert dismissed.status_code == 200
    assert dismissed.json()["late_return_count"] == 3

    assert client.get("/v1/at-risk").json()["students"] == []


def test_events_forwarded_to_webhook(client: TestClient, make_student):
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200)

    notifier = NotificationClient(webhook_url="http://notify.test/events", transport=httpx.MockTransport(handler))
    client.app.dependency_overrides[get_notification_client] = lambda: notifier

    student = make_student(trust_score=50.0)
    response = client.post(
        f"/v1/students/{student.id}/suspension",
        json={"end_date": (T0 + timedelta(days=7)).isoformat(), "reason": "Reason"},
    )

    assert response.status_code == 200
    events = [json.loads(request.content)["event"] for request in received]
    assert events == ["STUDENT_SUSPENDED", "TRUST_SCORE_CHANGED"]


def test_register_and_maintain_equipment(client: TestClient, make_student):
    """Test POST, GET, PATCH and DELETE /v1/equipment"""
    created = client.post(
        "/v1/equipment",
        json={"item_id": "TT-7", "name": "Table tennis bats", "category": "Other"},
    )
    assert created.status_code == 201
    item = created.json()
    assert item["status"] == "available"

    assert client.get(f"/v1/equipment/{item['id']}").json()["item_id"] == "TT-7"

    duplicate = client.post("/v1/equipment", json={"item_id": "TT-7", "name": "Bats", "category": "Other"})
    assert duplicate.status_code == 409

    repaired = client.patch(f"/v1/equipment/{item['id']}", json={"status": "repair", "condition_notes": "Rubber peeling"})
    assert repaired.status_code == 200
    assert repaired.json()["status"] == "repair"
    assert repaired.json()["name"] == "Table tennis bats"
    assert borrow(client, make_student().id, [item["id"]]).status_code == 409

    assert client.delete(f"/v1/equipment/{item['id']}").status_code == 204
    assert client.get(f"/v1/equipment/{item['id']}").status_code == 404


def test_equipment_status_locked_while_on_loan(client: TestClient, make_student, make_equipment):
    item = make_equipment()
    borrow(client, make_student().id, [item.id])

    assert client.patch(f"/v1/equipment/{item.id}", json={"status": "lost"}).status_code == 409
    assert client.patch(f"/v1/equipment/{item.id}", json={"status": "borrowed"}).status_code == 409
    assert client.delete(f"/v1/equipment/{item.id}").status_code == 409


def test_register_student(client: TestClient, make_equipment):
    """Test POST and GET /v1/students"""
    response = client.post("/v1/students", json={"full_name": "Mary Seacole", "class_name": "9B"})

    assert response.status_code == 201
    student = response.json()
    assert student["student_id"] == "STU400000"
    assert student["trust_score"] == 50.0
    assert client.get(f"/v1/students/{student['id']}").json()["class_name"] == "9B"
    assert borrow(client, student["id"], [make_equipment().id]).status_code == 201

    duplicate = client.post("/v1/students", json={"full_name": "Other", "student_id": "STU400000"})
    assert duplicate.status_code == 409
    assert client.get("/v1/students/missing").status_code == 404
