from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.repair import RepairRequest

from conftest import bearer_headers, rental_payload, repair_payload


def _age_request(db: Session, request_id: int, minutes: int = 20) -> None:
    db.query(RepairRequest).filter(RepairRequest.id == request_id).update(
        {"expires_at": datetime.utcnow() - timedelta(minutes=minutes)},
        synchronize_session=False,
    )
    db.commit()


def test_submit_repair_with_welcome_coupon(client: TestClient, db_session: Session, auth_headers: dict, repair_catalog, make_coupon):
    make_coupon()

    response = client.post(
        "/api/v1/repair/requests",
        headers=auth_headers,
        json=repair_payload(repair_catalog, coupon_code="WELCOME10"),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["request_type"] == "repair"
    assert (data["total_amount"], data["discount_amount"], data["net_amount"]) == (500.0, 50.0, 450.0)
    assert data["status"] == "pending"
    assert data["expires_at"] is not None

    again = client.post(
        "/api/v1/repair/requests",
        headers=auth_headers,
        json=repair_payload(repair_catalog, coupon_code="WELCOME10"),
    )
    assert again.status_code == 400
    assert again.json()["errors"] == [{"reason": "usage_limit_reached"}]
    assert db_session.query(CouponUsage).count() == 1


def test_submit_with_unknown_coupon_is_404(client: TestClient, auth_headers: dict, repair_catalog):
    response = client.post(
        "/api/v1/repair/requests",
        headers=auth_headers,
        json=repair_payload(repair_catalog, coupon_code="GHOST"),
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Coupon not found or inactive"


def test_submit_without_services_is_rejected(client: TestClient, auth_headers: dict, repair_catalog):
    response = client.post(
        "/api/v1/repair/requests",
        headers=auth_headers,
        json=repair_payload(repair_catalog, service_ids=[]),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_submit_rejects_malformed_phone(client: TestClient, auth_headers: dict, repair_catalog):
    response = client.post(
        "/api/v1/repair/requests",
        headers=auth_headers,
        json=repair_payload(repair_catalog, contact_number="12345"),
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


def test_submit_rental(client: TestClient, auth_headers: dict, bicycle):
    response = client.post("/api/v1/rental/requests", headers=auth_headers, json=rental_payload(bicycle))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["request_type"] == "rental"
    assert data["total_amount"] == 550.0


def test_catalog_reads(client: TestClient, repair_catalog, mechanic_charge, bicycle):
    services = client.get("/api/v1/repair/services").json()["data"]
    assert [service["name"] for service in services] == ["Puncture Repair", "Tune Up"]

    assert len(client.get("/api/v1/repair/time-slots").json()["data"]) == 1
    assert client.get("/api/v1/repair/mechanic-charge").json()["data"] == {"amount": 100.0}

    assert client.get("/api/v1/rental/bicycles").json()["data"][0]["daily_rate"] == 250.0
    assert client.get(f"/api/v1/rental/bicycles/{bicycle.id}").status_code == 200
    assert client.get("/api/v1/rental/bicycles/999").status_code == 404


def test_request_detail_shows_effective_status(client: TestClient, db_session: Session, auth_headers: dict, repair_catalog):
    created = client.post("/api/v1/repair/requests", headers=auth_headers, json=repair_payload(repair_catalog))
    request_id = created.json()["data"]["request_id"]
    _age_request(db_session, request_id)

    detail = client.get(f"/api/v1/repair/requests/{request_id}", headers=auth_headers)

    assert detail.status_code == 200
    data = detail.json()["data"]
    assert data["status"] == "expired"
    assert [entry["new_status"] for entry in data["status_history"]] == ["pending"]

    expired = client.get("/api/v1/repair/requests", headers=auth_headers, params={"status": "expired"})
    assert expired.json()["meta"]["total"] == 1


def test_requests_are_owner_scoped(client: TestClient, auth_headers: dict, other_user, repair_catalog):
    created = client.post("/api/v1/repair/requests", headers=auth_headers, json=repair_payload(repair_catalog))
    request_id = created.json()["data"]["request_id"]

    response = client.get(f"/api/v1/repair/requests/{request_id}", headers=bearer_headers(other_user))
    assert response.status_code == 404
    assert response.json()["message"] == "Repair request not found"


def test_admin_moves_request_through_lifecycle(client: TestClient, auth_headers: dict, admin_headers: dict, repair_catalog):
    created = client.post("/api/v1/repair/requests", headers=auth_headers, json=repair_payload(repair_catalog))
    request_id = created.json()["data"]["request_id"]
    url = f"/api/v1/repair/admin/requests/{request_id}/status"

    for target in ("waiting_payment", "active", "completed"):
        response = client.patch(url, headers=admin_headers, json={"status": target})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == target

    backwards = client.patch(url, headers=admin_headers, json={"status": "active"})
    assert backwards.status_code == 409
    assert backwards.json()["errors"] == [{"current_status": "completed", "target_status": "active"}]


def test_admin_reject_requires_note(client: TestClient, auth_headers: dict, admin_headers: dict, bicycle):
    created = client.post("/api/v1/rental/requests", headers=auth_headers, json=rental_payload(bicycle))
    url = f"/api/v1/rental/admin/requests/{created.json()['data']['request_id']}/status"

    assert client.patch(url, headers=admin_headers, json={"status": "rejected"}).status_code == 400

    rejected = client.patch(url, headers=admin_headers, json={"status": "rejected", "rejection_note": "Bicycle under repair"})
    assert rejected.status_code == 200
    assert rejected.json()["data"]["rejection_note"] == "Bicycle under repair"


def test_admin_approval_of_expired_request_conflicts(client: TestClient, db_session: Session, auth_headers: dict, admin_headers: dict, repair_catalog):
    created = client.post("/api/v1/repair/requests", headers=auth_headers, json=repair_payload(repair_catalog))
    request_id = created.json()["data"]["request_id"]
    _age_request(db_session, request_id)

    response = client.patch(
        f"/api/v1/repair/admin/requests/{request_id}/status",
        headers=admin_headers,
        json={"status": "waiting_payment"},
    )

    assert response.status_code == 409
    assert response.json()["message"] == "Request has expired"

    listing = client.get("/api/v1/repair/admin/requests", headers=admin_headers, params={"status": "expired"})
    assert listing.json()["data"][0]["status"] == "expired"


def test_admin_transition_of_missing_request(client: TestClient, admin_headers: dict):
    response = client.patch(
        "/api/v1/repair/admin/requests/999/status",
        headers=admin_headers,
        json={"status": "waiting_payment"},
    )
    assert response.status_code == 404


def test_customers_cannot_change_status(client: TestClient, auth_headers: dict, repair_catalog):
    created = client.post("/api/v1/repair/requests", headers=auth_headers, json=repair_payload(repair_catalog))
    response = client.patch(
        f"/api/v1/repair/admin/requests/{created.json()['data']['request_id']}/status",
        headers=auth_headers,
        json={"status": "waiting_payment"},
    )
    assert response.status_code == 403


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers
