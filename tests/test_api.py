from datetime import datetime


def request_payload(unit, email="applicant@example.com"):
    return {
        "unit_id": unit.id,
        "first_name": "Ann",
        "last_name": "Applicant",
        "email": email,
        "phone": "0899999999",
        "lease_duration_months": 12,
    }


def test_root_and_version(client):
    assert client.get("/").json()["status"] == "operational"
    assert client.get("/api/version").json()["success"] is True


def test_booking_workflow_end_to_end(client, clock, unit, tenant, applicant_headers, admin_headers):
    created = client.post(
        "/api/rental-requests/authenticated", json=request_payload(unit), headers=applicant_headers
    )
    assert created.status_code == 201
    request_id = created.json()["id"]

    approved = client.put(
        f"/api/rental-requests/{request_id}/approve",
        json={"start_date": "2025-01-01", "end_date": "2025-12-31"},
        headers=admin_headers,
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"

    active = client.get(f"/api/leases/unit/{unit.id}/active", headers=admin_headers).json()
    assert active["status"] == "ACTIVE"
    assert active["room_number"] == "101"
    assert active["tenant_name"] == "Ann Applicant"

    overlapping = client.post(
        "/api/leases/",
        json={
            "unit_id": unit.id,
            "tenant_id": tenant.id,
            "start_date": "2025-06-01",
            "end_date": "2025-07-01",
            "rent_amount": "5000",
        },
        headers=admin_headers,
    )
    assert overlapping.status_code == 409
    assert overlapping.json()["success"] is False
    assert overlapping.json()["error_code"] == "conflict"

    latest = client.get("/api/rental-requests/me/latest", headers=applicant_headers).json()
    assert latest["has_active_lease"] is True
    assert latest["can_create_new_request"] is False

    clock.set(datetime(2026, 1, 1, 0, 10))
    sweep = client.post("/api/leases/expire-leases", headers=admin_headers)
    assert sweep.status_code == 200
    assert sweep.json()["expired_leases"] == 1

    unit_after = client.get(f"/api/units/{unit.id}", headers=admin_headers).json()
    assert unit_after["status"] == "AVAILABLE"

    completed = client.get(f"/api/rental-requests/{request_id}", headers=admin_headers).json()
    assert completed["status"] == "COMPLETED"


def test_reject_and_acknowledge_over_http(client, unit, applicant_headers, admin_headers):
    request_id = client.post(
        "/api/rental-requests/authenticated", json=request_payload(unit), headers=applicant_headers
    ).json()["id"]

    rejected = client.put(
        f"/api/rental-requests/{request_id}/reject", json={"reason": "Incomplete documents"}, headers=admin_headers
    )
    assert rejected.json()["status"] == "REJECTED"

    blocked = client.post(
        "/api/rental-requests/authenticated", json=request_payload(unit), headers=applicant_headers
    )
    assert blocked.status_code == 409

    ack = client.post(f"/api/rental-requests/{request_id}/acknowledge", headers=applicant_headers)
    assert ack.status_code == 200
    assert ack.json()["can_create_new_request"] is True


def test_simple_approval_without_body(client, unit, admin_headers):
    request_id = client.post("/api/rental-requests/", json=request_payload(unit, "walkin@example.com")).json()["id"]

    approved = client.put(f"/api/rental-requests/{request_id}/approve", headers=admin_headers)

    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"
    assert client.get(f"/api/units/{unit.id}").json()["status"] == "AVAILABLE"


def test_open_intake_links_bearer_account(client, unit, other_unit, applicant, applicant_headers):
    linked = client.post("/api/rental-requests/", json=request_payload(unit), headers=applicant_headers)
    assert linked.status_code == 201
    assert linked.json()["user_id"] == applicant.id

    mismatched = client.post(
        "/api/rental-requests/", json=request_payload(other_unit, "walkin@example.com"), headers=applicant_headers
    )
    assert mismatched.status_code == 400

    bad_token = client.post(
        "/api/rental-requests/",
        json=request_payload(other_unit, "walkin@example.com"),
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert bad_token.status_code == 401


def test_admin_routes_require_admin(client, applicant_headers):
    assert client.get("/api/leases/").status_code == 401
    assert client.get("/api/leases/", headers=applicant_headers).status_code == 403
    assert client.post("/api/leases/expire-leases", headers=applicant_headers).status_code == 403


def test_error_mapping(client, admin_headers, unit, tenant):
    missing = client.get("/api/leases/999", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "detail": "Lease not found with id: 999", "error_code": "not_found"}

    inverted = client.post(
        "/api/leases/",
        json={
            "unit_id": unit.id,
            "tenant_id": tenant.id,
            "start_date": "2025-06-01",
            "end_date": "2025-05-01",
            "rent_amount": "5000",
        },
        headers=admin_headers,
    )
    assert inverted.status_code == 422
    assert inverted.json()["success"] is False


def test_unit_status_endpoint_refuses_occupied(client, unit, admin_headers):
    response = client.patch(f"/api/units/{unit.id}/status", json={"status": "OCCUPIED"}, headers=admin_headers)

    assert response.status_code == 409


def test_invoice_endpoints(client, unit, tenant, admin_headers):
    lease = client.post(
        "/api/leases/",
        json={
            "unit_id": unit.id,
            "tenant_id": tenant.id,
            "start_date": "2025-01-01",
            "end_date": "2025-12-31",
            "rent_amount": "5000",
        },
        headers=admin_headers,
    ).json()

    invoice = client.post(
        "/api/invoices/",
        json={
            "lease_id": lease["id"],
            "due_date": "2025-01-05",
            "items": [{"payment_type": "RENT", "amount": "5000"}],
        },
        headers=admin_headers,
    )
    assert invoice.status_code == 201
    body = invoice.json()
    assert body["invoice_number"] == "INV-20250101-1"
    assert body["total_amount"] == 5000.0

    paid = client.patch(f"/api/invoices/{body['id']}/paid", headers=admin_headers)
    assert paid.json()["status"] == "PAID"
