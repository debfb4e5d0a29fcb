import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient

from backend.app.core.dev_seed import ensure_system_charge_types
from backend.app.core.security import create_access_token
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.enums import LeaseStatus
from backend.app.models.lease import Lease, LeaseTerm


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_system_charge_types(db)
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


def auth_headers(org_id: int = 1, role: str = "Manager", user: str = "manager-1") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user, org_id=org_id, role=role)}"}


def create_lease(org_id: int = 1, rent: str = "1500", status=LeaseStatus.ACTIVE) -> int:
    db = SessionLocal()
    try:
        lease = Lease(org_id=org_id, lease_number=f"API-{org_id}", status=status, start_date=date(2024, 1, 1))
        lease.terms.append(LeaseTerm(effective_from=date(2024, 1, 1), monthly_rent=Decimal(rent)))
        db.add(lease)
        db.commit()
        return lease.id
    finally:
        db.close()


def generate(client: TestClient, lease_id: int, headers=None):
    return client.post(
        "/invoices/generate",
        json={"lease_id": lease_id, "billing_period_start": "2024-06-01", "billing_period_end": "2024-06-30"},
        headers=headers or auth_headers(),
    )


def test_generate_issue_and_void_invoice():
    client = TestClient(app)
    lease_id = create_lease()

    resp = generate(client, lease_id)
    assert resp.status_code == 200
    data = resp.json()
    assert data["was_updated"] is False
    invoice = data["invoice"]
    assert invoice["status"] == "Draft"
    assert invoice["invoice_number"] == "INV-000001"
    assert Decimal(invoice["total_amount"]) == Decimal("1500.00")
    assert len(invoice["lines"]) == 1

    again = generate(client, lease_id)
    assert again.json()["was_updated"] is True

    issued = client.post(f"/invoices/{invoice['id']}/issue", json={}, headers=auth_headers())
    assert issued.status_code == 200
    assert issued.json()["status"] == "Issued"

    reissue = client.post(f"/invoices/{invoice['id']}/issue", json={}, headers=auth_headers())
    assert reissue.status_code == 409
    assert reissue.json()["kind"] == "InvalidState"

    voided = client.post(f"/invoices/{invoice['id']}/void", json={"reason": "Wrong tenant"}, headers=auth_headers())
    assert voided.status_code == 200
    assert voided.json()["status"] == "Voided"


def test_stale_row_version_returns_conflict():
    client = TestClient(app)
    invoice = generate(client, create_lease()).json()["invoice"]
    resp = client.post(
        f"/invoices/{invoice['id']}/issue",
        json={"row_version": invoice["row_version"] + 5},
        headers=auth_headers(),
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["kind"] == "Conflict"
    assert body["retryable"] is True


def test_generate_errors_map_to_status_codes():
    client = TestClient(app)
    assert generate(client, 9999).status_code == 404

    inactive = create_lease(status=LeaseStatus.DRAFT)
    resp = generate(client, inactive)
    assert resp.status_code == 409
    assert "not active" in resp.json()["detail"]

    resp = client.post(
        "/invoices/generate",
        json={"lease_id": inactive, "billing_period_start": "2024-06-30", "billing_period_end": "2024-06-01"},
        headers=auth_headers(),
    )
    assert resp.status_code == 400


def test_requires_token_and_manager_role():
    client = TestClient(app)
    lease_id = create_lease()
    resp = client.post(
        "/invoices/generate",
        json={"lease_id": lease_id, "billing_period_start": "2024-06-01", "billing_period_end": "2024-06-30"},
    )
    assert resp.status_code == 401
    assert generate(client, lease_id, headers=auth_headers(role="Tenant")).status_code == 403


def test_invoices_are_org_scoped():
    client = TestClient(app)
    invoice = generate(client, create_lease(org_id=1)).json()["invoice"]

    other_org = auth_headers(org_id=2, user="manager-2")
    assert client.get(f"/invoices/{invoice['id']}", headers=other_org).status_code == 403
    assert client.get("/invoices/", headers=other_org).json() == []

    own = client.get("/invoices/", headers=auth_headers())
    assert own.status_code == 200
    assert [item["id"] for item in own.json()] == [invoice["id"]]


def test_monthly_rent_run_endpoint():
    client = TestClient(app)
    create_lease(org_id=1)
    resp = client.post(
        "/invoice-runs/monthly-rent",
        json={"billing_period_start": "2024-07-01", "billing_period_end": "2024-07-31"},
        headers=auth_headers(),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["success_count"] == 1
    assert data["failure_count"] == 0

    run = client.get(f"/invoice-runs/{data['invoice_run']['id']}", headers=auth_headers())
    assert run.status_code == 200
    assert run.json()["status"] == "Completed"
