import pytest
from decimal import Decimal
from datetime import date, datetime, timezone

from backend.app.core.dev_seed import ensure_system_charge_types
from backend.app.core.errors import InvalidStateError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.charge_type import ChargeType
from backend.app.models.enums import InvoiceStatus
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_line import InvoiceLine
from backend.app.services.billing import (
    apply_payment_to_invoice,
    calculate_line_tax,
    determine_invoice_status,
    ensure_invoice_accepts_payments,
    get_charge_type_by_code,
    recalculate_invoice_totals,
    resolve_actor,
)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _invoice(total="1000.00", paid="0.00", status=InvoiceStatus.ISSUED):
    return Invoice(
        invoice_number="INV-000009",
        status=status,
        total_amount=Decimal(total),
        paid_amount=Decimal(paid),
        balance_amount=Decimal(total) - Decimal(paid),
    )


def test_calculate_line_tax_uses_percentage_rate():
    taxable = ChargeType(code="PARKING", name="Parking", is_taxable=True, default_tax_rate=Decimal("18.00"))
    exempt = ChargeType(code="RENT", name="Rent", is_taxable=False, default_tax_rate=Decimal("18.00"))
    assert calculate_line_tax(Decimal("333.33"), taxable) == (Decimal("18.00"), Decimal("60.00"))
    assert calculate_line_tax(Decimal("333.33"), exempt) == (Decimal("0.00"), Decimal("0.00"))
    assert calculate_line_tax(Decimal("10"), None) == (Decimal("0.00"), Decimal("0.00"))


def test_recalculate_invoice_totals():
    invoice = _invoice(paid="100.00")
    invoice.lines = [
        InvoiceLine(amount=Decimal("500.00"), tax_amount=Decimal("0.00"), total_amount=Decimal("500.00")),
        InvoiceLine(amount=Decimal("200.00"), tax_amount=Decimal("36.00"), total_amount=Decimal("236.00")),
    ]
    recalculate_invoice_totals(invoice)
    assert invoice.subtotal == Decimal("700.00")
    assert invoice.tax_amount == Decimal("36.00")
    assert invoice.total_amount == Decimal("736.00")
    assert invoice.balance_amount == Decimal("636.00")


def test_status_follows_balance():
    now = datetime(2024, 4, 1, tzinfo=timezone.utc)
    invoice = _invoice()
    apply_payment_to_invoice(invoice, Decimal("250.00"), now)
    assert invoice.status == InvoiceStatus.PARTIALLY_PAID
    assert invoice.balance_amount == Decimal("750.00")
    assert invoice.paid_at is None

    apply_payment_to_invoice(invoice, Decimal("750.00"), now)
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.paid_at == now
    assert determine_invoice_status(_invoice(status=InvoiceStatus.OVERDUE)) == InvoiceStatus.OVERDUE


@pytest.mark.parametrize("status", [InvoiceStatus.DRAFT, InvoiceStatus.VOIDED, InvoiceStatus.CANCELLED])
def test_non_payable_statuses(status):
    with pytest.raises(InvalidStateError):
        ensure_invoice_accepts_payments(_invoice(status=status))


def test_org_charge_type_overrides_system_type():
    db = SessionLocal()
    try:
        assert ensure_system_charge_types(db) == 9
        assert ensure_system_charge_types(db) == 0
        db.add(ChargeType(org_id=5, code="PARKING", name="Covered parking", is_taxable=False))
        db.commit()

        assert get_charge_type_by_code(db, "PARKING", 5).name == "Covered parking"
        assert get_charge_type_by_code(db, "PARKING", 6).org_id is None
    finally:
        db.close()


def test_resolve_actor_defaults_to_system():
    assert resolve_actor(None) == "System"
    assert resolve_actor("manager-1") == "manager-1"
