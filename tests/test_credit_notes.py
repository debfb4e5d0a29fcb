import pytest
from datetime import date
from decimal import Decimal

from backend.app.core.dev_seed import ensure_system_charge_types
from backend.app.core.errors import ConflictError, InvalidArgumentError, InvalidStateError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.charge_type import ChargeType
from backend.app.models.credit_note import CreditNote
from backend.app.models.enums import BillingFrequency, CreditNoteReason, CreditNoteStatus, LeaseStatus
from backend.app.models.lease import Lease, LeaseTerm
from backend.app.models.recurring_charge import LeaseRecurringCharge
from backend.app.services import credit_notes
from backend.app.services.credit_notes import CreditNoteLineRequest, create_credit_note, issue_credit_note
from backend.app.services.invoice_generation import generate_invoice
from backend.app.services.invoice_management import issue_invoice


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


def _create_invoice(db, issue=True):
    lease = Lease(org_id=1, lease_number="CN-LEASE", status=LeaseStatus.ACTIVE, start_date=date(2024, 1, 1))
    lease.terms.append(LeaseTerm(effective_from=date(2024, 1, 1), monthly_rent=Decimal("1000")))
    db.add(lease)
    db.commit()
    parking = db.query(ChargeType).filter(ChargeType.code == "PARKING").one()
    db.add(
        LeaseRecurringCharge(
            lease_id=lease.id,
            charge_type_id=parking.id,
            description="Parking",
            amount=Decimal("500"),
            frequency=BillingFrequency.MONTHLY,
            start_date=date(2024, 1, 1),
        )
    )
    db.commit()
    invoice = generate_invoice(db, lease.id, date(2024, 2, 1), date(2024, 2, 29)).invoice
    if issue:
        issue_invoice(db, invoice.id)
    return invoice


def test_create_credit_note_stores_negative_lines_with_proportional_tax():
    db = SessionLocal()
    try:
        invoice = _create_invoice(db)
        rent_line, parking_line = invoice.lines
        assert parking_line.total_amount == Decimal("590.00")

        credit_note = create_credit_note(
            db,
            invoice.id,
            CreditNoteReason.DISCOUNT,
            [
                CreditNoteLineRequest(rent_line.id, Decimal("100")),
                CreditNoteLineRequest(parking_line.id, Decimal("118"), notes="Spot unavailable"),
            ],
            actor="manager-1",
        )
        assert credit_note.status == CreditNoteStatus.DRAFT
        assert credit_note.credit_note_number is None
        rent_credit, parking_credit = credit_note.lines
        assert rent_credit.total_amount == Decimal("-100.00")
        assert rent_credit.tax_amount == Decimal("0.00")
        assert parking_credit.amount == Decimal("-100.00")
        assert parking_credit.tax_amount == Decimal("-18.00")
        assert parking_credit.total_amount == Decimal("-118.00")
        assert parking_credit.notes == "Spot unavailable"
        assert credit_note.total_amount == Decimal("-218.00")
    finally:
        db.close()


def test_credit_cannot_exceed_remaining_line_amount():
    db = SessionLocal()
    try:
        invoice = _create_invoice(db)
        rent_line = invoice.lines[0]
        create_credit_note(db, invoice.id, "Waiver", [CreditNoteLineRequest(rent_line.id, Decimal("600"))])

        with pytest.raises(InvalidArgumentError) as excinfo:
            create_credit_note(db, invoice.id, "Waiver", [CreditNoteLineRequest(rent_line.id, Decimal("400.01"))])
        assert "400.00" in excinfo.value.message

        # Two lines of one request share the same remaining amount
        with pytest.raises(InvalidArgumentError):
            create_credit_note(
                db,
                invoice.id,
                "Waiver",
                [CreditNoteLineRequest(rent_line.id, Decimal("300")), CreditNoteLineRequest(rent_line.id, Decimal("300"))],
            )
        create_credit_note(db, invoice.id, "Waiver", [CreditNoteLineRequest(rent_line.id, Decimal("400"))])
    finally:
        db.close()


def test_concurrent_credit_notes_cannot_over_credit_a_line(monkeypatch):
    db = SessionLocal()
    other = SessionLocal()
    try:
        invoice = _create_invoice(db)
        invoice_id = invoice.id
        rent_line_id = invoice.lines[0].id
        real_credited = credit_notes.credited_amounts
        raced = []

        def credited_then_overtaken(session, line_ids):
            amounts = real_credited(session, line_ids)
            if session is db and not raced:
                raced.append(True)
                # End our read transaction so the other writer can commit first
                session.commit()
                create_credit_note(other, invoice_id, "Waiver", [CreditNoteLineRequest(rent_line_id, Decimal("700"))])
            return amounts

        monkeypatch.setattr(credit_notes, "credited_amounts", credited_then_overtaken)
        with pytest.raises(ConflictError):
            create_credit_note(db, invoice_id, "Waiver", [CreditNoteLineRequest(rent_line_id, Decimal("700"))])

        assert raced == [True]
        assert db.query(CreditNote).count() == 1
    finally:
        other.close()
        db.close()


def test_credit_note_validation_errors():
    db = SessionLocal()
    try:
        draft = _create_invoice(db, issue=False)
        with pytest.raises(InvalidStateError):
            create_credit_note(db, draft.id, "Discount", [CreditNoteLineRequest(draft.lines[0].id, Decimal("10"))])
        issue_invoice(db, draft.id)
        with pytest.raises(InvalidArgumentError):
            create_credit_note(db, draft.id, "Discount", [])
        with pytest.raises(InvalidArgumentError):
            create_credit_note(db, draft.id, "Goodwill", [CreditNoteLineRequest(draft.lines[0].id, Decimal("10"))])
        with pytest.raises(InvalidArgumentError):
            create_credit_note(db, draft.id, "Discount", [CreditNoteLineRequest(9999, Decimal("10"))])
        with pytest.raises(InvalidArgumentError):
            create_credit_note(db, draft.id, "Discount", [CreditNoteLineRequest(draft.lines[0].id, Decimal("0"))])
    finally:
        db.close()


def test_issue_credit_note_assigns_number_once():
    db = SessionLocal()
    try:
        invoice = _create_invoice(db)
        first = create_credit_note(db, invoice.id, "Adjustment", [CreditNoteLineRequest(invoice.lines[0].id, Decimal("50"))])
        second = create_credit_note(db, invoice.id, "Adjustment", [CreditNoteLineRequest(invoice.lines[0].id, Decimal("50"))])

        issued = issue_credit_note(db, second.id, actor="manager-1")
        assert issued.status == CreditNoteStatus.ISSUED
        assert issued.credit_note_number == "CN-000001"
        assert issued.issued_at is not None
        assert issue_credit_note(db, first.id).credit_note_number == "CN-000002"

        with pytest.raises(InvalidStateError):
            issue_credit_note(db, second.id)
    finally:
        db.close()
