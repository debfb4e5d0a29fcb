"""Billing service utilities shared by generation, payments and credit notes."""

from decimal import Decimal
from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.errors import ConflictError, InvalidStateError, NotFoundError
from backend.app.models.charge_type import ChargeType
from backend.app.models.enums import NON_PAYABLE_INVOICE_STATUSES, InvoiceStatus, PaymentStatus
from backend.app.models.invoice import Invoice
from backend.app.models.payment import Payment
from backend.app.services.proration import quantize_money, to_decimal

SYSTEM_ACTOR = "System"


def resolve_actor(actor: str | None) -> str:
    return actor or SYSTEM_ACTOR


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.not_deleted()).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} was not found.")
    return invoice


def check_row_version(entity, expected_row_version: int | None, label: str) -> None:
    """Fail fast when the caller edited a copy older than the stored row."""
    if expected_row_version is not None and entity.row_version != expected_row_version:
        raise ConflictError(f"{label} was modified by another process. Please retry.")


def commit_or_conflict(db: Session, label: str, commit: bool = True) -> None:
    """Flush (and optionally commit), turning a row-version mismatch into ConflictError.

    With ``commit=False`` the caller owns the transaction and its rollback.
    """
    try:
        if commit:
            db.commit()
        else:
            db.flush()
    except StaleDataError as exc:
        if commit:
            db.rollback()
        raise ConflictError(f"{label} was modified by another process. Please retry.") from exc


def get_charge_type_by_code(db: Session, code, org_id: int) -> ChargeType | None:
    """Organization-specific charge type first, then the system-defined one."""
    code_value = getattr(code, "value", code)
    return (
        db.query(ChargeType)
        .filter(
            ChargeType.code == code_value,
            ChargeType.is_active.is_(True),
            ChargeType.not_deleted(),
            or_(ChargeType.org_id == org_id, ChargeType.org_id.is_(None)),
        )
        .order_by(ChargeType.org_id.is_(None))
        .first()
    )


def calculate_line_tax(amount: Decimal, charge_type: ChargeType | None) -> tuple[Decimal, Decimal]:
    """Return (tax_rate, tax_amount); tax rates are percentages."""
    if charge_type is None or not charge_type.is_taxable:
        return Decimal("0.00"), Decimal("0.00")
    rate = to_decimal(charge_type.default_tax_rate)
    return rate, quantize_money(amount * rate / Decimal("100"))


def recalculate_invoice_totals(invoice: Invoice) -> None:
    subtotal = sum((to_decimal(line.amount) for line in invoice.lines), Decimal("0.00"))
    tax = sum((to_decimal(line.tax_amount) for line in invoice.lines), Decimal("0.00"))
    invoice.subtotal = quantize_money(subtotal)
    invoice.tax_amount = quantize_money(tax)
    invoice.total_amount = invoice.subtotal + invoice.tax_amount
    invoice.paid_amount = to_decimal(invoice.paid_amount)
    invoice.balance_amount = invoice.total_amount - invoice.paid_amount


def sum_completed_payments(db: Session, invoice_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.invoice_id == invoice_id, Payment.status == PaymentStatus.COMPLETED)
        .scalar()
    )
    return quantize_money(to_decimal(total))


def current_balance(db: Session, invoice: Invoice) -> Decimal:
    return to_decimal(invoice.total_amount) - sum_completed_payments(db, invoice.id)


def ensure_invoice_accepts_payments(invoice: Invoice) -> None:
    status = InvoiceStatus(invoice.status)
    if status in NON_PAYABLE_INVOICE_STATUSES:
        raise InvalidStateError(f"Invoice {invoice.invoice_number} is {status.value} and cannot accept payments.")


def determine_invoice_status(invoice: Invoice) -> InvoiceStatus:
    balance = to_decimal(invoice.balance_amount)
    total = to_decimal(invoice.total_amount)
    if balance <= 0:
        return InvoiceStatus.PAID
    if balance < total:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus(invoice.status)


def apply_payment_to_invoice(invoice: Invoice, amount: Decimal, now: datetime, already_paid: Decimal | None = None) -> None:
    """Apply a Completed payment to the invoice's paid, balance and status fields."""
    paid = to_decimal(invoice.paid_amount if already_paid is None else already_paid)
    invoice.paid_amount = paid + to_decimal(amount)
    invoice.balance_amount = to_decimal(invoice.total_amount) - invoice.paid_amount
    invoice.status = determine_invoice_status(invoice)
    if invoice.status == InvoiceStatus.PAID:
        invoice.paid_at = now
