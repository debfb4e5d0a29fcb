"""Enumerations shared by billing models and schemas."""

import enum

from sqlalchemy import Enum as SAEnum


class LeaseStatus(str, enum.Enum):
    DRAFT = "Draft"
    ACTIVE = "Active"
    NOTICE_GIVEN = "NoticeGiven"
    ENDED = "Ended"
    CANCELLED = "Cancelled"


class ProrationMethod(str, enum.Enum):
    ACTUAL_DAYS_IN_MONTH = "ActualDaysInMonth"
    THIRTY_DAY_MONTH = "ThirtyDayMonth"


class BillingFrequency(str, enum.Enum):
    ONE_TIME = "OneTime"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"


class UtilityType(str, enum.Enum):
    ELECTRICITY = "Electricity"
    WATER = "Water"
    GAS = "Gas"


class ChargeTypeCode(str, enum.Enum):
    RENT = "RENT"
    MAINTENANCE = "MAINT"
    ELECTRICITY = "ELEC"
    WATER = "WATER"
    GAS = "GAS"
    PARKING = "PARKING"
    INTERNET = "INTERNET"
    LATE_FEE = "LATE_FEE"
    OTHER = "OTHER"


UTILITY_CHARGE_CODES = {
    UtilityType.ELECTRICITY: ChargeTypeCode.ELECTRICITY,
    UtilityType.WATER: ChargeTypeCode.WATER,
    UtilityType.GAS: ChargeTypeCode.GAS,
}


class InvoiceStatus(str, enum.Enum):
    DRAFT = "Draft"
    ISSUED = "Issued"
    PARTIALLY_PAID = "PartiallyPaid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    VOIDED = "Voided"
    CANCELLED = "Cancelled"


TERMINAL_INVOICE_STATUSES = {InvoiceStatus.VOIDED, InvoiceStatus.CANCELLED}
NON_PAYABLE_INVOICE_STATUSES = {InvoiceStatus.DRAFT, InvoiceStatus.VOIDED, InvoiceStatus.CANCELLED}
CREDITABLE_INVOICE_STATUSES = {
    InvoiceStatus.ISSUED,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID,
    InvoiceStatus.OVERDUE,
}


class InvoiceRunType(str, enum.Enum):
    MONTHLY_RENT = "MonthlyRent"
    UTILITY = "Utility"


class InvoiceRunStatus(str, enum.Enum):
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class PaymentType(str, enum.Enum):
    RENT = "Rent"
    DEPOSIT = "Deposit"
    UTILITY = "Utility"
    MAINTENANCE = "Maintenance"
    LATE_FEE = "LateFee"
    OTHER = "Other"


class PaymentMode(str, enum.Enum):
    CASH = "Cash"
    ONLINE = "Online"
    UPI = "UPI"
    BANK_TRANSFER = "BankTransfer"
    CHEQUE = "Cheque"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class PaymentConfirmationStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    REJECTED = "Rejected"


class CreditNoteReason(str, enum.Enum):
    BILLING_ERROR = "BillingError"
    DISCOUNT = "Discount"
    REFUND = "Refund"
    WAIVER = "Waiver"
    ADJUSTMENT = "Adjustment"
    OTHER = "Other"


class CreditNoteStatus(str, enum.Enum):
    DRAFT = "Draft"
    ISSUED = "Issued"


class SequenceKind(str, enum.Enum):
    INVOICE = "Invoice"
    CREDIT_NOTE = "CreditNote"


def db_enum(enum_cls):
    """Store an enum by its value (e.g. ``"Draft"``) in a VARCHAR column."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
