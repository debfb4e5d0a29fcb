from backend.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from backend.app.models.lease import Lease, LeaseBillingSetting, LeaseTerm  # noqa: F401
from backend.app.models.charge_type import ChargeType  # noqa: F401
from backend.app.models.recurring_charge import LeaseRecurringCharge  # noqa: F401
from backend.app.models.utility import UtilityRatePlan, UtilityRateSlab, UtilityStatement  # noqa: F401
from backend.app.models.invoice import Invoice  # noqa: F401
from backend.app.models.invoice_line import InvoiceLine  # noqa: F401
from backend.app.models.invoice_run import InvoiceRun, InvoiceRunItem  # noqa: F401
from backend.app.models.file_metadata import FileMetadata  # noqa: F401
from backend.app.models.payment import Payment, PaymentAttachment  # noqa: F401
from backend.app.models.payment_confirmation import PaymentConfirmationRequest  # noqa: F401
from backend.app.models.credit_note import CreditNote, CreditNoteLine  # noqa: F401
from backend.app.models.document_sequence import DocumentSequence  # noqa: F401
