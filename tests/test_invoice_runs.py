import logging
import threading

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from backend.app.core.dev_seed import ensure_system_charge_types
from backend.app.core.errors import InvalidArgumentError, InvalidStateError, OperationCancelledError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.enums import InvoiceRunStatus, InvoiceRunType, LeaseStatus, UtilityType
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_run import InvoiceRun
from backend.app.models.lease import Lease, LeaseTerm
from backend.app.models.utility import UtilityStatement
from backend.app.services import invoice_runs
from backend.app.services.invoice_runs import (
    GENERIC_LEASE_FAILURE,
    GENERIC_RUN_FAILURE,
    execute_monthly_rent_run,
    execute_utility_run,
    get_invoice_run,
)

APRIL = (date(2024, 4, 1), date(2024, 4, 30))


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


def _create_lease(db, number, org_id=1, status=LeaseStatus.ACTIVE, rent="1000"):
    lease = Lease(org_id=org_id, lease_number=number, status=status, start_date=date(2024, 1, 1))
    lease.terms.append(LeaseTerm(effective_from=date(2024, 1, 1), monthly_rent=Decimal(rent)))
    db.add(lease)
    db.commit()
    return lease


def test_monthly_rent_run_generates_one_invoice_per_active_lease():
    db = SessionLocal()
    try:
        leases = [_create_lease(db, f"A-{i}") for i in range(3)]
        _create_lease(db, "ENDED", status=LeaseStatus.ENDED)
        _create_lease(db, "OTHER-ORG", org_id=2)

        result = execute_monthly_rent_run(db, 1, *APRIL, actor="manager-1")
        assert result.is_success is True
        assert (result.total_leases, result.success_count, result.failure_count) == (3, 3, 0)

        run = result.invoice_run
        assert run.status == InvoiceRunStatus.COMPLETED
        assert run.run_type == InvoiceRunType.MONTHLY_RENT
        assert run.run_number.startswith("RUN-202404-")
        assert run.error_message is None
        assert sorted(item.lease_id for item in run.items) == sorted(lease.id for lease in leases)
        assert all(item.is_success and item.invoice_id for item in run.items)
        assert db.query(Invoice).count() == 3
    finally:
        db.close()


def test_failing_lease_does_not_stop_the_run(monkeypatch):
    db = SessionLocal()
    try:
        leases = [_create_lease(db, f"B-{i}") for i in range(4)]
        failing_id = leases[1].id
        real_generate = invoice_runs.generate_invoice

        def flaky_generate(db, lease_id, *args, **kwargs):
            if lease_id == failing_id:
                raise InvalidStateError("RENT charge type was not found.")
            return real_generate(db, lease_id, *args, **kwargs)

        monkeypatch.setattr(invoice_runs, "generate_invoice", flaky_generate)
        result = execute_monthly_rent_run(db, 1, *APRIL)

        assert result.is_success is True
        assert (result.total_leases, result.success_count, result.failure_count) == (4, 3, 1)
        assert result.error_messages == ["Lease B-1: RENT charge type was not found."]
        failed = [item for item in result.invoice_run.items if not item.is_success]
        assert [item.lease_id for item in failed] == [failing_id]
        assert failed[0].error_message == "RENT charge type was not found."
        assert failed[0].invoice_id is None
        assert db.query(Invoice).count() == 3

        stored = get_invoice_run(db, result.invoice_run.id)
        assert stored.failure_count == 1
        assert "Lease B-1" in stored.error_message
    finally:
        db.close()


def test_rerun_updates_existing_drafts():
    db = SessionLocal()
    try:
        _create_lease(db, "C-1")
        execute_monthly_rent_run(db, 1, *APRIL)
        second = execute_monthly_rent_run(db, 1, *APRIL)
        assert second.success_count == 1
        assert second.invoice_run.items[0].was_updated is True
        assert db.query(Invoice).count() == 1
        assert db.query(InvoiceRun).count() == 2
    finally:
        db.close()


def test_run_without_eligible_leases_completes_with_note():
    db = SessionLocal()
    try:
        result = execute_monthly_rent_run(db, 1, *APRIL)
        assert result.is_success is True
        assert result.total_leases == 0
        assert result.invoice_run.notes == "No eligible leases found"
    finally:
        db.close()


def test_utility_run_only_bills_leases_with_pending_statements():
    db = SessionLocal()
    try:
        with_statement = _create_lease(db, "U-1")
        _create_lease(db, "U-2")
        db.add(
            UtilityStatement(
                lease_id=with_statement.id,
                utility_type=UtilityType.ELECTRICITY,
                billing_period_start=APRIL[0],
                billing_period_end=APRIL[1],
                is_meter_based=True,
                units_consumed=Decimal("100"),
                rate_per_unit=Decimal("8"),
            )
        )
        db.commit()

        result = execute_utility_run(db, 1, *APRIL)
        assert result.total_leases == 1
        assert result.success_count == 1
        assert result.invoice_run.run_type == InvoiceRunType.UTILITY
        assert result.invoice_run.items[0].lease_id == with_statement.id
    finally:
        db.close()


def test_cancelled_run_saves_nothing(monkeypatch):
    db = SessionLocal()
    try:
        _create_lease(db, "D-1")
        _create_lease(db, "D-2")
        cancel = threading.Event()
        real_generate = invoice_runs.generate_invoice

        def generate_then_cancel(*args, **kwargs):
            result = real_generate(*args, **kwargs)
            cancel.set()
            return result

        monkeypatch.setattr(invoice_runs, "generate_invoice", generate_then_cancel)
        with pytest.raises(OperationCancelledError):
            execute_monthly_rent_run(db, 1, *APRIL, cancel_event=cancel)

        assert db.query(Invoice).count() == 0
        assert db.query(InvoiceRun).count() == 0
    finally:
        db.close()


def test_unexpected_failure_returns_generic_message(monkeypatch):
    db = SessionLocal()
    try:
        _create_lease(db, "E-1")

        def broken_loader(db, org_id):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(invoice_runs, "eligible_rent_leases", broken_loader)
        result = execute_monthly_rent_run(db, 1, *APRIL)
        assert result.is_success is False
        assert result.error_messages == [GENERIC_RUN_FAILURE]
        assert result.invoice_run is None
    finally:
        db.close()


def test_database_error_for_one_lease_is_not_leaked(monkeypatch, caplog):
    db = SessionLocal()
    try:
        leases = [_create_lease(db, f"F-{i}") for i in range(2)]
        failing_id = leases[0].id
        real_generate = invoice_runs.generate_invoice

        def generate_with_db_error(db, lease_id, *args, **kwargs):
            if lease_id == failing_id:
                raise OperationalError("SELECT secret_col FROM vault WHERE key = ?", ("s3cr3t",), Exception("disk I/O"))
            return real_generate(db, lease_id, *args, **kwargs)

        monkeypatch.setattr(invoice_runs, "generate_invoice", generate_with_db_error)
        with caplog.at_level(logging.ERROR, logger="backend.app.services.invoice_runs"):
            result = execute_monthly_rent_run(db, 1, *APRIL)

        assert result.is_success is True
        assert (result.success_count, result.failure_count) == (1, 1)
        assert result.error_messages == [f"Lease F-0: {GENERIC_LEASE_FAILURE}"]
        failed = [item for item in result.invoice_run.items if not item.is_success]
        assert failed[0].error_message == GENERIC_LEASE_FAILURE
        assert "s3cr3t" not in result.invoice_run.error_message
        assert "SELECT" not in result.invoice_run.error_message

        crash_records = [record for record in caplog.records if record.levelno == logging.ERROR]
        assert len(crash_records) == 1
        assert crash_records[0].exc_info is not None
        assert isinstance(crash_records[0].exc_info[1], OperationalError)
    finally:
        db.close()


def test_inverted_period_is_rejected():
    db = SessionLocal()
    try:
        with pytest.raises(InvalidArgumentError):
            execute_monthly_rent_run(db, 1, APRIL[1], APRIL[0])
    finally:
        db.close()
