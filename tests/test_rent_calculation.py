import pytest
from datetime import date
from decimal import Decimal

from backend.app.core.errors import InvalidArgumentError, NotFoundError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.enums import LeaseStatus, ProrationMethod
from backend.app.models.lease import Lease, LeaseTerm
from backend.app.services.rent_calculation import calculate_rent, calculate_rent_for_lease


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _term(effective_from, effective_to, rent):
    return LeaseTerm(effective_from=effective_from, effective_to=effective_to, monthly_rent=Decimal(rent))


def test_single_term_covering_period_bills_full_month():
    result = calculate_rent(
        [_term(date(2023, 6, 1), None, "25000")],
        date(2024, 3, 1),
        date(2024, 3, 31),
        ProrationMethod.ACTUAL_DAYS_IN_MONTH,
    )
    assert result.total_amount == Decimal("25000.00")
    assert len(result.line_items) == 1
    item = result.line_items[0]
    assert item.is_prorated is False
    assert item.description == "Rent for Mar 2024"


def test_rent_change_mid_month_produces_two_prorated_lines():
    terms = [
        _term(date(2024, 4, 16), None, "3100"),
        _term(date(2023, 1, 1), date(2024, 4, 15), "3000"),
    ]
    result = calculate_rent(terms, date(2024, 4, 1), date(2024, 4, 30), ProrationMethod.ACTUAL_DAYS_IN_MONTH)
    assert [item.full_monthly_rent for item in result.line_items] == [Decimal("3000"), Decimal("3100")]
    assert result.line_items[0].amount == Decimal("1500.00")
    assert result.line_items[1].amount == Decimal("1550.00")
    assert result.total_amount == Decimal("3050.00")
    assert all(item.is_prorated for item in result.line_items)
    assert result.line_items[0].description == "Rent for Apr 01 - Apr 15, 2024 (Prorated)"


def test_terms_outside_period_are_ignored():
    result = calculate_rent(
        [_term(date(2025, 1, 1), None, "1000")],
        date(2024, 3, 1),
        date(2024, 3, 31),
        ProrationMethod.ACTUAL_DAYS_IN_MONTH,
    )
    assert result.total_amount == Decimal("0.00")
    assert result.line_items == []


def test_inverted_period_is_invalid():
    with pytest.raises(InvalidArgumentError):
        calculate_rent([], date(2024, 3, 31), date(2024, 3, 1), ProrationMethod.ACTUAL_DAYS_IN_MONTH)


def test_calculate_rent_for_lease_skips_deleted_terms():
    db = SessionLocal()
    try:
        lease = Lease(org_id=1, status=LeaseStatus.ACTIVE, start_date=date(2024, 1, 1))
        lease.terms.append(_term(date(2024, 1, 1), None, "1000"))
        deleted = _term(date(2024, 1, 1), None, "9999")
        deleted.is_deleted = True
        lease.terms.append(deleted)
        db.add(lease)
        db.commit()

        result = calculate_rent_for_lease(db, lease.id, date(2024, 2, 1), date(2024, 2, 29), ProrationMethod.ACTUAL_DAYS_IN_MONTH)
        assert result.total_amount == Decimal("1000.00")
    finally:
        db.close()


def test_calculate_rent_for_missing_lease_is_not_found():
    db = SessionLocal()
    try:
        with pytest.raises(NotFoundError):
            calculate_rent_for_lease(db, 404, date(2024, 2, 1), date(2024, 2, 29), ProrationMethod.ACTUAL_DAYS_IN_MONTH)
    finally:
        db.close()
