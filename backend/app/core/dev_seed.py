from decimal import Decimal

from sqlalchemy.orm import Session

from backend.app.models.charge_type import ChargeType
from backend.app.models.enums import ChargeTypeCode

SYSTEM_CHARGE_TYPES = [
    (ChargeTypeCode.RENT, "Rent", False),
    (ChargeTypeCode.MAINTENANCE, "Maintenance", True),
    (ChargeTypeCode.ELECTRICITY, "Electricity", False),
    (ChargeTypeCode.WATER, "Water", False),
    (ChargeTypeCode.GAS, "Gas", False),
    (ChargeTypeCode.PARKING, "Parking", True),
    (ChargeTypeCode.INTERNET, "Internet", True),
    (ChargeTypeCode.LATE_FEE, "Late Fee", False),
    (ChargeTypeCode.OTHER, "Other", False),
]


def ensure_system_charge_types(db: Session) -> int:
    """
    Create the system-defined charge types shared by every organization.
    Existing rows are left untouched; returns how many were created.
    """
    existing = {
        code
        for (code,) in db.query(ChargeType.code).filter(ChargeType.org_id.is_(None)).all()
    }
    created = 0
    for code, name, is_taxable in SYSTEM_CHARGE_TYPES:
        if code.value in existing:
            continue
        db.add(
            ChargeType(
                org_id=None,
                code=code.value,
                name=name,
                is_system_defined=True,
                is_active=True,
                is_taxable=is_taxable,
                default_tax_rate=Decimal("18.00") if is_taxable else Decimal("0.00"),
                created_by="System",
            )
        )
        created += 1

    if created:
        db.commit()
    return created
