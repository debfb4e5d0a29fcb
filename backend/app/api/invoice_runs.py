"""Batch invoice run routes."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.app.core.errors import NotFoundError
from backend.app.db.session import get_db
from backend.app.dependencies.auth import Actor, ensure_same_org, require_manager
from backend.app.schemas.invoice_run import InvoiceRunRead, InvoiceRunRequest, InvoiceRunResultRead
from backend.app.services.invoice_runs import (
    InvoiceRunResult,
    execute_monthly_rent_run,
    execute_utility_run,
    get_invoice_run,
)

router = APIRouter(prefix="/invoice-runs", tags=["invoice-runs"])


def _to_response(result: InvoiceRunResult) -> InvoiceRunResultRead:
    if not result.is_success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error_messages[0])
    return InvoiceRunResultRead(
        is_success=result.is_success,
        invoice_run=InvoiceRunRead.model_validate(result.invoice_run),
        total_leases=result.total_leases,
        success_count=result.success_count,
        failure_count=result.failure_count,
        error_messages=result.error_messages,
    )


@router.post("/monthly-rent", response_model=InvoiceRunResultRead)
async def run_monthly_rent(
    payload: InvoiceRunRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    result = execute_monthly_rent_run(
        db,
        actor.org_id,
        payload.billing_period_start,
        payload.billing_period_end,
        payload.proration_method,
        actor=actor.user_id,
    )
    return _to_response(result)


@router.post("/utility", response_model=InvoiceRunResultRead)
async def run_utility(
    payload: InvoiceRunRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    result = execute_utility_run(
        db,
        actor.org_id,
        payload.billing_period_start,
        payload.billing_period_end,
        payload.proration_method,
        actor=actor.user_id,
    )
    return _to_response(result)


@router.get("/{run_id}", response_model=InvoiceRunRead)
async def get_run(
    run_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    run = get_invoice_run(db, run_id)
    if run is None:
        raise NotFoundError(f"Invoice run {run_id} was not found.")
    ensure_same_org(actor, run.org_id, "invoice run")
    return run
