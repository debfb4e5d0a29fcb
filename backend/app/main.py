# RentLedger billing backend entrypoint.

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.core.settings import get_settings
from backend.app.core.errors import BillingError, ErrorKind
from backend.app.core.logging import configure_logging
from backend.app.api import invoices
from backend.app.api import invoice_runs
from backend.app.api import payments
from backend.app.api import payment_confirmations
from backend.app.api import credit_notes
from backend.app.api import files
from backend.app.core.dev_seed import ensure_system_charge_types
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(invoices.router)
app.include_router(invoice_runs.router)
app.include_router(payments.router)
app.include_router(payment_confirmations.router)
app.include_router(credit_notes.router)
app.include_router(files.router)

ERROR_STATUS_CODES = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 403,
}


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(exc.kind, 400),
        content={"detail": exc.message, "kind": exc.kind.value, "retryable": exc.retryable},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


@app.get("/")
def read_root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def seed_system_charge_types():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = ensure_system_charge_types(db)
        if created:
            logger.info("Seeded %s system charge types", created)
    finally:
        db.close()
