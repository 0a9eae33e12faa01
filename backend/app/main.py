# CaseBill backend entrypoint: matter billing, invoices and payments.

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.core.errors import BillingError
from backend.app.core.logging import configure_logging
from backend.app.core.settings import get_settings
from backend.app.api import billing
from backend.app.api import clients
from backend.app.api import expenses
from backend.app.api import invoices
from backend.app.api import matters
from backend.app.api import payments
from backend.app.api import time_entries
from backend.app.db.base import Base
from backend.app.db.session import engine

configure_logging()
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title=settings.app_name, version=settings.api_version, lifespan=lifespan)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(clients.router)
app.include_router(matters.router)
app.include_router(time_entries.router)
app.include_router(expenses.router)
app.include_router(invoices.router)
app.include_router(payments.router)
app.include_router(billing.router)


@app.exception_handler(BillingError)
async def handle_billing_error(request: Request, exc: BillingError):
    logger.info("%s %s rejected with %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.get("/")
def read_root():
    return {"app": "CaseBill backend", "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}