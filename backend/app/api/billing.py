"""Billing dashboard endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.schemas.billing import BillingSummary
from backend.app.services.reports import get_billing_summary

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.get("/summary", response_model=BillingSummary)
def read_billing_summary(db: Session = Depends(get_db)):
    return get_billing_summary(db)
