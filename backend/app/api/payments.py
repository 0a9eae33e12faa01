"""Payment ledger listing across invoices."""

from datetime import date
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.db.session import get_db
from backend.app.models.payment import Payment, PaymentMethod
from backend.app.schemas.payment import PaymentRead

router = APIRouter(prefix="/api/payments", tags=["payments"])

PAYMENT_SORT_COLUMNS = {
    "paid_on": Payment.paid_on,
    "amount": Payment.amount,
    "id": Payment.id,
}


@router.get("", response_model=List[PaymentRead])
def list_payments(
    invoice_id: int | None = None,
    method: PaymentMethod | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    skip: int = 0,
    limit: int = 50,
    sort_by: str = "paid_on",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
):
    if sort_by not in PAYMENT_SORT_COLUMNS:
        raise HTTPException(status_code=400, detail="Invalid sort_by field")
    direction = (sort_order or "desc").lower()
    if direction not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="Invalid sort_order value")
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise ValidationError("min_amount cannot exceed max_amount")
    if from_date is not None and to_date is not None and from_date > to_date:
        raise ValidationError("from_date cannot be after to_date")

    filters = []
    if invoice_id is not None:
        filters.append(Payment.invoice_id == invoice_id)
    if method is not None:
        filters.append(Payment.method == method.value)
    if min_amount is not None:
        filters.append(Payment.amount >= min_amount)
    if max_amount is not None:
        filters.append(Payment.amount <= max_amount)
    if from_date is not None:
        filters.append(Payment.paid_on >= from_date)
    if to_date is not None:
        filters.append(Payment.paid_on <= to_date)

    column = PAYMENT_SORT_COLUMNS[sort_by]
    ordering = (column.desc(), Payment.id.desc()) if direction == "desc" else (column.asc(), Payment.id.asc())
    return db.query(Payment).filter(*filters).order_by(*ordering).offset(skip).limit(limit).all()
