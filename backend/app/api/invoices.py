"""Invoice routes: creation from unbilled work, lifecycle and payments."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from backend.app.core.time import utc_today
from backend.app.db.session import get_db
from backend.app.models.invoice import CLOSED_STATUSES, Invoice
from backend.app.schemas.invoice import InvoiceCreate, InvoiceRead, InvoiceStatusUpdate, InvoiceUpdate
from backend.app.schemas.payment import PaymentCreate
from backend.app.services.billing import create_invoice_for_matter
from backend.app.services.invoice_workflow import (
    delete_invoice,
    display_status,
    get_invoice,
    is_overdue,
    record_payment,
    transition_invoice,
    update_invoice_details,
)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


def _to_read(invoice: Invoice) -> InvoiceRead:
    today = utc_today()
    return InvoiceRead.model_validate(invoice).model_copy(
        update={
            "display_status": display_status(invoice, today),
            "is_overdue": is_overdue(invoice, today),
        }
    )


@router.get("", response_model=List[InvoiceRead])
def list_invoices(
    status: str | None = None,
    matter_id: int | None = None,
    search: str | None = None,
    overdue: bool | None = None,
    skip: int = 0,
    limit: int = 50,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
):
    query = db.query(Invoice)
    if status:
        query = query.filter(Invoice.status == status)
    if matter_id:
        query = query.filter(Invoice.matter_id == matter_id)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(func.lower(Invoice.number).like(pattern), func.lower(Invoice.client_name).like(pattern)))
    if overdue is not None:
        closed = [s.value for s in CLOSED_STATUSES]
        overdue_clause = Invoice.status.notin_(closed) & (Invoice.due_date < utc_today())
        query = query.filter(overdue_clause if overdue else ~overdue_clause)

    supported_sort_fields = {
        "created_at": Invoice.created_at,
        "number": Invoice.number,
        "status": Invoice.status,
        "total_amount": Invoice.total_amount,
        "due_date": Invoice.due_date,
    }
    if sort_by not in supported_sort_fields:
        raise HTTPException(status_code=400, detail="Invalid sort_by value")
    sort_order_normalized = (sort_order or "desc").lower()
    if sort_order_normalized not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="Invalid sort_order value")
    sort_column = supported_sort_fields[sort_by]
    if sort_order_normalized == "asc":
        order_by_clause = [sort_column.asc(), Invoice.id.asc()]
    else:
        order_by_clause = [sort_column.desc(), Invoice.id.desc()]

    query = query.order_by(*order_by_clause).offset(skip).limit(limit)
    return [_to_read(invoice) for invoice in query.all()]


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(payload: InvoiceCreate, db: Session = Depends(get_db)):
    invoice = create_invoice_for_matter(
        db,
        matter_id=payload.matter_id,
        tax_rate_percent=payload.tax_rate_percent,
        discount_amount=payload.discount_amount,
        notes=payload.notes,
        terms=payload.terms,
        due_date=payload.due_date,
        fixed_items=payload.fixed_items,
    )
    return _to_read(invoice)


@router.get("/{invoice_id}", response_model=InvoiceRead)
def read_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return _to_read(get_invoice(db, invoice_id))


@router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice(invoice_id: int, payload: InvoiceUpdate, db: Session = Depends(get_db)):
    invoice = update_invoice_details(
        db, invoice_id, notes=payload.notes, terms=payload.terms, due_date=payload.due_date
    )
    return _to_read(invoice)


@router.patch("/{invoice_id}/status", response_model=InvoiceRead)
def update_invoice_status(invoice_id: int, payload: InvoiceStatusUpdate, db: Session = Depends(get_db)):
    invoice = transition_invoice(db, invoice_id, payload.status, confirm=payload.confirm)
    return _to_read(invoice)


@router.post("/{invoice_id}/payments", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_payment_for_invoice(invoice_id: int, payload: PaymentCreate, db: Session = Depends(get_db)):
    invoice = record_payment(
        db,
        invoice_id,
        amount=payload.amount,
        paid_on=payload.paid_on,
        method=payload.method,
        reference=payload.reference,
        notes=payload.notes,
    )
    return _to_read(invoice)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_invoice(invoice_id: int, db: Session = Depends(get_db)):
    delete_invoice(db, invoice_id)
