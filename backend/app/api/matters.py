"""Matter endpoints, including the unbilled-work invoice preview."""

from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backend.app.core.errors import NotFound, ValidationError
from backend.app.db.session import get_db
from backend.app.models.client import Client
from backend.app.models.matter import Matter
from backend.app.schemas.invoice import InvoicePreviewRead, PreviewLineItem
from backend.app.schemas.matter import MatterCreate, MatterRead
from backend.app.services.billing import build_preview

router = APIRouter(prefix="/api/matters", tags=["matters"])


def _get_matter(db: Session, matter_id: int) -> Matter:
    matter = db.query(Matter).filter(Matter.id == matter_id).first()
    if not matter:
        raise NotFound("Matter not found")
    return matter


@router.post("", response_model=MatterRead, status_code=status.HTTP_201_CREATED)
def create_matter(payload: MatterCreate, db: Session = Depends(get_db)):
    if not payload.name.strip():
        raise ValidationError("Matter name is required")
    if not db.query(Client).filter(Client.id == payload.client_id).first():
        raise NotFound("Client not found")
    matter = Matter(**payload.model_dump())
    db.add(matter)
    db.commit()
    db.refresh(matter)
    return matter


@router.get("", response_model=List[MatterRead])
def list_matters(client_id: int | None = None, skip: int = 0, limit: int = 50, db: Session = Depends(get_db)):
    query = db.query(Matter)
    if client_id is not None:
        query = query.filter(Matter.client_id == client_id)
    return query.order_by(Matter.id.asc()).offset(skip).limit(limit).all()


@router.get("/{matter_id}", response_model=MatterRead)
def get_matter(matter_id: int, db: Session = Depends(get_db)):
    return _get_matter(db, matter_id)


@router.get("/{matter_id}/unbilled-preview", response_model=InvoicePreviewRead)
def get_unbilled_preview(
    matter_id: int,
    tax: Decimal = Query(default=Decimal("0")),
    discount: Decimal = Query(default=Decimal("0")),
    db: Session = Depends(get_db),
):
    preview = build_preview(db, matter_id, tax_rate_percent=tax, discount_amount=discount)
    if preview is None:
        raise NotFound("Matter not found")
    return InvoicePreviewRead(
        matter_id=preview.matter.id,
        client_id=preview.matter.client_id,
        client_name=preview.matter.client.name,
        case_number=preview.matter.case_number,
        line_items=[
            PreviewLineItem(
                id=item.id,
                description=item.description,
                quantity=item.quantity,
                rate=item.rate,
                amount=item.amount,
                type=item.type.value,
            )
            for item in preview.line_items
        ],
        subtotal=preview.subtotal,
        tax_rate=preview.tax_rate,
        tax_amount=preview.tax_amount,
        discount=preview.discount,
        total=preview.total,
        time_hours=preview.time_hours,
        expense_count=preview.expense_count,
    )
