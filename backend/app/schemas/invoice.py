"""Invoice schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from backend.app.models.invoice import InvoiceStatus
from backend.app.schemas.invoice_line_item import FixedLineItemCreate, InvoiceLineItemRead
from backend.app.schemas.payment import PaymentRead


class InvoiceCreate(BaseModel):
    matter_id: int
    tax_rate_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    notes: Optional[str] = None
    terms: Optional[str] = None
    due_date: Optional[date] = None
    fixed_items: List[FixedLineItemCreate] = []


class InvoiceUpdate(BaseModel):
    notes: Optional[str] = None
    terms: Optional[str] = None
    due_date: Optional[date] = None


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    # Sending is two-step: the first request without confirm returns the prompt.
    confirm: bool = False


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: str
    matter_id: Optional[int]
    client_id: int
    client_name: str
    client_email: Optional[str]

    status: str
    display_status: str = ""
    is_overdue: bool = False

    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount: Decimal
    total_amount: Decimal
    written_off_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal

    issue_date: date
    due_date: date
    notes: Optional[str]
    terms: Optional[str]

    approved_at: Optional[datetime]
    sent_at: Optional[datetime]
    paid_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    written_off_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    line_items: List[InvoiceLineItemRead] = []
    payments: List[PaymentRead] = []


class PreviewLineItem(BaseModel):
    id: Optional[int]
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    type: str


class InvoicePreviewRead(BaseModel):
    matter_id: int
    client_id: int
    client_name: str
    case_number: Optional[str]
    line_items: List[PreviewLineItem]
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal
    time_hours: Decimal
    expense_count: int
