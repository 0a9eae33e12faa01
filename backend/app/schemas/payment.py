"""Payment schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.payment import PaymentMethod


class PaymentBase(BaseModel):
    amount: Decimal
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentCreate(PaymentBase):
    model_config = ConfigDict(populate_by_name=True)

    # Clients send the receipt date as "date"; defaults to today.
    paid_on: Optional[date] = Field(default=None, alias="date")


class PaymentRead(PaymentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    paid_on: date
    created_at: datetime
