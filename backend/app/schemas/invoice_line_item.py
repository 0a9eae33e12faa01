"""Invoice line item schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FixedLineItemCreate(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    rate: Decimal


class InvoiceLineItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    position: int
    item_type: str
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    time_entry_id: Optional[int] = None
    expense_id: Optional[int] = None
