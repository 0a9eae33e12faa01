"""Expense schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from backend.app.models.expense import ExpenseCategory


class ExpenseCreate(BaseModel):
    matter_id: Optional[int] = None
    description: str
    amount: Decimal
    date: date
    category: ExpenseCategory = ExpenseCategory.OTHER
    billed: bool = False


class ExpenseRead(ExpenseCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
