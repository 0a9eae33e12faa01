"""Billing dashboard schemas."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class BillingSummary(BaseModel):
    as_of: date
    invoice_count: int
    total_outstanding: Decimal
    total_paid: Decimal
    paid_count: int
    total_overdue: Decimal
    overdue_count: int
    total_wip: Decimal
    this_month_paid: Decimal
