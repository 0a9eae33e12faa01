"""Time entry schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TimeEntryCreate(BaseModel):
    matter_id: Optional[int] = None
    description: str
    duration_minutes: int
    hourly_rate: Decimal
    date: date
    billed: bool = False


class TimeEntryRead(TimeEntryCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
