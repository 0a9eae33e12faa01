"""Matter schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MatterCreate(BaseModel):
    client_id: int
    name: str
    case_number: Optional[str] = None
    status: str = "open"


class MatterRead(MatterCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
