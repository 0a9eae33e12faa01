"""Client schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ClientCreate(BaseModel):
    name: str
    email: Optional[str] = None


class ClientRead(ClientCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
