"""Client endpoints; a thin collaborator surface for the billing core."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.db.session import get_db
from backend.app.models.client import Client
from backend.app.schemas.client import ClientCreate, ClientRead

router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientCreate, db: Session = Depends(get_db)):
    if not payload.name.strip():
        raise ValidationError("Client name is required")
    client = Client(name=payload.name.strip(), email=payload.email)
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@router.get("", response_model=List[ClientRead])
def list_clients(skip: int = 0, limit: int = 50, db: Session = Depends(get_db)):
    return db.query(Client).order_by(Client.name.asc(), Client.id.asc()).offset(skip).limit(limit).all()
