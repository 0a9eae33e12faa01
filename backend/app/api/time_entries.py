"""Time entry endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.core.money import to_money
from backend.app.db.session import get_db
from backend.app.models.time_entry import TimeEntry
from backend.app.schemas.time_entry import TimeEntryCreate, TimeEntryRead

router = APIRouter(prefix="/api/time-entries", tags=["time-entries"])


@router.post("", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
def create_time_entry(payload: TimeEntryCreate, db: Session = Depends(get_db)):
    if payload.duration_minutes < 0:
        raise ValidationError("Duration cannot be negative")
    if payload.hourly_rate < 0:
        raise ValidationError("Hourly rate cannot be negative")
    entry = TimeEntry(
        matter_id=payload.matter_id,
        description=payload.description,
        duration_minutes=payload.duration_minutes,
        hourly_rate=to_money(payload.hourly_rate),
        date=payload.date,
        billed=payload.billed,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


@router.get("", response_model=List[TimeEntryRead])
def list_time_entries(
    matter_id: int | None = None,
    billed: bool | None = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    query = db.query(TimeEntry)
    if matter_id is not None:
        query = query.filter(TimeEntry.matter_id == matter_id)
    if billed is not None:
        query = query.filter(TimeEntry.billed.is_(billed))
    return query.order_by(TimeEntry.date.desc(), TimeEntry.id.desc()).offset(skip).limit(limit).all()
