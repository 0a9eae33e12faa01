"""Time entry model for billable work."""

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, Numeric, String

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(Integer, primary_key=True, index=True)
    # Weak reference: entries may be unassigned and outlive their matter.
    matter_id = Column(Integer, nullable=True, index=True)
    description = Column(String(500), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    hourly_rate = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False)
    billed = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
