"""Expense model for disbursements billed to a matter."""

import enum

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, Numeric, String

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class ExpenseCategory(str, enum.Enum):
    COURT_FEE = "Court Fee"
    TRAVEL = "Travel"
    PRINTING = "Printing"
    RESEARCH = "Research"
    EXPERT = "Expert"
    COURIER = "Courier"
    OTHER = "Other"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    matter_id = Column(Integer, nullable=True, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False)
    category = Column(String(30), nullable=False, default=ExpenseCategory.OTHER.value)
    billed = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
