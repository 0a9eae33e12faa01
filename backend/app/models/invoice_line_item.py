"""Invoice line item model; rows are written once when the invoice is created."""

import enum

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base


class LineItemType(str, enum.Enum):
    TIME = "time"
    EXPENSE = "expense"
    FIXED = "fixed"


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    item_type = Column(String(20), nullable=False)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(12, 4), nullable=False)
    rate = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    time_entry_id = Column(Integer, ForeignKey("time_entries.id"), nullable=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=True)

    invoice = relationship("Invoice", back_populates="line_items")
