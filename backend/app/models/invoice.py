"""Invoice model for matter billing."""

import enum
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.money import ZERO, money_sum, to_money
from backend.app.core.time import utc_now


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    WRITTEN_OFF = "WRITTEN_OFF"


# Statuses that no longer carry a receivable.
CLOSED_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.WRITTEN_OFF})


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(32), nullable=False, unique=True, index=True)
    matter_id = Column(Integer, ForeignKey("matters.id"), nullable=True, index=True)

    # Snapshot of the client at creation time, not a live join.
    client_id = Column(Integer, nullable=False, index=True)
    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=True)

    status = Column(String(30), default=InvoiceStatus.DRAFT.value, nullable=False, index=True)

    # Frozen at creation: total_amount == subtotal + tax_amount - discount.
    subtotal = Column(Numeric(12, 2), default=0.00, nullable=False)
    tax_rate = Column(Numeric(5, 2), default=0.00, nullable=False)
    tax_amount = Column(Numeric(12, 2), default=0.00, nullable=False)
    discount = Column(Numeric(12, 2), default=0.00, nullable=False)
    total_amount = Column(Numeric(12, 2), default=0.00, nullable=False)
    written_off_amount = Column(Numeric(12, 2), default=0.00, nullable=False)

    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    approved_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    written_off_at = Column(DateTime(timezone=True), nullable=True)

    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    matter = relationship("Matter")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def amount_paid(self) -> Decimal:
        return money_sum(p.amount for p in self.payments)

    @property
    def balance_due(self) -> Decimal:
        balance = to_money(self.total_amount) - self.amount_paid - to_money(self.written_off_amount or ZERO)
        return max(balance, ZERO)
