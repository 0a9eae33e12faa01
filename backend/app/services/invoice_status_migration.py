"""One-time normalisation of legacy invoice status strings to InvoiceStatus."""

import logging

from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.models.invoice import Invoice, InvoiceStatus

logger = logging.getLogger(__name__)

LEGACY_STATUS_MAP = {
    "draft": InvoiceStatus.DRAFT,
    "pending": InvoiceStatus.PENDING_APPROVAL,
    "pending_approval": InvoiceStatus.PENDING_APPROVAL,
    "approved": InvoiceStatus.APPROVED,
    "sent": InvoiceStatus.SENT,
    "issued": InvoiceStatus.SENT,
    "partial": InvoiceStatus.PARTIALLY_PAID,
    "partially_paid": InvoiceStatus.PARTIALLY_PAID,
    "paid": InvoiceStatus.PAID,
    "cancelled": InvoiceStatus.CANCELLED,
    "canceled": InvoiceStatus.CANCELLED,
    "void": InvoiceStatus.CANCELLED,
    "written_off": InvoiceStatus.WRITTEN_OFF,
    "writtenoff": InvoiceStatus.WRITTEN_OFF,
}

CANONICAL_VALUES = frozenset(status.value for status in InvoiceStatus)


def normalize_status(value: str, has_payments: bool = False) -> InvoiceStatus:
    """Map a stored status string, legacy or canonical, to InvoiceStatus.

    Legacy "Overdue" was a display state written back to storage; it becomes
    PARTIALLY_PAID when payments exist and SENT otherwise.
    """
    if value is None:
        raise ValidationError("Invoice status is missing")
    key = value.strip().lower().replace(" ", "_").replace("-", "_")
    if key == "overdue":
        return InvoiceStatus.PARTIALLY_PAID if has_payments else InvoiceStatus.SENT
    try:
        return LEGACY_STATUS_MAP[key]
    except KeyError:
        raise ValidationError(f"Unknown invoice status {value!r}")


def normalize_invoice_statuses(db: Session) -> int:
    """Rewrite every non-canonical stored status. Returns the number of invoices changed."""
    changed = 0
    for invoice in db.query(Invoice).filter(Invoice.status.notin_(CANONICAL_VALUES)).all():
        new_status = normalize_status(invoice.status, has_payments=bool(invoice.payments))
        logger.info("Normalising invoice %s status %r -> %s", invoice.number, invoice.status, new_status.value)
        invoice.status = new_status.value
        changed += 1
    db.commit()
    return changed
