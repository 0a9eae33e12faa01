"""Server-side invoice numbering: INV-{year}-{seq:04d}, one counter per year."""

import logging
import threading

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import ConcurrencyConflict
from backend.app.models.invoice_sequence import InvoiceSequence

logger = logging.getLogger(__name__)

_sequence_lock = threading.Lock()


def format_invoice_number(year: int, sequence: int) -> str:
    return f"INV-{year}-{sequence:04d}"


def next_invoice_number(db: Session, year: int) -> str:
    """Allocate the next number for ``year`` in its own short transaction.

    The counter is committed independently of the invoice that uses it, so a
    failed invoice creation leaves a gap rather than a duplicate.
    """
    with _sequence_lock:
        with Session(bind=db.get_bind()) as seq_db:
            try:
                updated = (
                    seq_db.query(InvoiceSequence)
                    .filter(InvoiceSequence.year == year)
                    .update({InvoiceSequence.last_value: InvoiceSequence.last_value + 1}, synchronize_session=False)
                )
                if not updated:
                    seq_db.add(InvoiceSequence(year=year, last_value=1))
                    seq_db.flush()
                value = seq_db.query(InvoiceSequence.last_value).filter(InvoiceSequence.year == year).scalar()
                seq_db.commit()
            except IntegrityError as exc:
                seq_db.rollback()
                logger.warning("Invoice sequence for %s was initialised concurrently", year)
                raise ConcurrencyConflict("Invoice numbering conflict; retry the request") from exc

    number = format_invoice_number(year, value)
    logger.debug("Allocated invoice number %s", number)
    return number
