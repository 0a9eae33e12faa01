"""Invoice lifecycle: status transitions, payment recording and deletion."""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.errors import (
    BillingError,
    ConcurrencyConflict,
    ConfirmationRequired,
    IllegalTransition,
    InsufficientBalance,
    InvalidAmount,
    NotFound,
    ValidationError,
)
from backend.app.core.locks import invoice_locks
from backend.app.core.money import CENT, ZERO, to_decimal, to_money
from backend.app.core.time import utc_now, utc_today
from backend.app.models.invoice import CLOSED_STATUSES, Invoice, InvoiceStatus
from backend.app.models.payment import Payment, PaymentMethod
from backend.app.services.billing import release_billed

logger = logging.getLogger(__name__)

# Requestable through the status endpoint. PARTIALLY_PAID and PAID are only
# ever reached by recording payments.
ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT: frozenset(
        {InvoiceStatus.PENDING_APPROVAL, InvoiceStatus.APPROVED, InvoiceStatus.SENT, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.PENDING_APPROVAL: frozenset({InvoiceStatus.APPROVED, InvoiceStatus.CANCELLED}),
    InvoiceStatus.APPROVED: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.CANCELLED, InvoiceStatus.WRITTEN_OFF}),
    InvoiceStatus.PARTIALLY_PAID: frozenset({InvoiceStatus.WRITTEN_OFF}),
}

PAYMENT_DERIVED_STATUSES = frozenset({InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID})

PAYABLE_STATUSES = frozenset(
    {
        InvoiceStatus.DRAFT,
        InvoiceStatus.PENDING_APPROVAL,
        InvoiceStatus.APPROVED,
        InvoiceStatus.SENT,
        InvoiceStatus.PARTIALLY_PAID,
    }
)

DELETABLE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED})

OVERDUE_DISPLAY_STATUS = "OVERDUE"


def current_status(invoice: Invoice) -> InvoiceStatus:
    try:
        return InvoiceStatus(invoice.status)
    except ValueError:
        raise ValidationError(
            f"Invoice {invoice.number} has unrecognised status {invoice.status!r}; normalise stored statuses first"
        )


def is_overdue(invoice: Invoice, today: date | None = None) -> bool:
    """Overdue is derived for display and never persisted."""
    check_date = today or utc_today()
    if invoice.status in {s.value for s in CLOSED_STATUSES}:
        return False
    return invoice.due_date is not None and invoice.due_date < check_date


def display_status(invoice: Invoice, today: date | None = None) -> str:
    if is_overdue(invoice, today):
        return OVERDUE_DISPLAY_STATUS
    return invoice.status


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if invoice is None:
        raise NotFound("Invoice not found")
    return invoice


def _load_for_update(db: Session, invoice_id: int) -> Invoice:
    # populate_existing discards anything this session cached before the lock was taken
    invoice = (
        db.query(Invoice)
        .options(selectinload(Invoice.payments), selectinload(Invoice.line_items))
        .populate_existing()
        .with_for_update()
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if invoice is None:
        raise NotFound("Invoice not found")
    return invoice


@contextmanager
def _invoice_write(db: Session, invoice_id: int):
    """Exclusive section for one invoice; a rejected operation rolls the session back."""
    with invoice_locks.hold(invoice_id):
        try:
            yield
        except BillingError:
            db.rollback()
            raise


def _commit(db: Session, invoice_id: int) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Invoice %s changed underneath a write; rejecting", invoice_id)
        raise ConcurrencyConflict("Invoice was modified by another request; reload and retry") from exc


def transition_invoice(
    db: Session,
    invoice_id: int,
    target: InvoiceStatus | str,
    confirm: bool = False,
    now: datetime | None = None,
) -> Invoice:
    """Move an invoice to ``target`` if the lifecycle allows it.

    Sending is two-step: without ``confirm`` a ConfirmationRequired carrying
    the prompt is raised and nothing changes.
    """
    try:
        target_status = InvoiceStatus(target)
    except ValueError:
        raise ValidationError(f"Unknown invoice status {target!r}")
    stamp = now or utc_now()

    with _invoice_write(db, invoice_id):
        invoice = _load_for_update(db, invoice_id)
        status = current_status(invoice)

        if target_status in PAYMENT_DERIVED_STATUSES:
            raise IllegalTransition(f"{target_status.value} is set by recording payments, not by a status change")
        if target_status not in ALLOWED_TRANSITIONS.get(status, frozenset()):
            raise IllegalTransition(
                f"Cannot change invoice {invoice.number} from {status.value} to {target_status.value}"
            )
        if target_status == InvoiceStatus.CANCELLED and invoice.payments:
            raise IllegalTransition(f"Invoice {invoice.number} has recorded payments and cannot be cancelled")
        if target_status == InvoiceStatus.SENT and not confirm:
            raise ConfirmationRequired(f"Send invoice {invoice.number} to {invoice.client_name}?")

        if target_status == InvoiceStatus.APPROVED:
            invoice.approved_at = stamp
        elif target_status == InvoiceStatus.SENT:
            invoice.sent_at = stamp
        elif target_status == InvoiceStatus.CANCELLED:
            invoice.cancelled_at = stamp
        elif target_status == InvoiceStatus.WRITTEN_OFF:
            invoice.written_off_amount = to_money(invoice.total_amount) - invoice.amount_paid
            invoice.written_off_at = stamp
        invoice.status = target_status.value
        _commit(db, invoice_id)

    db.refresh(invoice)
    logger.info("Invoice %s moved %s -> %s", invoice.number, status.value, target_status.value)
    return invoice


def submit_for_approval(db: Session, invoice_id: int) -> Invoice:
    return transition_invoice(db, invoice_id, InvoiceStatus.PENDING_APPROVAL)


def approve_invoice(db: Session, invoice_id: int) -> Invoice:
    return transition_invoice(db, invoice_id, InvoiceStatus.APPROVED)


def send_invoice(db: Session, invoice_id: int, confirm: bool = False) -> Invoice:
    return transition_invoice(db, invoice_id, InvoiceStatus.SENT, confirm=confirm)


def cancel_invoice(db: Session, invoice_id: int) -> Invoice:
    return transition_invoice(db, invoice_id, InvoiceStatus.CANCELLED)


def write_off_invoice(db: Session, invoice_id: int) -> Invoice:
    return transition_invoice(db, invoice_id, InvoiceStatus.WRITTEN_OFF)


def _parse_payment_amount(amount) -> Decimal:
    try:
        value = to_decimal(amount)
    except (InvalidOperation, ValueError):
        raise InvalidAmount("Payment amount must be a number")
    if not value.is_finite():
        raise InvalidAmount("Payment amount must be a number")
    if value <= ZERO:
        raise InvalidAmount("Payment amount must be positive")
    if value != value.quantize(CENT):
        raise InvalidAmount("Payment amount cannot have fractions of a cent")
    return to_money(value)


def record_payment(
    db: Session,
    invoice_id: int,
    amount,
    paid_on: date | None = None,
    method: PaymentMethod | str = PaymentMethod.BANK_TRANSFER,
    reference: str | None = None,
    notes: str | None = None,
) -> Invoice:
    """Append a payment and re-derive PARTIALLY_PAID / PAID from the running total."""
    payment_amount = _parse_payment_amount(amount)
    try:
        payment_method = PaymentMethod(method)
    except ValueError:
        raise ValidationError(f"Unknown payment method {method!r}")

    with _invoice_write(db, invoice_id):
        invoice = _load_for_update(db, invoice_id)
        status = current_status(invoice)
        if status not in PAYABLE_STATUSES:
            raise IllegalTransition(f"Cannot record a payment against a {status.value} invoice")

        total = to_money(invoice.total_amount)
        remaining = total - invoice.amount_paid
        if payment_amount > remaining:
            logger.warning(
                "Rejected payment of %s on invoice %s: remaining balance %s", payment_amount, invoice.number, remaining
            )
            raise InsufficientBalance(
                f"Payment of {payment_amount} exceeds the remaining balance of {remaining}"
            )

        now = utc_now()
        invoice.payments.append(
            Payment(
                amount=payment_amount,
                method=payment_method.value,
                reference=reference,
                notes=notes,
                paid_on=paid_on or now.date(),
            )
        )
        if invoice.amount_paid >= total:
            invoice.status = InvoiceStatus.PAID.value
            invoice.paid_at = now
        else:
            invoice.status = InvoiceStatus.PARTIALLY_PAID.value
        # Always touch the row so the version check guards every payment.
        invoice.updated_at = now
        _commit(db, invoice_id)

    db.refresh(invoice)
    logger.info(
        "Recorded payment of %s on invoice %s; paid %s of %s, status %s",
        payment_amount,
        invoice.number,
        invoice.amount_paid,
        invoice.total_amount,
        invoice.status,
    )
    return invoice


def update_invoice_details(
    db: Session,
    invoice_id: int,
    notes: str | None = None,
    terms: str | None = None,
    due_date: date | None = None,
) -> Invoice:
    """Edit descriptive fields of a draft. Amounts are never recalculated."""
    with _invoice_write(db, invoice_id):
        invoice = _load_for_update(db, invoice_id)
        if current_status(invoice) != InvoiceStatus.DRAFT:
            raise IllegalTransition(f"Invoice {invoice.number} is no longer a draft and cannot be edited")
        if due_date is not None and due_date < invoice.issue_date:
            raise ValidationError("Due date cannot be before the issue date")
        if notes is not None:
            invoice.notes = notes
        if terms is not None:
            invoice.terms = terms
        if due_date is not None:
            invoice.due_date = due_date
        _commit(db, invoice_id)
    db.refresh(invoice)
    return invoice


def delete_invoice(db: Session, invoice_id: int) -> None:
    """Delete a draft or cancelled invoice and return its entries to unbilled."""
    with _invoice_write(db, invoice_id):
        invoice = _load_for_update(db, invoice_id)
        status = current_status(invoice)
        if status not in DELETABLE_STATUSES:
            raise IllegalTransition(f"Only draft or cancelled invoices can be deleted; {invoice.number} is {status.value}")
        number = invoice.number
        released = release_billed(db, invoice)
        db.delete(invoice)
        _commit(db, invoice_id)
    logger.info("Deleted invoice %s and released %d billed entries", number, released)
