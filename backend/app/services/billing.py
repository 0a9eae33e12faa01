"""Billing service utilities: unbilled aggregation, invoice creation and billed flags."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import BillingError, ConcurrencyConflict, NotFound, NothingToBill, ValidationError
from backend.app.core.locks import matter_locks
from backend.app.core.money import CENT, ZERO, money_sum, time_value, to_decimal, to_hours, to_money
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_today
from backend.app.models.client import Client
from backend.app.models.expense import Expense
from backend.app.models.invoice import Invoice, InvoiceStatus
from backend.app.models.invoice_line_item import InvoiceLineItem, LineItemType
from backend.app.models.matter import Matter
from backend.app.models.time_entry import TimeEntry
from backend.app.services.invoice_numbers import next_invoice_number

logger = logging.getLogger(__name__)

MAX_TAX_RATE = Decimal("100")


@dataclass(frozen=True)
class LineItem:
    """A derived invoice line; ``id`` is the source time entry or expense id."""

    id: int | None
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    type: LineItemType


@dataclass(frozen=True)
class InvoicePreview:
    matter: Matter
    line_items: tuple
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal
    time_hours: Decimal
    expense_count: int

    @property
    def time_entry_ids(self) -> List[int]:
        return [item.id for item in self.line_items if item.type == LineItemType.TIME]

    @property
    def expense_ids(self) -> List[int]:
        return [item.id for item in self.line_items if item.type == LineItemType.EXPENSE]


def _parse_decimal(value, field: str) -> Decimal:
    try:
        parsed = to_decimal(value)
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a number")
    return parsed


def validate_adjustments(tax_rate_percent, discount_amount) -> tuple[Decimal, Decimal]:
    tax_rate = _parse_decimal(tax_rate_percent, "Tax rate")
    discount = _parse_decimal(discount_amount, "Discount")
    if tax_rate < 0 or tax_rate > MAX_TAX_RATE:
        raise ValidationError("Tax rate must be between 0 and 100 percent")
    if tax_rate != tax_rate.quantize(CENT):
        # Must survive the Numeric(5, 2) column unchanged.
        raise ValidationError("Tax rate cannot have more than two decimal places")
    if discount < 0:
        raise ValidationError("Discount cannot be negative")
    return tax_rate, to_money(discount)


def time_line_item(entry: TimeEntry) -> LineItem:
    return LineItem(
        id=entry.id,
        description=entry.description,
        quantity=to_hours(entry.duration_minutes),
        rate=to_money(entry.hourly_rate),
        amount=time_value(entry.duration_minutes, entry.hourly_rate),
        type=LineItemType.TIME,
    )


def expense_line_item(expense: Expense) -> LineItem:
    amount = to_money(expense.amount)
    return LineItem(
        id=expense.id,
        description=expense.description,
        quantity=Decimal("1"),
        rate=amount,
        amount=amount,
        type=LineItemType.EXPENSE,
    )


def fixed_line_item(description: str, quantity, rate) -> LineItem:
    qty = _parse_decimal(quantity, "Quantity")
    unit_rate = _parse_decimal(rate, "Rate")
    if qty <= 0:
        raise ValidationError("Fixed-fee quantity must be positive")
    if unit_rate < 0:
        raise ValidationError("Fixed-fee rate cannot be negative")
    return LineItem(
        id=None,
        description=description,
        quantity=qty,
        rate=to_money(unit_rate),
        amount=to_money(qty * unit_rate),
        type=LineItemType.FIXED,
    )


def get_unbilled_time_entries(db: Session, matter_id: int) -> List[TimeEntry]:
    """Return time entries for the matter not yet marked billed, oldest first."""
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.matter_id == matter_id, TimeEntry.billed.is_(False))
        .order_by(TimeEntry.date.asc(), TimeEntry.id.asc())
        .all()
    )


def get_unbilled_expenses(db: Session, matter_id: int) -> List[Expense]:
    return (
        db.query(Expense)
        .filter(Expense.matter_id == matter_id, Expense.billed.is_(False))
        .order_by(Expense.date.asc(), Expense.id.asc())
        .all()
    )


def build_preview(
    db: Session,
    matter_id: int,
    tax_rate_percent: Decimal | float | int | str = 0,
    discount_amount: Decimal | float | int | str = 0,
    fixed_items: Iterable = (),
) -> InvoicePreview | None:
    """Aggregate a matter's unbilled time and expenses into invoice totals.

    Read-only: billed flags are left untouched. Returns None when the matter
    does not exist. ``fixed_items`` are objects exposing ``description``,
    ``quantity`` and ``rate`` and are appended after the expense lines.
    """
    tax_rate, discount = validate_adjustments(tax_rate_percent, discount_amount)
    matter = db.query(Matter).filter(Matter.id == matter_id).first()
    if matter is None:
        return None

    time_items = [time_line_item(entry) for entry in get_unbilled_time_entries(db, matter_id)]
    expense_items = [expense_line_item(expense) for expense in get_unbilled_expenses(db, matter_id)]
    extra_items = [fixed_line_item(item.description, item.quantity, item.rate) for item in fixed_items]
    line_items = tuple(time_items + expense_items + extra_items)

    subtotal = money_sum(item.amount for item in line_items)
    tax_amount = to_money(subtotal * tax_rate / Decimal("100"))
    total = subtotal + tax_amount - discount

    return InvoicePreview(
        matter=matter,
        line_items=line_items,
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        discount=discount,
        total=to_money(total),
        time_hours=sum((item.quantity for item in time_items), Decimal("0")),
        expense_count=len(expense_items),
    )


def mark_as_billed(db: Session, time_entry_ids: Sequence[int], expense_ids: Sequence[int]) -> int:
    """Flag exactly the given entries billed inside the caller's transaction.

    Only rows still unbilled are touched; if another writer already flagged
    any of them the caller must roll back.
    """
    flagged = 0
    time_ids = set(time_entry_ids)
    if time_ids:
        count = (
            db.query(TimeEntry)
            .filter(TimeEntry.id.in_(time_ids), TimeEntry.billed.is_(False))
            .update({TimeEntry.billed: True}, synchronize_session="fetch")
        )
        if count != len(time_ids):
            raise ConcurrencyConflict("Some time entries were billed by another invoice; retry")
        flagged += count
    expense_id_set = set(expense_ids)
    if expense_id_set:
        count = (
            db.query(Expense)
            .filter(Expense.id.in_(expense_id_set), Expense.billed.is_(False))
            .update({Expense.billed: True}, synchronize_session="fetch")
        )
        if count != len(expense_id_set):
            raise ConcurrencyConflict("Some expenses were billed by another invoice; retry")
        flagged += count
    return flagged


def release_billed(db: Session, invoice: Invoice) -> int:
    """Clear the billed flag on every entry that was aggregated into ``invoice``."""
    time_ids = [item.time_entry_id for item in invoice.line_items if item.time_entry_id is not None]
    expense_ids = [item.expense_id for item in invoice.line_items if item.expense_id is not None]
    released = 0
    if time_ids:
        released += (
            db.query(TimeEntry)
            .filter(TimeEntry.id.in_(time_ids))
            .update({TimeEntry.billed: False}, synchronize_session="fetch")
        )
    if expense_ids:
        released += (
            db.query(Expense)
            .filter(Expense.id.in_(expense_ids))
            .update({Expense.billed: False}, synchronize_session="fetch")
        )
    return released


def create_invoice_for_matter(
    db: Session,
    matter_id: int,
    tax_rate_percent: Decimal | float | int | str = 0,
    discount_amount: Decimal | float | int | str = 0,
    notes: str | None = None,
    terms: str | None = None,
    due_date: date | None = None,
    fixed_items: Iterable = (),
    issue_date: date | None = None,
) -> Invoice:
    """Create a DRAFT invoice from the matter's unbilled work and flag it billed.

    Selection, numbering, persistence and flagging happen inside one
    per-matter exclusive section and one transaction.
    """
    matter = db.query(Matter).filter(Matter.id == matter_id).first()
    if matter is None:
        raise NotFound("Matter not found")
    client = db.query(Client).filter(Client.id == matter.client_id).first()
    if client is None:
        raise NotFound("Client not found for matter")

    fixed_items = list(fixed_items)
    issued_on = issue_date or utc_today()
    due_on = due_date or issued_on + timedelta(days=get_settings().default_payment_terms_days)

    with matter_locks.hold(matter_id):
        try:
            preview = build_preview(db, matter_id, tax_rate_percent, discount_amount, fixed_items)
            if not preview.line_items:
                raise NothingToBill("No unbilled time or expenses for this matter")
            if preview.total <= ZERO:
                raise ValidationError("Invoice total must be positive; reduce the discount")
            if due_on < issued_on:
                raise ValidationError("Due date cannot be before the issue date")

            invoice = Invoice(
                number=next_invoice_number(db, issued_on.year),
                matter_id=matter.id,
                client_id=client.id,
                client_name=client.name,
                client_email=client.email,
                status=InvoiceStatus.DRAFT.value,
                subtotal=preview.subtotal,
                tax_rate=preview.tax_rate,
                tax_amount=preview.tax_amount,
                discount=preview.discount,
                total_amount=preview.total,
                written_off_amount=ZERO,
                issue_date=issued_on,
                due_date=due_on,
                notes=notes,
                terms=terms,
            )
            for position, item in enumerate(preview.line_items, start=1):
                invoice.line_items.append(
                    InvoiceLineItem(
                        position=position,
                        item_type=item.type.value,
                        description=item.description,
                        quantity=item.quantity,
                        rate=item.rate,
                        amount=item.amount,
                        time_entry_id=item.id if item.type == LineItemType.TIME else None,
                        expense_id=item.id if item.type == LineItemType.EXPENSE else None,
                    )
                )
            db.add(invoice)
            db.flush()
            mark_as_billed(db, preview.time_entry_ids, preview.expense_ids)
            db.commit()
        except BillingError as exc:
            db.rollback()
            logger.warning("Invoice creation for matter %s rejected: %s", matter_id, exc.message)
            raise
        except IntegrityError as exc:
            db.rollback()
            logger.warning("Invoice creation for matter %s conflicted: %s", matter_id, exc)
            raise ConcurrencyConflict("Invoice could not be created due to a concurrent write; retry") from exc

    db.refresh(invoice)
    logger.info(
        "Created invoice %s for matter %s: %d line items, total %s",
        invoice.number,
        matter_id,
        len(invoice.line_items),
        invoice.total_amount,
    )
    return invoice
