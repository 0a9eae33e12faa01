"""Billing dashboard aggregates, recomputed on every read."""

from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from backend.app.core.money import money_sum, time_value, to_money
from backend.app.core.time import utc_today
from backend.app.models.expense import Expense
from backend.app.models.invoice import CLOSED_STATUSES, Invoice, InvoiceStatus
from backend.app.models.payment import Payment
from backend.app.models.time_entry import TimeEntry
from backend.app.services.invoice_workflow import is_overdue

_CLOSED_VALUES = frozenset(status.value for status in CLOSED_STATUSES)


def calculate_work_in_progress(db: Session) -> Decimal:
    """Value of all unbilled time and expenses across every matter."""
    unbilled_time = money_sum(
        time_value(entry.duration_minutes, entry.hourly_rate)
        for entry in db.query(TimeEntry).filter(TimeEntry.billed.is_(False)).all()
    )
    unbilled_expenses = money_sum(
        expense.amount for expense in db.query(Expense).filter(Expense.billed.is_(False)).all()
    )
    return to_money(unbilled_time + unbilled_expenses)


def total_paid_invoice_amounts_all_time(invoices: Iterable[Invoice]) -> Decimal:
    """Sum of PAID invoice totals, without any date filter.

    Reported as "this month paid" on the dashboard although no month filter
    is applied.
    """
    # TODO: confirm with billing whether this should be limited to invoices paid in the current calendar month.
    return money_sum(inv.total_amount for inv in invoices if inv.status == InvoiceStatus.PAID.value)


def get_billing_summary(db: Session, today: date | None = None) -> dict:
    """Portfolio totals for the billing dashboard."""
    as_of = today or utc_today()
    invoices = db.query(Invoice).all()

    open_invoices = [inv for inv in invoices if inv.status not in _CLOSED_VALUES]
    overdue_invoices = [inv for inv in open_invoices if is_overdue(inv, as_of)]
    paid_invoices = [inv for inv in invoices if inv.status == InvoiceStatus.PAID.value]

    # Cash actually received, not the face value of PAID invoices.
    total_paid = money_sum(row.amount for row in db.query(Payment.amount).all())

    return {
        "as_of": as_of,
        "invoice_count": len(invoices),
        "total_outstanding": money_sum(inv.total_amount for inv in open_invoices),
        "total_paid": total_paid,
        "paid_count": len(paid_invoices),
        "total_overdue": money_sum(inv.total_amount for inv in overdue_invoices),
        "overdue_count": len(overdue_invoices),
        "total_wip": calculate_work_in_progress(db),
        "this_month_paid": total_paid_invoice_amounts_all_time(invoices),
    }
