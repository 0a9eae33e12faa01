import pytest
from datetime import date, timedelta
from decimal import Decimal

from backend.app.core.errors import ConcurrencyConflict, NotFound, NothingToBill, ValidationError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.client import Client
from backend.app.models.expense import Expense
from backend.app.models.invoice import Invoice, InvoiceStatus
from backend.app.models.invoice_line_item import LineItemType
from backend.app.models.matter import Matter
from backend.app.models.time_entry import TimeEntry
from backend.app.schemas.invoice_line_item import FixedLineItemCreate
from backend.app.services.billing import (
    build_preview,
    create_invoice_for_matter,
    mark_as_billed,
    time_line_item,
)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _create_matter(db, client_name="Acme Corp", case_number="2030-CV-001"):
    client = Client(name=client_name, email="billing@acme.example")
    db.add(client)
    db.commit()
    db.refresh(client)
    matter = Matter(client_id=client.id, name="Acme v. Widget", case_number=case_number)
    db.add(matter)
    db.commit()
    db.refresh(matter)
    return matter


def _add_time(db, matter_id, minutes, rate, billed=False, on=date(2030, 1, 2), description="Drafting"):
    entry = TimeEntry(
        matter_id=matter_id,
        description=description,
        duration_minutes=minutes,
        hourly_rate=Decimal(str(rate)),
        date=on,
        billed=billed,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def _add_expense(db, matter_id, amount, billed=False, on=date(2030, 1, 2), description="Filing fee"):
    expense = Expense(
        matter_id=matter_id,
        description=description,
        amount=Decimal(str(amount)),
        date=on,
        category="Court Fee",
        billed=billed,
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


def test_preview_matches_worked_example():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        _add_time(db, matter.id, 120, "450")
        _add_expense(db, matter.id, "75.50")

        preview = build_preview(db, matter.id, tax_rate_percent=10, discount_amount=0)

        assert preview.subtotal == Decimal("975.50")
        assert preview.tax_amount == Decimal("97.55")
        assert preview.total == Decimal("1073.05")
        assert preview.time_hours == Decimal("2")
        assert preview.expense_count == 1
        assert [item.type for item in preview.line_items] == [LineItemType.TIME, LineItemType.EXPENSE]
    finally:
        db.close()


def test_preview_totals_add_up_to_the_cent():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        _add_time(db, matter.id, 20, "333.33")
        _add_time(db, matter.id, 7, "210")
        _add_time(db, matter.id, 95, "187.50")
        _add_expense(db, matter.id, "12.34")
        _add_expense(db, matter.id, "0.99")

        preview = build_preview(db, matter.id, tax_rate_percent="8.25", discount_amount="15.00")

        time_total = sum((i.amount for i in preview.line_items if i.type == LineItemType.TIME), Decimal("0"))
        expense_total = sum((i.amount for i in preview.line_items if i.type == LineItemType.EXPENSE), Decimal("0"))
        assert preview.subtotal == time_total + expense_total
        assert preview.total == preview.subtotal + preview.tax_amount - preview.discount
        assert all(item.amount == item.amount.quantize(Decimal("0.01")) for item in preview.line_items)
    finally:
        db.close()


def test_time_items_precede_expense_items_regardless_of_insert_order():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        _add_expense(db, matter.id, "40.00", on=date(2030, 1, 1))
        _add_time(db, matter.id, 60, "100", on=date(2030, 1, 5))
        _add_time(db, matter.id, 30, "100", on=date(2030, 1, 3))

        preview = build_preview(db, matter.id)

        assert [item.type for item in preview.line_items] == [
            LineItemType.TIME,
            LineItemType.TIME,
            LineItemType.EXPENSE,
        ]
        assert [item.quantity for item in preview.line_items[:2]] == [Decimal("0.5"), Decimal("1")]
    finally:
        db.close()


def test_preview_is_read_only_and_repeatable():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        entry = _add_time(db, matter.id, 90, "200")
        expense = _add_expense(db, matter.id, "25.00")

        first = build_preview(db, matter.id, tax_rate_percent=5, discount_amount=10)
        second = build_preview(db, matter.id, tax_rate_percent=5, discount_amount=10)

        assert first == second
        db.refresh(entry)
        db.refresh(expense)
        assert entry.billed is False
        assert expense.billed is False
    finally:
        db.close()


def test_preview_ignores_billed_unassigned_and_other_matter_entries():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        other = _create_matter(db, client_name="Other LLC", case_number="2030-CV-002")
        _add_time(db, matter.id, 60, "100")
        _add_time(db, matter.id, 60, "100", billed=True)
        _add_time(db, None, 60, "100")
        _add_time(db, other.id, 60, "100")
        _add_expense(db, matter.id, "10.00", billed=True)

        preview = build_preview(db, matter.id)

        assert len(preview.line_items) == 1
        assert preview.subtotal == Decimal("100.00")
        assert preview.expense_count == 0
    finally:
        db.close()


def test_preview_for_unknown_matter_returns_none():
    db = SessionLocal()
    try:
        assert build_preview(db, 999) is None
    finally:
        db.close()


def test_preview_allows_negative_total_but_validates_inputs():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        _add_time(db, matter.id, 60, "100")

        preview = build_preview(db, matter.id, tax_rate_percent=0, discount_amount="150")
        assert preview.total == Decimal("-50.00")

        with pytest.raises(ValidationError):
            build_preview(db, matter.id, tax_rate_percent=101)
        with pytest.raises(ValidationError):
            build_preview(db, matter.id, tax_rate_percent=-1)
        with pytest.raises(ValidationError):
            build_preview(db, matter.id, discount_amount="-0.01")
        with pytest.raises(ValidationError):
            build_preview(db, matter.id, discount_amount="ten")
    finally:
        db.close()


def test_fixed_items_follow_expenses():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        _add_time(db, matter.id, 60, "100")
        _add_expense(db, matter.id, "20.00")

        preview = build_preview(
            db,
            matter.id,
            fixed_items=[FixedLineItemCreate(description="Flat filing package", quantity=Decimal("2"), rate=Decimal("125"))],
        )

        assert preview.line_items[-1].type == LineItemType.FIXED
        assert preview.line_items[-1].amount == Decimal("250.00")
        assert preview.subtotal == Decimal("370.00")
    finally:
        db.close()


def test_time_line_item_rounds_once_from_minutes():
    entry = TimeEntry(id=7, description="Call", duration_minutes=20, hourly_rate=Decimal("450.00"))
    item = time_line_item(entry)
    assert item.id == 7
    assert item.quantity == Decimal("0.3333")
    assert item.amount == Decimal("150.00")


def test_create_invoice_persists_draft_with_line_items_and_snapshot():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        entry = _add_time(db, matter.id, 120, "450")
        expense = _add_expense(db, matter.id, "75.50")

        invoice = create_invoice_for_matter(
            db, matter.id, tax_rate_percent=10, notes="Thanks", terms="Net 14", issue_date=date(2030, 2, 1)
        )

        assert invoice.number == "INV-2030-0001"
        assert invoice.status == InvoiceStatus.DRAFT.value
        assert invoice.payments == []
        assert invoice.subtotal == Decimal("975.50")
        assert invoice.tax_amount == Decimal("97.55")
        assert invoice.total_amount == Decimal("1073.05")
        assert invoice.balance_due == Decimal("1073.05")
        assert invoice.client_name == "Acme Corp"
        assert invoice.due_date == date(2030, 2, 1) + timedelta(days=14)
        assert [item.position for item in invoice.line_items] == [1, 2]
        assert invoice.line_items[0].time_entry_id == entry.id
        assert invoice.line_items[1].expense_id == expense.id

        client = db.query(Client).filter(Client.id == matter.client_id).first()
        client.name = "Acme Holdings"
        db.commit()
        db.refresh(invoice)
        assert invoice.client_name == "Acme Corp"
    finally:
        db.close()


def test_create_invoice_marks_only_aggregated_entries_billed():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        other = _create_matter(db, client_name="Other LLC", case_number="2030-CV-002")
        billed_entry = _add_time(db, matter.id, 60, "100")
        billed_expense = _add_expense(db, matter.id, "30.00")
        other_entry = _add_time(db, other.id, 60, "100")
        unassigned = _add_time(db, None, 60, "100")

        create_invoice_for_matter(db, matter.id)
        late_entry = _add_time(db, matter.id, 30, "100")

        for row in (billed_entry, billed_expense, other_entry, unassigned, late_entry):
            db.refresh(row)
        assert billed_entry.billed is True
        assert billed_expense.billed is True
        assert other_entry.billed is False
        assert unassigned.billed is False
        assert late_entry.billed is False

        follow_up = create_invoice_for_matter(db, matter.id)
        assert [item.time_entry_id for item in follow_up.line_items] == [late_entry.id]
    finally:
        db.close()


def test_invoice_numbers_are_sequential_per_year():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        numbers = []
        for issue_date in (date(2030, 1, 10), date(2030, 6, 1), date(2031, 1, 3)):
            _add_time(db, matter.id, 60, "100")
            numbers.append(create_invoice_for_matter(db, matter.id, issue_date=issue_date).number)
        assert numbers == ["INV-2030-0001", "INV-2030-0002", "INV-2031-0001"]
    finally:
        db.close()


def test_create_invoice_with_nothing_unbilled_is_rejected():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        _add_time(db, matter.id, 60, "100", billed=True)

        with pytest.raises(NothingToBill):
            create_invoice_for_matter(db, matter.id)
        assert db.query(Invoice).count() == 0

        _add_time(db, matter.id, 60, "100")
        invoice = create_invoice_for_matter(db, matter.id, issue_date=date(2030, 1, 1))
        assert invoice.number == "INV-2030-0001"
    finally:
        db.close()


def test_create_invoice_rejects_non_positive_total_without_side_effects():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        entry = _add_time(db, matter.id, 60, "100")

        with pytest.raises(ValidationError):
            create_invoice_for_matter(db, matter.id, discount_amount="100.00")

        db.refresh(entry)
        assert entry.billed is False
        assert db.query(Invoice).count() == 0
    finally:
        db.close()


def test_create_invoice_for_unknown_matter_raises_not_found():
    db = SessionLocal()
    try:
        with pytest.raises(NotFound):
            create_invoice_for_matter(db, 404)
    finally:
        db.close()


def test_mark_as_billed_refuses_entries_already_billed():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        fresh = _add_time(db, matter.id, 60, "100")
        taken = _add_time(db, matter.id, 60, "100", billed=True)

        with pytest.raises(ConcurrencyConflict):
            mark_as_billed(db, [fresh.id, taken.id], [])
        db.rollback()

        db.refresh(fresh)
        assert fresh.billed is False
        assert mark_as_billed(db, [fresh.id], []) == 1
    finally:
        db.close()


def test_tax_rate_with_more_than_two_decimals_is_rejected():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        entry = _add_time(db, matter.id, 120, "500")

        with pytest.raises(ValidationError):
            build_preview(db, matter.id, tax_rate_percent="8.875")
        with pytest.raises(ValidationError):
            create_invoice_for_matter(db, matter.id, tax_rate_percent="8.875")

        db.refresh(entry)
        assert entry.billed is False
        assert db.query(Invoice).count() == 0
    finally:
        db.close()


def test_stored_tax_rate_reproduces_stored_tax_amount():
    db = SessionLocal()
    try:
        matter = _create_matter(db)
        _add_time(db, matter.id, 120, "500")
        invoice_id = create_invoice_for_matter(db, matter.id, tax_rate_percent="8.250").id
    finally:
        db.close()

    db = SessionLocal()
    try:
        invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
        assert invoice.tax_rate == Decimal("8.25")
        assert invoice.tax_amount == Decimal("82.50")
        recomputed = (invoice.subtotal * invoice.tax_rate / Decimal("100")).quantize(Decimal("0.01"))
        assert recomputed == invoice.tax_amount
        assert invoice.total_amount == invoice.subtotal + invoice.tax_amount - invoice.discount
    finally:
        db.close()
