"""Expense endpoints."""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.core.money import to_money
from backend.app.db.session import get_db
from backend.app.models.expense import Expense
from backend.app.schemas.expense import ExpenseCreate, ExpenseRead

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.post("", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
def create_expense(payload: ExpenseCreate, db: Session = Depends(get_db)):
    if payload.amount < 0:
        raise ValidationError("Expense amount cannot be negative")
    expense = Expense(
        matter_id=payload.matter_id,
        description=payload.description,
        amount=to_money(payload.amount),
        date=payload.date,
        category=payload.category.value,
        billed=payload.billed,
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


@router.get("", response_model=List[ExpenseRead])
def list_expenses(
    matter_id: int | None = None,
    billed: bool | None = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    query = db.query(Expense)
    if matter_id is not None:
        query = query.filter(Expense.matter_id == matter_id)
    if billed is not None:
        query = query.filter(Expense.billed.is_(billed))
    return query.order_by(Expense.date.desc(), Expense.id.desc()).offset(skip).limit(limit).all()
