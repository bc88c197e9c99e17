"""
Expense CRUD + per-currency totals.

Any authenticated user may book and read expenses; only the owner or an
Admin may change or delete one.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_user, get_db
from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.permissions import can_modify_expense
from app.models.employee import Employee
from app.models.enums import Currency
from app.models.expense import Expense
from app.models.user import User
from app.schemas.expense import (CurrencyTotal, ExpenseCreate, ExpenseRead,
                                 ExpensesInfo, ExpenseUpdate)

router = APIRouter(prefix="/expenses", tags=["expenses"])
logger = logging.getLogger(__name__)


async def _get_expense_or_404(db: AsyncSession, expense_id: int) -> Expense:
    expense = await db.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("Expense not found.")
    return expense


async def _ensure_employee_exists(db: AsyncSession, employee_id: int | None) -> None:
    if employee_id is not None and await db.get(Employee, employee_id) is None:
        raise NotFoundError("Employee not found.")


@router.get("", response_model=list[ExpenseRead])
async def list_expenses(
    employee_id: int | None = Query(default=None, alias="employeeId"),
    currency: Currency | None = None,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> list[Expense]:
    query = select(Expense).order_by(Expense.date.desc(), Expense.id.desc())
    if employee_id is not None:
        query = query.where(Expense.employee_id == employee_id)
    if currency is not None:
        query = query.where(Expense.currency == currency)
    result = await db.execute(query)
    return list(result.scalars().all())


# Must stay above "/{expense_id}"
@router.get("/info", response_model=ExpensesInfo)
async def expenses_info(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> ExpensesInfo:
    """Number of expenses and the summed amount per currency."""
    result = await db.execute(
        select(Expense.currency, func.count(Expense.id), func.sum(Expense.amount))
        .group_by(Expense.currency)
        .order_by(Expense.currency)
    )
    rows = result.all()
    return ExpensesInfo(
        count=sum(n for _, n, _ in rows),
        totals=[CurrencyTotal(currency=cur, amount=round(total or 0.0, 2)) for cur, _, total in rows],
    )


@router.get("/{expense_id}", response_model=ExpenseRead)
async def get_expense(
    expense_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> Expense:
    return await _get_expense_or_404(db, expense_id)


@router.post("", response_model=ExpenseRead, status_code=201)
async def create_expense(
    body: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Expense:
    await _ensure_employee_exists(db, body.employee_id)

    data = body.model_dump(exclude_none=True)
    expense = Expense(**data, owner_id=current_user.id)
    db.add(expense)
    await db.commit()
    await db.refresh(expense)
    logger.info("User %d booked expense %d (%s %s)", current_user.id, expense.id, expense.amount, expense.currency.value)
    return expense


@router.patch("/{expense_id}", response_model=ExpenseRead)
async def update_expense(
    expense_id: int,
    body: ExpenseUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Expense:
    expense = await _get_expense_or_404(db, expense_id)
    decision = can_modify_expense(current_user, expense)
    if not decision:
        raise ForbiddenError(decision.reason)

    changes = body.provided()
    if "employee_id" in changes:
        await _ensure_employee_exists(db, changes["employee_id"])

    for field, value in changes.items():
        setattr(expense, field, value)

    await db.commit()
    await db.refresh(expense)
    logger.info("Updated expense %d (fields: %s)", expense_id, sorted(body.model_fields_set))
    return expense


@router.delete("/{expense_id}", status_code=204)
async def delete_expense(
    expense_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    expense = await _get_expense_or_404(db, expense_id)
    decision = can_modify_expense(current_user, expense)
    if not decision:
        raise ForbiddenError(decision.reason)

    await db.delete(expense)
    await db.commit()
    logger.info("Deleted expense %d", expense_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
