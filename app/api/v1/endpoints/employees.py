"""
Employee CRUD + the paginated search listing.

- GET operations require any authenticated user.
- POST / PATCH / DELETE operations require the Admin role.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.api.v1.deps import get_current_user, get_db
from app.core.exceptions import BadInputError, ForbiddenError, NotFoundError
from app.core.permissions import can_manage_employees
from app.core.uploads import read_image
from app.models.employee import Employee, EmployeeTechStack
from app.models.enums import Currency, Department, TechStack
from app.models.expense import Expense
from app.models.user import User
from app.schemas.employee import (EmployeeCreate, EmployeePage, EmployeeRead,
                                  EmployeeUpdate, PageInfo)

router = APIRouter(prefix="/employees", tags=["employees"])
logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "firstName": Employee.first_name,
    "lastName": Employee.last_name,
    "department": Employee.department,
    "salary": Employee.salary,
    "currency": Employee.currency,
    "isEmployed": Employee.is_employed,
    "isEmployedDate": Employee.is_employed_date,
    "createdAt": Employee.created_at,
}


# ── Query building ──────────────────────────────────────────────────
def _contains(column, value: str) -> ColumnElement[bool]:
    # Escape SQL LIKE metacharacters to prevent wildcard injection
    safe = value.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")
    return column.ilike(f"%{safe}%", escape="\\")


def build_search_condition(search_term: str | None) -> ColumnElement[bool] | None:
    """Case-insensitive match on first name OR last name.

    A term with whitespace additionally matches first token against the
    first name AND second token against the last name ("Jane Doe").
    """
    term = (search_term or "").strip()
    if not term:
        return None

    conditions = [
        _contains(Employee.first_name, term),
        _contains(Employee.last_name, term),
    ]
    tokens = term.split()
    if len(tokens) > 1:
        conditions.insert(
            0,
            and_(
                _contains(Employee.first_name, tokens[0]),
                _contains(Employee.last_name, tokens[1]),
            ),
        )
    return or_(*conditions)


def build_employee_filters(
    search_term: str | None = None,
    currency: Currency | None = None,
    department: Department | None = None,
    tech_stack: TechStack | None = None,
    is_employed: bool | None = None,
) -> list[ColumnElement[bool]]:
    """Every provided filter is ANDed with the search condition."""
    filters: list[ColumnElement[bool]] = []
    search = build_search_condition(search_term)
    if search is not None:
        filters.append(search)
    if currency is not None:
        filters.append(Employee.currency == currency)
    if department is not None:
        filters.append(Employee.department == department)
    if tech_stack is not None:
        filters.append(Employee.tech_stack_entries.any(EmployeeTechStack.tag == tech_stack))
    if is_employed is not None:
        filters.append(Employee.is_employed.is_(is_employed))
    return filters


def build_order_by(field: str | None, direction: str | None) -> list[ColumnElement]:
    """Sort only when both parts are given; ``id`` keeps pages stable."""
    if not field or not direction:
        return [Employee.id]
    column = SORTABLE_FIELDS.get(field)
    if column is None:
        raise BadInputError(f"Cannot sort employees by '{field}'.")
    ordered = column.desc() if direction == "desc" else column.asc()
    return [ordered, Employee.id]


def resolve_offset(page: int | None, take: int | None, count: int) -> int | None:
    """Offset for the requested page, or ``None`` when it falls past the last row."""
    if not page or not take:
        return None
    skip = (page - 1) * take
    return skip if skip < count else None


def compute_page_info(count: int, returned: int, page: int | None, take: int | None) -> PageInfo:
    total = count if returned > 0 else 0
    if take:
        last_page = math.ceil(total / take)
    else:
        last_page = 1 if total > 0 else 0

    if page:
        current_page = 1 if page > last_page else page
    else:
        current_page = 1 if total > 0 else 0

    return PageInfo(
        total=total,
        current_page=current_page,
        last_page=last_page,
        per_page=take if take else total,
    )


async def _get_employee_or_404(db: AsyncSession, employee_id: int) -> Employee:
    result = await db.execute(
        select(Employee)
        .where(Employee.id == employee_id)
        .execution_options(populate_existing=True)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise NotFoundError("Employee not found.")
    return employee


async def purge_employee(db: AsyncSession, employee: Employee) -> None:
    """Delete an employee and everything pointing at it.

    Project memberships and tech-stack rows go with it (ORM cascade); a
    linked user and any expenses are detached. The caller commits.
    """
    await db.execute(update(User).where(User.employee_id == employee.id).values(employee_id=None))
    await db.execute(
        update(Expense).where(Expense.employee_id == employee.id).values(employee_id=None)
    )
    await db.delete(employee)


def _require_admin(user: User, action: str) -> None:
    decision = can_manage_employees(user, action)
    if not decision:
        raise ForbiddenError(decision.reason)


# ── Listing ─────────────────────────────────────────────────────────
@router.get("", response_model=EmployeePage)
async def list_employees(
    search_term: str | None = Query(default=None, alias="searchTerm"),
    currency: Currency | None = None,
    department: Department | None = None,
    tech_stack: TechStack | None = Query(default=None, alias="techStack"),
    is_employed: bool | None = Query(default=None, alias="isEmployed"),
    order_by_field: str | None = Query(default=None, alias="orderByField"),
    order_direction: Literal["asc", "desc"] | None = Query(default=None, alias="orderDirection"),
    take: int | None = Query(default=None, ge=1),
    page: int | None = Query(default=None, ge=1),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> EmployeePage:
    filters = build_employee_filters(search_term, currency, department, tech_stack, is_employed)
    order_by = build_order_by(order_by_field, order_direction)

    count = await db.scalar(select(func.count(Employee.id)).where(*filters)) or 0

    query = select(Employee).where(*filters).order_by(*order_by)
    offset = resolve_offset(page, take, count)
    if offset:
        query = query.offset(offset)
    if take:
        query = query.limit(take)

    result = await db.execute(query)
    employees = list(result.scalars().all())

    return EmployeePage(
        page_info=compute_page_info(count, len(employees), page, take),
        employees=[EmployeeRead.model_validate(e) for e in employees],
    )


@router.get("/{employee_id}", response_model=EmployeeRead)
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
) -> Employee:
    return await _get_employee_or_404(db, employee_id)


# ── Mutations (Admin only) ──────────────────────────────────────────
@router.post("", response_model=EmployeeRead, status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Employee:
    _require_admin(current_user, "create")

    data = body.model_dump(exclude={"tech_stack"})
    employee = Employee(**data, is_employed_date=datetime.now(timezone.utc))
    employee.tech_stack = body.tech_stack
    db.add(employee)
    await db.commit()
    logger.info("Created employee %d (%s %s)", employee.id, employee.first_name, employee.last_name)
    return await _get_employee_or_404(db, employee.id)


@router.patch("/{employee_id}", response_model=EmployeeRead)
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Employee:
    """Partial update. ``isEmployedDate`` moves only when ``isEmployed`` flips."""
    _require_admin(current_user, "update")
    employee = await _get_employee_or_404(db, employee_id)

    changes = body.provided()
    if "is_employed" in changes and changes["is_employed"] != employee.is_employed:
        employee.is_employed_date = datetime.now(timezone.utc)
    if "tech_stack" in changes:
        employee.tech_stack = changes.pop("tech_stack")

    for field, value in changes.items():
        setattr(employee, field, value)

    await db.commit()
    logger.info("Updated employee %d (fields: %s)", employee_id, sorted(body.model_fields_set))
    return await _get_employee_or_404(db, employee_id)


@router.put("/{employee_id}/image", response_model=EmployeeRead)
async def upload_employee_image(
    employee_id: int,
    image: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Employee:
    _require_admin(current_user, "update")
    employee = await _get_employee_or_404(db, employee_id)

    image_data = await read_image(image)
    if image_data is None:
        raise BadInputError("Image not provided.")
    employee.image = image_data
    await db.commit()
    logger.info("Replaced image of employee %d", employee_id)
    return await _get_employee_or_404(db, employee_id)


@router.delete("/{employee_id}", status_code=204)
async def delete_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    """Delete an employee, its project memberships and any user link."""
    _require_admin(current_user, "delete")
    employee = await _get_employee_or_404(db, employee_id)

    await purge_employee(db, employee)
    await db.commit()
    logger.info("Deleted employee %d", employee_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
