"""Pydantic schemas for Expense CRUD and the per-currency summary."""

from __future__ import annotations

import datetime as dt

from pydantic import field_validator

from app.models.enums import Currency
from app.schemas.common import CamelModel, PatchModel, require_non_empty


def _positive(v: float | None) -> float:
    if v is None or v <= 0:
        raise ValueError("Amount must be greater than zero")
    return v


class ExpenseCreate(CamelModel):
    name: str
    amount: float
    currency: Currency
    date: dt.date | None = None
    description: str | None = None
    employee_id: int | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return require_non_empty(v, "Name")

    @field_validator("amount")
    @classmethod
    def _amount(cls, v: float) -> float:
        return _positive(v)


class ExpenseUpdate(PatchModel):
    name: str | None = None
    amount: float | None = None
    currency: Currency | None = None
    date: dt.date | None = None
    description: str | None = None
    employee_id: int | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Name must not be null")
        return require_non_empty(v, "Name")

    @field_validator("amount")
    @classmethod
    def _amount(cls, v: float | None) -> float:
        return _positive(v)

    @field_validator("currency", "date")
    @classmethod
    def _not_null(cls, v: object) -> object:
        if v is None:
            raise ValueError("Field must not be null")
        return v


class ExpenseRead(CamelModel):
    id: int
    name: str
    amount: float
    currency: Currency
    date: dt.date
    description: str | None
    employee_id: int | None
    owner_id: int | None
    created_at: dt.datetime | None


class CurrencyTotal(CamelModel):
    currency: Currency
    amount: float


class ExpensesInfo(CamelModel):
    count: int
    totals: list[CurrencyTotal]
