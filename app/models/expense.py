"""
Expense model — an amount booked by a user, optionally against an employee.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Column, Date, DateTime, Float, ForeignKey, Index,
                        Integer, String)

from app.db.base import Base
from app.models.enums import Currency, sql_enum


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (Index("ix_expense_currency_date", "currency", "date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    amount: float = Column(Float, nullable=False)  # type: ignore[assignment]
    currency: Currency = Column(sql_enum(Currency, "currency"), nullable=False)  # type: ignore[assignment]
    date = Column(
        Date,
        nullable=False,
        default=lambda: datetime.now(timezone.utc).date(),
    )
    description: str | None = Column(String(1000), nullable=True)  # type: ignore[assignment]
    employee_id: int | None = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    owner_id: int | None = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
