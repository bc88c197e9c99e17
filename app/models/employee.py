"""
Employee, tech-stack tag & project membership models — core business domain.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Boolean, Column, DateTime, Float, ForeignKey, Integer,
                        String, Text, UniqueConstraint)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.enums import Currency, Department, TechStack, sql_enum


class Employee(Base):
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    first_name: str = Column(String(100), nullable=False, index=True)  # type: ignore[assignment]
    last_name: str = Column(String(100), nullable=False, index=True)  # type: ignore[assignment]
    department: Department | None = Column(sql_enum(Department, "department"), nullable=True)  # type: ignore[assignment]
    salary: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    currency: Currency | None = Column(sql_enum(Currency, "currency"), nullable=True)  # type: ignore[assignment]
    is_employed: bool = Column(Boolean, nullable=False, default=True, server_default="true")  # type: ignore[assignment]
    is_employed_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    image: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    tech_stack_entries = relationship(
        "EmployeeTechStack",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="EmployeeTechStack.tag",
    )
    project_links = relationship(
        "ProjectEmployee",
        back_populates="employee",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    user = relationship("User", back_populates="employee", uselist=False, passive_deletes=True)

    @property
    def tech_stack(self) -> list[TechStack]:
        return [entry.tag for entry in self.tech_stack_entries]

    @tech_stack.setter
    def tech_stack(self, tags: list[TechStack] | None) -> None:
        # Reuse surviving rows so the (employee_id, tag) constraint never sees
        # an insert before the matching delete.
        existing = {entry.tag: entry for entry in self.tech_stack_entries}
        unique = sorted(set(tags or []), key=lambda t: t.value)
        self.tech_stack_entries = [existing.get(tag) or EmployeeTechStack(tag=tag) for tag in unique]

    @property
    def projects(self) -> list["ProjectEmployee"]:
        return list(self.project_links)


class EmployeeTechStack(Base):
    __tablename__ = "employee_tech_stack"
    __table_args__ = (UniqueConstraint("employee_id", "tag", name="uq_employee_tech_tag"),)

    id: int = Column(Integer, primary_key=True)  # type: ignore[assignment]
    employee_id: int = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag: TechStack = Column(sql_enum(TechStack, "tech_stack"), nullable=False)  # type: ignore[assignment]


class ProjectEmployee(Base):
    """Membership of an employee in a project, with its part-time flag."""

    __tablename__ = "project_employees"
    __table_args__ = (UniqueConstraint("project_id", "employee_id", name="uq_project_employee"),)

    id: int = Column(Integer, primary_key=True)  # type: ignore[assignment]
    project_id: int = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: int = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    part_time: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]

    project = relationship("Project", back_populates="employee_links", lazy="selectin")
    employee = relationship("Employee", back_populates="project_links")
