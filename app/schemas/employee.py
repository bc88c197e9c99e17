"""Pydantic schemas for Employee CRUD and the paginated listing."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from app.core.uploads import validate_image_data_uri
from app.models.enums import Currency, Department, TechStack
from app.schemas.common import CamelModel, PatchModel, require_non_empty


# ── Nested project membership ───────────────────────────────────────
class ProjectBrief(CamelModel):
    id: int
    name: str


class EmployeeProjectRead(CamelModel):
    part_time: bool
    project: ProjectBrief


# ── Employee ────────────────────────────────────────────────────────
class EmployeeCreate(CamelModel):
    first_name: str
    last_name: str
    department: Department | None = None
    salary: float | None = None
    currency: Currency | None = None
    tech_stack: list[TechStack] = Field(default_factory=list)
    is_employed: bool = True
    image: str | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = require_non_empty(v, "Name")
        if len(v) > 100:
            raise ValueError("Name must not exceed 100 characters")
        return v

    @field_validator("salary")
    @classmethod
    def _salary(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("Salary must not be negative")
        return v

    @field_validator("image")
    @classmethod
    def _image(cls, v: str | None) -> str | None:
        return None if v is None else validate_image_data_uri(v)


class EmployeeUpdate(PatchModel):
    first_name: str | None = None
    last_name: str | None = None
    department: Department | None = None
    salary: float | None = None
    currency: Currency | None = None
    tech_stack: list[TechStack] | None = None
    is_employed: bool | None = None
    image: str | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("Name must not be null")
        return require_non_empty(v, "Name")

    @field_validator("salary")
    @classmethod
    def _salary(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("Salary must not be negative")
        return v

    @field_validator("is_employed")
    @classmethod
    def _is_employed(cls, v: bool | None) -> bool:
        if v is None:
            raise ValueError("isEmployed must not be null")
        return v

    @field_validator("image")
    @classmethod
    def _image(cls, v: str | None) -> str | None:
        return None if v is None else validate_image_data_uri(v)


class EmployeeRead(CamelModel):
    id: int
    first_name: str
    last_name: str
    department: Department | None
    salary: float | None
    currency: Currency | None
    tech_stack: list[TechStack]
    is_employed: bool
    is_employed_date: datetime | None
    image: str | None
    created_at: datetime | None
    projects: list[EmployeeProjectRead] = Field(default_factory=list)


class EmployeeSummary(CamelModel):
    """Employee without its project memberships (nested inside users/projects)."""

    id: int
    first_name: str
    last_name: str
    department: Department | None
    salary: float | None
    currency: Currency | None
    tech_stack: list[TechStack]
    is_employed: bool
    is_employed_date: datetime | None


# ── Listing ─────────────────────────────────────────────────────────
class PageInfo(CamelModel):
    total: int
    current_page: int
    last_page: int
    per_page: int


class EmployeePage(CamelModel):
    page_info: PageInfo
    employees: list[EmployeeRead]
