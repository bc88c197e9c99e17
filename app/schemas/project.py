"""Pydantic schemas for Project CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from app.schemas.common import CamelModel, PatchModel, require_non_empty


class ProjectMemberIn(CamelModel):
    employee_id: int
    part_time: bool = False


class ProjectCreate(CamelModel):
    name: str
    description: str | None = None
    employees: list[ProjectMemberIn] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return require_non_empty(v, "Name")


class ProjectUpdate(PatchModel):
    name: str | None = None
    description: str | None = None
    employees: list[ProjectMemberIn] | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Name must not be null")
        return require_non_empty(v, "Name")

    @field_validator("employees")
    @classmethod
    def _employees(cls, v: list[ProjectMemberIn] | None) -> list[ProjectMemberIn]:
        return v or []


class EmployeeBrief(CamelModel):
    id: int
    first_name: str
    last_name: str


class ProjectMemberRead(CamelModel):
    part_time: bool
    employee: EmployeeBrief


class ProjectRead(CamelModel):
    id: int
    name: str
    description: str | None
    created_at: datetime | None
    employees: list[ProjectMemberRead] = Field(default_factory=list)
