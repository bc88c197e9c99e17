"""
Closed value sets shared by models, schemas and permission checks.
"""

from __future__ import annotations

import enum

from sqlalchemy import Enum as SAEnum


class Role(str, enum.Enum):
    ADMIN = "Admin"
    GUEST = "Guest"


class Department(str, enum.Enum):
    ENGINEERING = "Engineering"
    DESIGN = "Design"
    MARKETING = "Marketing"
    SALES = "Sales"
    HUMAN_RESOURCES = "HumanResources"
    FINANCE = "Finance"
    MANAGEMENT = "Management"


class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    RSD = "RSD"


class TechStack(str, enum.Enum):
    FRONTEND = "Frontend"
    BACKEND = "Backend"
    FULLSTACK = "Fullstack"
    MOBILE = "Mobile"
    DEVOPS = "DevOps"
    QA = "QA"
    DATA = "Data"
    DESIGN = "Design"


def sql_enum(enum_cls: type[enum.Enum], name: str) -> SAEnum:
    """Store enum *values* (``"Admin"``) rather than member names."""
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
