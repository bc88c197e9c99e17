"""Shared pydantic bases and small response bodies."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^\w+([.+-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,})+$")


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys (``firstName``) over snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PatchModel(CamelModel):
    """Partial-update body.

    Only keys present in the request end up in ``model_fields_set``; that is
    what separates "not provided" from "explicitly set to null".
    """

    def provided(self) -> dict:
        return self.model_dump(exclude_unset=True)

    def is_provided(self, field: str) -> bool:
        return field in self.model_fields_set


class MessageResponse(BaseModel):
    message: str


def normalise_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError("Invalid email address")
    return v


def require_non_empty(v: str, field: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{field} must not be empty")
    return v


class HealthResponse(BaseModel):
    db: bool
    version: str
