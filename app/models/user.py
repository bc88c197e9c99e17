"""
User & password-reset token models — authentication and role-based access.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.enums import Role, sql_enum


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    first_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    last_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    role: Role = Column(  # type: ignore[assignment]
        sql_enum(Role, "role"),
        nullable=False,
        default=Role.GUEST,
    )
    image: str | None = Column(Text, nullable=True)  # type: ignore[assignment]  # data URI
    employee_id: int | None = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("employees.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    employee = relationship("Employee", back_populates="user", lazy="selectin")


class ResetToken(Base):
    """At most one live password-reset token per user."""

    __tablename__ = "reset_tokens"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    token: str = Column(String(512), nullable=False, index=True)  # type: ignore[assignment]
    expiration_time: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]

    def is_expired(self, now: datetime | None = None) -> bool:
        expires = self.expiration_time
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return (now or datetime.now(timezone.utc)) >= expires
