"""
Schema creation and first-run seeding.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.security import get_password_hash
from app.db.base import Base

# Every model must be imported so metadata.create_all sees its table
from app.models import employee, expense, project, user  # noqa: F401
from app.models.enums import Role
from app.models.user import User

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def seed_first_admin(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Create the configured Admin account unless a user with that email exists.

    Admins cannot be created through the API, so this is the only way in.
    """
    async with session_factory() as session:
        existing = await session.scalar(
            select(User.id).where(User.email == settings.FIRST_ADMIN_EMAIL.lower())
        )
        if existing is not None:
            return
        session.add(
            User(
                email=settings.FIRST_ADMIN_EMAIL.lower(),
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                first_name="System",
                last_name="Administrator",
                role=Role.ADMIN,
            )
        )
        await session.commit()
        logger.info("Default admin created: %s (password: <redacted>)", settings.FIRST_ADMIN_EMAIL)
