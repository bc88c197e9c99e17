"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in production; aiosqlite is accepted for local runs.
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(database_url: str) -> dict:
    backend = make_url(database_url).get_backend_name()
    kwargs: dict = {"echo": False, "pool_pre_ping": True}
    if backend == "postgresql":
        kwargs.update(pool_size=20, max_overflow=10, pool_recycle=300)
    elif backend == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
logger.debug("Database engine created for backend %s", engine.url.get_backend_name())

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
