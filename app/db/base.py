"""Declarative base shared by every ORM model."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
# Models use plain ``x: int = Column(...)`` annotations rather than Mapped[]
Base.__allow_unmapped__ = True
