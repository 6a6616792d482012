"""SQLAlchemy declarative base and shared mixins."""
from datetime import datetime
from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntId = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Tables carry no schema; the engine maps them into STORAGE_SCHEMA on
    PostgreSQL via ``schema_translate_map``.
    """
    pass


class CreatedAtMixin:
    """Adds a server-stamped created_at column."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
