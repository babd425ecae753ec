"""Shared column types and mixins."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

# BIGINT on Postgres; SQLite only auto-increments INTEGER PRIMARY KEY
Identifier = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IDMixin:
    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)


class TimestampMixin:
    """``created_at`` is set once; ``updated_at`` moves on every UPDATE."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )
