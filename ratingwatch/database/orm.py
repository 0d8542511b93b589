"""SQLAlchemy ORM models for Ratingwatch.

This module defines all database tables using SQLAlchemy 2.0 ORM style.
Uses async support via asyncpg driver.

Usage:
    from ratingwatch.database.orm import RatingChange
    from ratingwatch.database.connection import get_session

    async with get_session() as session:
        result = await session.execute(
            select(RatingChange).where(RatingChange.ticker == "AAPL")
        )
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    Index,
    MetaData,
    Numeric,
    SmallInteger,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Naming convention for constraints and indexes (deterministic names for Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# RATING CHANGES
# =============================================================================


class RatingChange(Base):
    """One analyst rating action on one ticker. Written once by ingestion, never updated."""
    __tablename__ = "rating_changes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    ticker: Mapped[str] = mapped_column(String(20), nullable=False)
    company: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    brokerage: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    action: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    rating_from: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    rating_to: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    target_from: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    target_to: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    time_nanos: Mapped[int] = mapped_column(
        SmallInteger, nullable=False, default=0, server_default=text("0")
    )  # sub-microsecond part of time, 0-999
    current_price: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default=text("0")
    )

    __table_args__ = (
        Index("idx_rating_changes_ticker", "ticker"),
        Index("idx_rating_changes_ticker_time", "ticker", "time"),
        Index("idx_rating_changes_time", "time"),
    )
