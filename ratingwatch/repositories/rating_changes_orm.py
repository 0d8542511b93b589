"""Rating changes repository using SQLAlchemy ORM.

Usage:
    from ratingwatch.repositories import rating_changes_orm as rating_changes_repo

    records = await rating_changes_repo.list_rating_changes(plan)
    latest = await rating_changes_repo.get_latest_rating_change("AAPL")
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import Row, select
from sqlalchemy.exc import SQLAlchemyError

from ratingwatch.core.exceptions import DatabaseError
from ratingwatch.core.logging import get_logger
from ratingwatch.database.connection import get_session
from ratingwatch.database.orm import RatingChange
from ratingwatch.services.query_builder import QueryPlan

logger = get_logger("repositories.rating_changes_orm")


# =============================================================================
# LISTING
# =============================================================================


async def list_rating_changes(plan: QueryPlan) -> Sequence[RatingChange]:
    """Run a listing plan and return one page of records."""
    try:
        async with get_session() as session:
            result = await session.execute(plan.to_select())
            return result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Listing rating changes failed: {e}")
        raise DatabaseError(message=str(e)) from e


async def get_latest_rating_change(ticker: str) -> RatingChange | None:
    """Get the most recent record for a ticker, or None if it has none."""
    try:
        async with get_session() as session:
            result = await session.execute(
                select(RatingChange)
                .where(RatingChange.ticker == ticker)
                .order_by(
                    RatingChange.time.desc(),
                    RatingChange.time_nanos.desc(),
                    RatingChange.id.desc(),
                )
                .limit(1)
            )
            return result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Lookup for {ticker} failed: {e}")
        raise DatabaseError(message=str(e)) from e


# =============================================================================
# RECOMMENDATION INPUT
# =============================================================================


async def list_latest_priced() -> Sequence[Row]:
    """Latest record per ticker among those with both targets and a nonzero price.

    Uses ``DISTINCT ON (ticker)`` with an explicit tie-break on time, time_nanos, then id.
    """
    stmt = (
        select(
            RatingChange.id,
            RatingChange.ticker,
            RatingChange.company,
            RatingChange.brokerage,
            RatingChange.rating_from,
            RatingChange.rating_to,
            RatingChange.target_from,
            RatingChange.target_to,
            RatingChange.current_price,
            RatingChange.time,
            RatingChange.time_nanos,
        )
        .where(
            RatingChange.target_from.isnot(None),
            RatingChange.target_to.isnot(None),
            RatingChange.current_price.isnot(None),
            RatingChange.current_price != 0,
        )
        .distinct(RatingChange.ticker)
        .order_by(
            RatingChange.ticker,
            RatingChange.time.desc(),
            RatingChange.time_nanos.desc(),
            RatingChange.id.desc(),
        )
    )
    try:
        async with get_session() as session:
            result = await session.execute(stmt)
            return result.all()
    except SQLAlchemyError as e:
        logger.error(f"Loading recommendation candidates failed: {e}")
        raise DatabaseError(message=str(e)) from e


# =============================================================================
# INGESTION
# =============================================================================


async def insert_rating_change(record: RatingChange) -> int:
    """Insert one record and return its id."""
    try:
        async with get_session() as session:
            session.add(record)
            await session.commit()
            return record.id
    except SQLAlchemyError as e:
        raise DatabaseError(message=str(e)) from e
