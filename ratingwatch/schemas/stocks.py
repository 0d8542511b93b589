"""Rating change and recommendation schemas."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from ratingwatch.core.data_helpers import format_money, format_timestamp
from ratingwatch.database.orm import RatingChange
from ratingwatch.services.recommendations import RankedCandidate


class RatingChangeItem(BaseModel):
    """One rating change as served by the API."""

    ticker: str
    company: str
    brokerage: str
    action: str
    rating_from: str
    rating_to: str
    target_from: str = Field(..., description='Price target as a string, "" when absent', examples=["4.20"])
    target_to: str = Field(..., description='Price target as a string, "" when absent', examples=["4.70"])
    time: str = Field(..., examples=["2025-01-13T00:30:05.813548892Z"])

    @classmethod
    def from_orm_record(cls, record: RatingChange) -> RatingChangeItem:
        return cls(
            ticker=record.ticker,
            company=record.company,
            brokerage=record.brokerage,
            action=record.action,
            rating_from=record.rating_from,
            rating_to=record.rating_to,
            target_from=format_money(record.target_from),
            target_to=format_money(record.target_to),
            time=format_timestamp(record.time, record.time_nanos or 0),
        )


class RatingChangeListResponse(BaseModel):
    """Response for the rating change listing."""

    items: List[RatingChangeItem]


class RecommendationItem(BaseModel):
    """One ranked recommendation."""

    ticker: str
    company: str
    brokerage: str
    rating_from: str
    rating_to: str
    target_from: float
    target_to: float
    current_price: float
    upside_pct: float = Field(..., description="(average target - price) / price")
    composite: float = Field(..., description="0.7 * upside_pct + 0.3 * rating delta")

    @classmethod
    def from_candidate(cls, candidate: RankedCandidate) -> RecommendationItem:
        return cls(**candidate.to_dict())
