"""Recommendation ranking route."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter

from ratingwatch.schemas.stocks import RecommendationItem
from ratingwatch.services.recommendations import get_recommendations


router = APIRouter()


@router.get(
    "",
    response_model=List[RecommendationItem],
    summary="Top recommendations",
    description=(
        "Up to 10 tickers ranked by 0.7 x price upside to the average analyst "
        "target plus 0.3 x rating change direction, using each ticker's latest "
        "priced record."
    ),
)
async def recommend() -> List[RecommendationItem]:
    candidates = await get_recommendations()
    return [RecommendationItem.from_candidate(c) for c in candidates]
