"""Rating change listing and lookup routes."""

from __future__ import annotations

from fastapi import APIRouter, Path, Request

from ratingwatch.core.exceptions import NotFoundError
from ratingwatch.core.logging import get_logger
from ratingwatch.repositories import rating_changes_orm as rating_changes_repo
from ratingwatch.schemas.stocks import RatingChangeItem, RatingChangeListResponse
from ratingwatch.services.query_builder import FilterSpec, build_query_plan


logger = get_logger("api.routes.stocks")

router = APIRouter()


def _validate_ticker_path(ticker: str) -> str:
    """Normalize a ticker from the path."""
    return ticker.strip().upper()


@router.get(
    "",
    response_model=RatingChangeListResponse,
    summary="List rating changes",
    description=(
        "Search, filter, sort and page rating changes. Filters: search, action, "
        "brokerage, rating_from, rating_to (comma-separated lists), "
        "min_target_from, max_target_from, min_target_to, max_target_to, "
        "date_from, date_to (RFC 3339). Paging: sort, order, limit, offset. "
        "Malformed filter values are ignored; an unknown sort field is a 400."
    ),
)
async def list_stocks(request: Request) -> RatingChangeListResponse:
    """List rating changes matching the query-string filters."""
    # Raw query params: malformed values must degrade to "no filter", not a 422
    spec = FilterSpec.from_query_params(request.query_params)
    plan = build_query_plan(spec)
    records = await rating_changes_repo.list_rating_changes(plan)
    return RatingChangeListResponse(
        items=[RatingChangeItem.from_orm_record(r) for r in records]
    )


@router.get(
    "/{ticker}",
    response_model=RatingChangeItem,
    summary="Latest rating change for a ticker",
)
async def get_stock(
    ticker: str = Path(..., min_length=1, max_length=20, description="Ticker symbol"),
) -> RatingChangeItem:
    """Return the most recent rating change for a ticker."""
    symbol = _validate_ticker_path(ticker)
    record = await rating_changes_repo.get_latest_rating_change(symbol)
    if record is None:
        raise NotFoundError(message=f"No records for ticker {symbol}")
    return RatingChangeItem.from_orm_record(record)
