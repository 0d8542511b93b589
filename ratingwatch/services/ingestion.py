"""
Rating-change feed ingestion.

Walks the paginated upstream feed, enriches each item with the current market
price and stores it. A page request that fails aborts the run; a single item
that cannot be parsed or stored is logged and skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import ValidationError

from ratingwatch.core.config import settings
from ratingwatch.core.data_helpers import parse_money, parse_timestamp, split_timestamp
from ratingwatch.core.exceptions import DatabaseError, ExternalServiceError
from ratingwatch.core.logging import get_logger
from ratingwatch.database.orm import RatingChange
from ratingwatch.repositories import rating_changes_orm as rating_changes_repo
from ratingwatch.schemas.feed import FeedItem, FeedPage
from ratingwatch.services.prices import get_current_price

logger = get_logger("services.ingestion")


@dataclass
class IngestionSummary:
    """Counters for one ingestion run."""

    pages: int = 0
    fetched: int = 0
    stored: int = 0
    skipped: int = 0


def parse_feed_item(item: FeedItem, current_price: float = 0.0) -> RatingChange:
    """Convert a feed item into an unsaved ``RatingChange``.

    Raises:
        ValueError: A target or the timestamp cannot be parsed; the message
            names the offending field.
    """
    try:
        target_from = parse_money(item.target_from)
    except ValueError as e:
        raise ValueError(f"parsing target_from {item.target_from!r}: {e}") from e
    try:
        target_to = parse_money(item.target_to)
    except ValueError as e:
        raise ValueError(f"parsing target_to {item.target_to!r}: {e}") from e

    ts = parse_timestamp(item.time)
    if ts is None:
        raise ValueError(f"parsing time {item.time!r}: not an RFC 3339 timestamp")
    time, nanos = split_timestamp(ts)

    return RatingChange(
        ticker=item.ticker,
        company=item.company,
        brokerage=item.brokerage,
        action=item.action,
        rating_from=item.rating_from,
        rating_to=item.rating_to,
        target_from=target_from,
        target_to=target_to,
        time=time,
        time_nanos=nanos,
        current_price=current_price,
    )


async def fetch_page(
    client: httpx.AsyncClient,
    endpoint: str,
    token: str,
    next_page: str = "",
) -> FeedPage:
    """Fetch one feed page.

    Raises:
        ExternalServiceError: Transport failure, non-200 status or a body that
            is not a feed page.
    """
    params = {"next_page": next_page} if next_page else None
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }
    try:
        response = await client.get(endpoint, params=params, headers=headers)
    except httpx.RequestError as exc:
        logger.warning(f"Feed request failed: {exc}")
        raise ExternalServiceError(message="Rating feed unavailable") from exc

    if response.status_code != httpx.codes.OK:
        logger.warning(f"Feed returned HTTP {response.status_code}")
        raise ExternalServiceError(
            message=f"Rating feed returned HTTP {response.status_code}",
            details={"status_code": response.status_code},
        )

    try:
        return FeedPage.model_validate_json(response.content)
    except ValidationError as exc:
        raise ExternalServiceError(message=f"Rating feed sent an invalid page: {exc}") from exc


async def store_feed_item(item: FeedItem) -> bool:
    """Parse, price and insert one item. Returns False if it was skipped."""
    try:
        record = parse_feed_item(item)
    except ValueError as e:
        logger.warning(f"Skipping {item.ticker}: {e}")
        return False

    record.current_price = await get_current_price(item.ticker)
    try:
        await rating_changes_repo.insert_rating_change(record)
    except DatabaseError as e:
        logger.warning(f"Failed to insert {item.ticker}: {e.message}")
        return False
    return True


async def fetch_and_store_all_pages(
    client: Optional[httpx.AsyncClient] = None,
    endpoint: Optional[str] = None,
    token: Optional[str] = None,
) -> IngestionSummary:
    """Walk every feed page and store its items.

    Stops at the first empty page or when ``next_page`` is empty.
    """
    endpoint = endpoint or settings.feed_api_endpoint
    token = token if token is not None else settings.feed_bearer_token
    if not endpoint:
        raise ExternalServiceError(message="API_ENDPOINT is not configured")

    summary = IngestionSummary()
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.external_api_timeout)

    try:
        next_key = ""
        while True:
            page = await fetch_page(client, endpoint, token, next_key)
            summary.pages += 1
            if not page.items:
                break

            for item in page.items:
                summary.fetched += 1
                if await store_feed_item(item):
                    summary.stored += 1
                else:
                    summary.skipped += 1

            logger.info(
                f"Feed page {summary.pages}: {len(page.items)} items",
                extra={"stored": summary.stored, "skipped": summary.skipped},
            )
            if not page.next_page:
                break
            next_key = page.next_page
    finally:
        if owns_client:
            await client.aclose()

    return summary
