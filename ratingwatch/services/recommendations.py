"""
Buy/sell recommendation ranking from analyst rating changes.

Score formula
-------------
    avg_target = (target_from + target_to) / 2
    upside_pct = (avg_target - current_price) / current_price
    delta      = RATING_SCORES[rating_to] - RATING_SCORES[rating_from]
    composite  = 0.7 * upside_pct + 0.3 * delta

Only the latest record per ticker is considered, and only records with both
targets and a nonzero current price qualify. Candidates are ordered by
composite descending, ties broken by ticker ascending, and the top 10 are
returned.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from ratingwatch.core.data_helpers import safe_float
from ratingwatch.core.logging import get_logger
from ratingwatch.repositories import rating_changes_orm as rating_changes_repo

logger = get_logger("services.recommendations")

UPSIDE_WEIGHT = 0.7
RATING_DELTA_WEIGHT = 0.3
TOP_N = 10

_NO_TIME = datetime.min.replace(tzinfo=timezone.utc)

RATING_SCORES: Mapping[str, int] = MappingProxyType(
    {
        "Strong-Buy": 2,
        "Outperform": 2,
        "Market Outperform": 2,
        "Sector Outperform": 2,
        "Buy": 1,
        "Overweight": 1,
        "Equal Weight": 0,
        "Market Perform": 0,
        "Sector Perform": 0,
        "Hold": 0,
        "Unchanged": 0,
        "Underweight": -1,
        "Sell": -1,
        "Underperform": -2,
    }
)


class CandidateRowError(ValueError):
    """A candidate row is missing a value or holds a non-numeric one."""


@dataclass(frozen=True)
class RankedCandidate:
    """Latest qualifying record of one ticker with its computed scores."""

    ticker: str
    company: str
    brokerage: str
    rating_from: str
    rating_to: str
    target_from: float
    target_to: float
    current_price: float
    upside_pct: float
    composite: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def rating_score(label: str | None) -> int:
    """Ordinal score of a rating label; unknown labels score 0."""
    if label is None:
        return 0
    return RATING_SCORES.get(label, 0)


def compute_upside(target_from: float, target_to: float, current_price: float) -> float:
    """Fractional distance from the current price to the average target."""
    if current_price == 0:
        raise ZeroDivisionError("current_price must be nonzero")
    avg_target = (target_from + target_to) / 2
    return (avg_target - current_price) / current_price


def compute_composite(upside_pct: float, rating_from: str | None, rating_to: str | None) -> float:
    delta_score = rating_score(rating_to) - rating_score(rating_from)
    return UPSIDE_WEIGHT * upside_pct + RATING_DELTA_WEIGHT * delta_score


def _required_float(row: Mapping[str, Any], key: str) -> float:
    value = safe_float(row.get(key))
    if value is None:
        raise CandidateRowError(f"{key} is missing or not numeric: {row.get(key)!r}")
    return value


def build_candidate(row: Mapping[str, Any]) -> RankedCandidate | None:
    """Score one row. Returns None for a row without a usable price.

    Raises:
        CandidateRowError: A required field is missing or malformed.
    """
    ticker = row.get("ticker")
    if not ticker:
        raise CandidateRowError("ticker is missing")

    target_from = _required_float(row, "target_from")
    target_to = _required_float(row, "target_to")
    current_price = _required_float(row, "current_price")
    if current_price == 0:
        return None

    upside_pct = compute_upside(target_from, target_to, current_price)
    return RankedCandidate(
        ticker=ticker,
        company=row.get("company") or "",
        brokerage=row.get("brokerage") or "",
        rating_from=row.get("rating_from") or "",
        rating_to=row.get("rating_to") or "",
        target_from=target_from,
        target_to=target_to,
        current_price=current_price,
        upside_pct=upside_pct,
        composite=compute_composite(upside_pct, row.get("rating_from"), row.get("rating_to")),
    )


def latest_per_ticker(rows: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Keep the most recent row per ticker (time, time_nanos, then id). Input order is irrelevant."""
    best: dict[str, Mapping[str, Any]] = {}
    for row in rows:
        ticker = row.get("ticker")
        existing = best.get(ticker)
        if existing is None or _recency_key(row) > _recency_key(existing):
            best[ticker] = row
    return list(best.values())


def _recency_key(row: Mapping[str, Any]) -> tuple[bool, datetime, int, int]:
    time = row.get("time")
    if not isinstance(time, datetime):
        return False, _NO_TIME, 0, row.get("id") or 0
    return True, time, row.get("time_nanos") or 0, row.get("id") or 0


def rank_candidates(
    candidates: Iterable[RankedCandidate],
    n: int = TOP_N,
) -> list[RankedCandidate]:
    """Sort by composite descending, ticker ascending; keep the first ``n``."""
    return sorted(candidates, key=lambda c: (-c.composite, c.ticker))[:n]


def build_recommendations(
    rows: Iterable[Mapping[str, Any]],
    n: int = TOP_N,
) -> list[RankedCandidate]:
    """Score raw candidate rows and return the ranked top ``n``.

    Rows that cannot be decoded are logged and skipped.
    """
    candidates: list[RankedCandidate] = []
    for row in latest_per_ticker(rows):
        try:
            candidate = build_candidate(row)
        except CandidateRowError as e:
            logger.warning(f"Skipping candidate row for {row.get('ticker')!r}: {e}")
            continue
        if candidate is not None:
            candidates.append(candidate)

    ranked = rank_candidates(candidates, n=n)
    logger.debug(f"Ranked {len(candidates)} candidates, returning {len(ranked)}")
    return ranked


async def get_recommendations() -> list[RankedCandidate]:
    """Top-ranked recommendations from the latest priced record per ticker."""
    rows = await rating_changes_repo.list_latest_priced()
    return build_recommendations(row._mapping for row in rows)
