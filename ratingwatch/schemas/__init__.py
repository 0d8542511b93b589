"""Pydantic schemas for API responses and the upstream feed."""

from .common import ErrorResponse, HealthResponse
from .feed import FeedItem, FeedPage
from .stocks import RatingChangeItem, RatingChangeListResponse, RecommendationItem


__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "FeedItem",
    "FeedPage",
    "RatingChangeItem",
    "RatingChangeListResponse",
    "RecommendationItem",
]
