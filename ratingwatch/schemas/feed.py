"""Schemas for the upstream rating-change feed."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class FeedItem(BaseModel):
    """One rating change as delivered by the feed. Targets look like ``"$4.20"``."""

    model_config = ConfigDict(extra="ignore")

    ticker: str
    company: str = ""
    brokerage: str = ""
    action: str = ""
    rating_from: str = ""
    rating_to: str = ""
    target_from: str = ""
    target_to: str = ""
    time: str = Field(..., description="RFC 3339 timestamp, e.g. 2025-01-13T00:30:05.813548892Z")


class FeedPage(BaseModel):
    """One page of the feed; an empty ``next_page`` marks the last page."""

    model_config = ConfigDict(extra="ignore")

    items: List[FeedItem] = Field(default_factory=list)
    next_page: str | None = ""
