"""Tests for feed ingestion."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from ratingwatch.core.exceptions import DatabaseError, ExternalServiceError
from ratingwatch.schemas.feed import FeedItem
from ratingwatch.services import ingestion
from ratingwatch.services.ingestion import (
    fetch_and_store_all_pages,
    fetch_page,
    parse_feed_item,
)

ENDPOINT = "https://feed.example.com/list"


def feed_item(**overrides) -> dict:
    values = {
        "ticker": "BSBR",
        "company": "Banco Santander (Brasil)",
        "brokerage": "The Goldman Sachs Group",
        "action": "upgraded by",
        "rating_from": "Sell",
        "rating_to": "Neutral",
        "target_from": "$4.20",
        "target_to": "$4.70",
        "time": "2025-01-13T00:30:05.813548892Z",
    }
    values.update(overrides)
    return values


class TestParseFeedItem:
    def test_parses_targets_and_nanosecond_time(self):
        record = parse_feed_item(FeedItem(**feed_item()), current_price=4.5)
        assert record.target_from == Decimal("4.20")
        assert record.target_to == Decimal("4.70")
        assert record.time == datetime(2025, 1, 13, 0, 30, 5, 813548, tzinfo=timezone.utc)
        assert record.time_nanos == 892
        assert record.current_price == 4.5

    def test_thousands_separator(self):
        record = parse_feed_item(FeedItem(**feed_item(target_to="$1,234.50")))
        assert record.target_to == Decimal("1234.50")

    def test_blank_target_is_null(self):
        record = parse_feed_item(FeedItem(**feed_item(target_from="")))
        assert record.target_from is None

    def test_bad_target_names_field(self):
        with pytest.raises(ValueError, match="target_from"):
            parse_feed_item(FeedItem(**feed_item(target_from="$abc")))

    def test_bad_time_names_field(self):
        with pytest.raises(ValueError, match="time"):
            parse_feed_item(FeedItem(**feed_item(time="not a time")))


def _transport(pages: dict[str, dict], seen: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        key = request.url.params.get("next_page", "")
        return httpx.Response(200, content=json.dumps(pages[key]).encode())

    return httpx.MockTransport(handler)


class TestFetchPage:
    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        seen: list[httpx.Request] = []
        pages = {"": {"items": [feed_item()], "next_page": ""}}
        async with httpx.AsyncClient(transport=_transport(pages, seen)) as client:
            page = await fetch_page(client, ENDPOINT, "secret")
        assert len(page.items) == 1
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert "next_page" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_non_200_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await fetch_page(client, ENDPOINT, "secret")
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_invalid_body_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(ExternalServiceError):
                await fetch_page(client, ENDPOINT, "secret")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ExternalServiceError):
                await fetch_page(client, ENDPOINT, "secret")


class TestFetchAndStoreAllPages:
    @pytest.fixture(autouse=True)
    def fake_price(self, monkeypatch):
        monkeypatch.setattr(ingestion, "get_current_price", AsyncMock(return_value=12.5))

    @pytest.mark.asyncio
    async def test_walks_pages_until_next_page_empty(self, monkeypatch):
        insert = AsyncMock(return_value=1)
        monkeypatch.setattr(ingestion.rating_changes_repo, "insert_rating_change", insert)
        seen: list[httpx.Request] = []
        pages = {
            "": {"items": [feed_item(ticker="A"), feed_item(ticker="B")], "next_page": "B"},
            "B": {"items": [feed_item(ticker="C")], "next_page": ""},
        }

        async with httpx.AsyncClient(transport=_transport(pages, seen)) as client:
            summary = await fetch_and_store_all_pages(client, ENDPOINT, "secret")

        assert (summary.pages, summary.fetched, summary.stored, summary.skipped) == (2, 3, 3, 0)
        assert seen[1].url.params["next_page"] == "B"
        stored = [call.args[0] for call in insert.await_args_list]
        assert [r.ticker for r in stored] == ["A", "B", "C"]
        assert all(r.current_price == 12.5 for r in stored)

    @pytest.mark.asyncio
    async def test_stops_on_empty_page(self, monkeypatch):
        monkeypatch.setattr(
            ingestion.rating_changes_repo, "insert_rating_change", AsyncMock(return_value=1)
        )
        seen: list[httpx.Request] = []
        pages = {"": {"items": [], "next_page": "X"}}

        async with httpx.AsyncClient(transport=_transport(pages, seen)) as client:
            summary = await fetch_and_store_all_pages(client, ENDPOINT, "secret")

        assert summary.pages == 1
        assert summary.fetched == 0
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_bad_items_are_skipped(self, monkeypatch):
        insert = AsyncMock(side_effect=[1, DatabaseError(message="duplicate")])
        monkeypatch.setattr(ingestion.rating_changes_repo, "insert_rating_change", insert)
        pages = {
            "": {
                "items": [
                    feed_item(ticker="A"),
                    feed_item(ticker="BAD", target_to="abc"),
                    feed_item(ticker="C"),
                ],
                "next_page": "",
            }
        }

        async with httpx.AsyncClient(transport=_transport(pages, [])) as client:
            summary = await fetch_and_store_all_pages(client, ENDPOINT, "secret")

        assert summary.stored == 1
        assert summary.skipped == 2
        assert insert.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_endpoint_raises(self, monkeypatch):
        monkeypatch.setattr(ingestion.settings, "feed_api_endpoint", "")
        with pytest.raises(ExternalServiceError):
            await fetch_and_store_all_pages(endpoint="")
