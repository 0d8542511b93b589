"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from ratingwatch.database.orm import RatingChange


@pytest.fixture(scope="function", autouse=True)
def reset_engine():
    """Dispose the SQLAlchemy engine around each test to avoid event loop reuse."""
    import ratingwatch.database.connection as db_conn

    async def _dispose():
        if db_conn._engine is not None:
            await db_conn._engine.dispose()

    yield

    if db_conn._engine is not None:
        try:
            asyncio.run(_dispose())
        except RuntimeError:
            pass
    db_conn._engine = None
    db_conn._session_factory = None


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    from ratingwatch.api.app import create_api_app

    app = create_api_app()
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def make_record():
    """Factory for unsaved RatingChange rows."""

    def _make(**overrides) -> RatingChange:
        values = {
            "id": 1,
            "ticker": "BSBR",
            "company": "Banco Santander (Brasil)",
            "brokerage": "The Goldman Sachs Group",
            "action": "upgraded by",
            "rating_from": "Sell",
            "rating_to": "Neutral",
            "target_from": Decimal("4.20"),
            "target_to": Decimal("4.70"),
            "time": datetime(2025, 1, 13, 0, 30, 5, 813548, tzinfo=timezone.utc),
            "time_nanos": 892,
            "current_price": 4.5,
        }
        values.update(overrides)
        return RatingChange(**values)

    return _make
