"""ASGI entrypoint: ``uvicorn ratingwatch.api.main:app``."""

from __future__ import annotations

from ratingwatch.api.app import create_api_app
from ratingwatch.core.logging import setup_logging


setup_logging()

app = create_api_app()
