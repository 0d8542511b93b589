"""Command line entrypoint.

    ratingwatch --mode serve   # start the HTTP API (default)
    ratingwatch --mode fetch   # load every page of the rating feed once
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

import uvicorn

from ratingwatch.core.config import settings
from ratingwatch.core.exceptions import AppException
from ratingwatch.core.logging import get_logger, setup_logging


logger = get_logger("cli")


async def run_fetch() -> int:
    """Run one ingestion pass; returns the process exit code."""
    from ratingwatch.database.connection import close_database, init_database
    from ratingwatch.services.ingestion import fetch_and_store_all_pages

    logger.info("Starting data fetch...")
    await init_database()
    try:
        summary = await fetch_and_store_all_pages()
    except AppException as e:
        logger.error(f"Fetch/store error: {e.message}")
        return 1
    finally:
        await close_database()

    logger.info(
        f"Data fetch complete: {summary.stored} stored, {summary.skipped} skipped "
        f"across {summary.pages} pages"
    )
    return 0


def run_serve() -> int:
    logger.info(f"Starting HTTP API on {settings.host}:{settings.port}...")
    uvicorn.run(
        "ratingwatch.api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ratingwatch",
        description="Analyst rating changes: feed ingestion and HTTP API.",
    )
    parser.add_argument(
        "--mode",
        choices=("serve", "fetch"),
        default="serve",
        help="'fetch' to load data, 'serve' to start the HTTP API",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.mode == "fetch":
        return asyncio.run(run_fetch())
    return run_serve()
