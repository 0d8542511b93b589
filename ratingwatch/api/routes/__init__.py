"""API routes package."""

from . import health, recommend, stocks


__all__ = [
    "health",
    "recommend",
    "stocks",
]
