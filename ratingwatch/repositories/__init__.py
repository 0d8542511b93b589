"""Data access layer repositories.

Each repository module provides async functions for database operations.
All code uses SQLAlchemy ORM models from `ratingwatch.database.orm` with the
`get_session()` context manager.

ORM-based repositories:
- rating_changes_orm: listing, latest-per-ticker and inserts for rating changes
"""

from . import rating_changes_orm

__all__ = [
    "rating_changes_orm",
]
