"""create_rating_changes

Revision ID: 001_rating_changes
Revises:
Create Date: 2025-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_rating_changes"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "rating_changes",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("ticker", sa.String(length=20), nullable=False),
        sa.Column("company", sa.Text(), server_default="", nullable=False),
        sa.Column("brokerage", sa.Text(), server_default="", nullable=False),
        sa.Column("action", sa.Text(), server_default="", nullable=False),
        sa.Column("rating_from", sa.Text(), server_default="", nullable=False),
        sa.Column("rating_to", sa.Text(), server_default="", nullable=False),
        sa.Column("target_from", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("target_to", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time_nanos", sa.SmallInteger(), server_default=sa.text("0"), nullable=False),
        sa.Column("current_price", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_rating_changes")),
    )
    op.create_index("idx_rating_changes_ticker", "rating_changes", ["ticker"], unique=False)
    op.create_index(
        "idx_rating_changes_ticker_time", "rating_changes", ["ticker", "time"], unique=False
    )
    op.create_index("idx_rating_changes_time", "rating_changes", ["time"], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_rating_changes_time", table_name="rating_changes")
    op.drop_index("idx_rating_changes_ticker_time", table_name="rating_changes")
    op.drop_index("idx_rating_changes_ticker", table_name="rating_changes")
    op.drop_table("rating_changes")
