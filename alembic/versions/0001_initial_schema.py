"""Initial LeasePool schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the items and location summary tables with their indexes."""
    op.create_table(
        "items",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("pool", sa.String(length=100), nullable=False),
        sa.Column("reserved_at", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("last_processed", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("sleep_until", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_items_claimable",
        "items",
        ["pool", "sleep_until", "reserved_at", "last_processed"],
    )
    op.create_index("idx_items_reserved_at", "items", ["reserved_at"])

    op.create_table(
        "location_summaries",
        sa.Column("location", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("avg_temp_total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("avg_temp_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_dewp_total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("avg_dewp_count", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    """Drop the LeasePool tables."""
    op.drop_table("location_summaries")
    op.drop_index("idx_items_reserved_at", table_name="items")
    op.drop_index("idx_items_claimable", table_name="items")
    op.drop_table("items")
