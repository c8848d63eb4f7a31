"""Create single-document roster snapshot table."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_roster_snapshots"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create roster snapshot table holding the whole store as one JSON document."""

    op.create_table(
        "roster_snapshots",
        sa.Column("snapshot_key", sa.Text(), primary_key=True, nullable=False),
        sa.Column("document", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )


def downgrade() -> None:
    """Drop roster snapshot table."""

    op.drop_table("roster_snapshots")
