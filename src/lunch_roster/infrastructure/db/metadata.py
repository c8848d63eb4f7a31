"""SQLAlchemy metadata definitions for roster bot tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()

roster_snapshots = sa.Table(
    "roster_snapshots",
    metadata,
    sa.Column("snapshot_key", sa.Text(), primary_key=True, nullable=False),
    sa.Column("document", sa.Text(), nullable=False),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)
