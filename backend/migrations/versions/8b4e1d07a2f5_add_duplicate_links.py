"""Add duplicate links and a coordinate index to reports.

Revision ID: 8b4e1d07a2f5
Revises: 7f3a9c21d4e8
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b4e1d07a2f5"
down_revision: str | None = "7f3a9c21d4e8"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column(
        "reports",
        sa.Column("duplicate_links", sa.JSON(), server_default=sa.text("'[]'"), nullable=False),
    )
    op.create_index(
        "idx_reports_coordinates",
        "reports",
        ["latitude", "longitude"],
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_index("idx_reports_coordinates", table_name="reports", if_exists=True)
    op.drop_column("reports", "duplicate_links")
