"""Initial schema for RoadTracker.

Revision ID: 7f3a9c21d4e8
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7f3a9c21d4e8"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

REPORT_STATUSES = ("pending", "verified", "in-progress", "resolved", "rejected")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("picture", sa.String(length=500), nullable=True),
        sa.Column("role", sa.String(length=20), server_default="user", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )

    op.create_table(
        "operators",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "user_id",
            sa.String(length=64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("role", sa.String(length=20), server_default="admin", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reports_reviewed", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("reports_resolved", sa.Integer(), server_default=sa.text("0"), nullable=False),
        if_not_exists=True,
    )

    op.create_table(
        "reports",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "reporter_id",
            sa.String(length=64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("traffic_impact", sa.String(length=20), nullable=False),
        sa.Column("safety_risk", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("zip_code", sa.String(length=20), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("estimated_cost", sa.Float(), nullable=True),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column("contractor_name", sa.String(length=100), nullable=True),
        sa.Column("contractor_phone", sa.String(length=50), nullable=True),
        sa.Column("contractor_email", sa.String(length=255), nullable=True),
        sa.Column("contractor_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("contractor_assigned_by", sa.String(length=64), nullable=True),
        sa.Column("contractor_estimated_completion", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_by", sa.String(length=64), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.String(length=64), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        if_not_exists=True,
    )

    op.create_table(
        "report_votes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "report_id",
            sa.String(length=36),
            sa.ForeignKey("reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("direction", sa.String(length=4), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("report_id", "user_id", name="uq_report_votes_user"),
        if_not_exists=True,
    )

    op.create_table(
        "report_notes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "report_id",
            sa.String(length=36),
            sa.ForeignKey("reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author_id", sa.String(length=64), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )

    # Derived stats (rebuildable caches)
    op.create_table(
        "submitter_stats",
        sa.Column(
            "user_id",
            sa.String(length=64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("submitted", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("pending", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("verified", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("in_progress", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("resolved", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("points", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("level", sa.String(length=20), server_default="Bronze", nullable=False),
        sa.Column(
            "computed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )

    op.create_table(
        "operator_stats",
        sa.Column(
            "operator_id",
            sa.Integer(),
            sa.ForeignKey("operators.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("total_managed", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("resolved", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("in_progress", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("pending", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("users_managed", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "avg_resolution_days", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("efficiency_score", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "computed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )

    status_counts = op.create_table(
        "report_status_counts",
        sa.Column("status", sa.String(length=20), primary_key=True, nullable=False),
        sa.Column("count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        if_not_exists=True,
    )
    op.bulk_insert(status_counts, [{"status": s, "count": 0} for s in REPORT_STATUSES])

    # Indexes - users / operators
    op.create_index("ix_users_role", "users", ["role"], if_not_exists=True)
    op.create_index("ix_operators_is_active", "operators", ["is_active"], if_not_exists=True)

    # Indexes - reports
    op.create_index("ix_reports_reporter_id", "reports", ["reporter_id"], if_not_exists=True)
    op.create_index("ix_reports_status", "reports", ["status"], if_not_exists=True)
    op.create_index("ix_reports_priority", "reports", ["priority"], if_not_exists=True)
    op.create_index(
        "idx_reports_status_severity",
        "reports",
        ["status", "severity"],
        if_not_exists=True,
    )
    op.create_index(
        "idx_reports_reporter_created",
        "reports",
        ["reporter_id", "created_at"],
        if_not_exists=True,
    )
    op.create_index(
        "idx_reports_cursor",
        "reports",
        [sa.text("created_at DESC"), sa.text("id DESC")],
        if_not_exists=True,
    )
    op.create_index(
        "ix_report_notes_report_id", "report_notes", ["report_id"], if_not_exists=True
    )


def downgrade() -> None:
    op.drop_index("ix_report_notes_report_id", table_name="report_notes", if_exists=True)
    op.drop_index("idx_reports_cursor", table_name="reports", if_exists=True)
    op.drop_index("idx_reports_reporter_created", table_name="reports", if_exists=True)
    op.drop_index("idx_reports_status_severity", table_name="reports", if_exists=True)
    op.drop_index("ix_reports_priority", table_name="reports", if_exists=True)
    op.drop_index("ix_reports_status", table_name="reports", if_exists=True)
    op.drop_index("ix_reports_reporter_id", table_name="reports", if_exists=True)
    op.drop_index("ix_operators_is_active", table_name="operators", if_exists=True)
    op.drop_index("ix_users_role", table_name="users", if_exists=True)

    op.drop_table("report_status_counts", if_exists=True)
    op.drop_table("operator_stats", if_exists=True)
    op.drop_table("submitter_stats", if_exists=True)
    op.drop_table("report_notes", if_exists=True)
    op.drop_table("report_votes", if_exists=True)
    op.drop_table("reports", if_exists=True)
    op.drop_table("operators", if_exists=True)
    op.drop_table("users", if_exists=True)
