"""Derived statistics snapshots.

These tables are caches over the reports table and can be dropped and rebuilt at
any time by app.services.stats.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.enums import Level


class SubmitterStats(Base):
    """Per-submitter counts, points and level."""

    __tablename__ = "submitter_stats"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    submitted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pending: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    verified: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    in_progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    resolved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[str] = mapped_column(String(20), default=Level.BRONZE.value, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return f"<SubmitterStats {self.user_id}: {self.points} pts ({self.level})>"


class OperatorStats(Base):
    """System-wide management stats, one snapshot per operator."""

    __tablename__ = "operator_stats"

    operator_id: Mapped[int] = mapped_column(
        ForeignKey("operators.id", ondelete="CASCADE"), primary_key=True
    )
    total_managed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    resolved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    in_progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pending: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    users_managed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_resolution_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    efficiency_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )


class ReportStatusCount(Base):
    """
    Incremental per-status counter.

    Adjusted in the same transaction as each create/status mutation and rebuilt
    from a full scan by the reconciliation job.
    """

    __tablename__ = "report_status_counts"

    # One of ReportStatus values
    status: Mapped[str] = mapped_column(String(20), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<ReportStatusCount {self.status}: {self.count}>"
