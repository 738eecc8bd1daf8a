"""Report model and its embedded sub-records (votes, admin notes)."""

import math
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.enums import ReportStatus, SafetyRisk, Severity, TrafficImpact, VoteDirection


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def days_to_resolve(created_at: datetime, resolved_at: datetime) -> int:
    """Whole days (rounded up) between submission and resolution."""
    elapsed = as_utc(resolved_at) - as_utc(created_at)
    return math.ceil(elapsed.total_seconds() / 86400)


class Report(Base):
    """
    One citizen-submitted road issue.

    `priority` is derived (see app.services.priority) and must only be written by
    the services. `verification_*` / `resolution_*` columns are stamped once by the
    status transition that first reaches verified / resolved.

    Every write bumps `version`; concurrent writers that read an older version fail
    with StaleDataError and are retried by the report service.
    """

    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    reporter_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Classification
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), default=Severity.MEDIUM.value, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ReportStatus.PENDING.value, nullable=False, index=True
    )
    traffic_impact: Mapped[str] = mapped_column(
        String(20), default=TrafficImpact.NONE.value, nullable=False
    )
    safety_risk: Mapped[str] = mapped_column(String(20), default=SafetyRisk.LOW.value, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)

    # Location
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    city: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(100))
    zip_code: Mapped[str | None] = mapped_column(String(20))

    description: Mapped[str] = mapped_column(Text, nullable=False)
    images: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    estimated_cost: Mapped[float | None] = mapped_column(Float)
    ai_analysis: Mapped[dict | None] = mapped_column(JSON)
    # [{"report_id": ..., "linked_at": iso timestamp}], oldest link first
    duplicate_links: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)

    # Contractor assignment
    contractor_name: Mapped[str | None] = mapped_column(String(100))
    contractor_phone: Mapped[str | None] = mapped_column(String(50))
    contractor_email: Mapped[str | None] = mapped_column(String(255))
    contractor_assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    contractor_assigned_by: Mapped[str | None] = mapped_column(String(64))
    contractor_estimated_completion: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Verification / resolution stamps
    verified_by: Mapped[str | None] = mapped_column(String(64))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    verification_notes: Mapped[str | None] = mapped_column(Text)
    resolved_by: Mapped[str | None] = mapped_column(String(64))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolution_notes: Mapped[str | None] = mapped_column(Text)

    # Metadata
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    votes: Mapped[list["ReportVote"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReportVote.id",
    )
    notes: Mapped[list["ReportNote"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReportNote.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_reports_status_severity", "status", "severity"),
        Index("idx_reports_reporter_created", "reporter_id", "created_at"),
        Index("idx_reports_cursor", "created_at", "id"),
        Index("idx_reports_coordinates", "latitude", "longitude"),
    )

    @property
    def upvotes(self) -> int:
        return sum(1 for v in self.votes if v.direction == VoteDirection.UP)

    @property
    def downvotes(self) -> int:
        return sum(1 for v in self.votes if v.direction == VoteDirection.DOWN)

    @property
    def vote_count(self) -> int:
        """Net votes (upvotes minus downvotes)."""
        return self.upvotes - self.downvotes

    @property
    def age_in_days(self) -> int:
        if self.created_at is None:
            return 0
        return max(0, (utcnow() - as_utc(self.created_at)).days)

    @property
    def is_urgent(self) -> bool:
        return self.severity == Severity.CRITICAL or self.safety_risk == SafetyRisk.CRITICAL

    @property
    def resolution_days(self) -> int | None:
        """Whole days (rounded up) from submission to resolution."""
        if self.resolved_at is None or self.created_at is None:
            return None
        return days_to_resolve(self.created_at, self.resolved_at)

    def __repr__(self) -> str:
        return f"<Report {self.id}: {self.type}/{self.status}>"


class ReportVote(Base):
    """A single user's vote on a report; at most one per (report, user)."""

    __tablename__ = "report_votes"

    id: Mapped[int] = mapped_column(primary_key=True)
    report_id: Mapped[str] = mapped_column(
        ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    direction: Mapped[str] = mapped_column(String(4), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    report: Mapped[Report] = relationship(back_populates="votes")

    __table_args__ = (UniqueConstraint("report_id", "user_id", name="uq_report_votes_user"),)


class ReportNote(Base):
    """Operator note attached to a report."""

    __tablename__ = "report_notes"

    id: Mapped[int] = mapped_column(primary_key=True)
    report_id: Mapped[str] = mapped_column(
        ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    report: Mapped[Report] = relationship(back_populates="notes")
