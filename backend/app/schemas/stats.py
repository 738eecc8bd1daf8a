"""Pydantic schemas for derived statistics."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.models.enums import Level
from app.schemas.report import ReportOut


class SubmitterStatsOut(BaseModel):
    """Per-submitter statistics."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    submitted: int = 0
    pending: int = 0
    verified: int = 0
    in_progress: int = 0
    resolved: int = 0
    points: int = 0
    level: Level = Level.BRONZE


class OperatorStatsOut(BaseModel):
    """System-wide management statistics."""

    model_config = ConfigDict(from_attributes=True)

    total_managed: int = 0
    resolved: int = 0
    in_progress: int = 0
    pending: int = 0
    users_managed: int = 0
    avg_resolution_days: int = 0
    efficiency_score: int = 0
    computed_at: datetime | None = None


class ReportStatsOut(BaseModel):
    """Report counts across the whole store."""

    total_reports: int = 0
    pending_reports: int = 0
    verified_reports: int = 0
    in_progress_reports: int = 0
    resolved_reports: int = 0
    rejected_reports: int = 0
    critical_reports: int = 0
    high_priority_reports: int = 0


class TypeBreakdown(BaseModel):
    type: str
    count: int
    resolved: int
    critical: int


class DashboardResponse(BaseModel):
    """Admin dashboard snapshot."""

    operator_stats: OperatorStatsOut
    report_stats: ReportStatsOut
    recent_reports: list[ReportOut]
    urgent_reports: list[ReportOut]


class ContributorOut(BaseModel):
    """One row of the top-contributors leaderboard."""

    user_id: str
    name: str
    picture: str | None = None
    submitted: int = 0
    resolved: int = 0
    points: int = 0
    level: Level = Level.BRONZE
