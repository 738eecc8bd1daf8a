"""Pydantic schemas for API request/response validation."""

from app.schemas.report import (
    ContractorIn,
    ImageAnalysis,
    NoteIn,
    ReportCreate,
    ReportOut,
    ReportsResponse,
    ReportUpdate,
    StatusUpdate,
    VoteIn,
)
from app.schemas.stats import (
    DashboardResponse,
    OperatorStatsOut,
    ReportStatsOut,
    SubmitterStatsOut,
    TypeBreakdown,
)
from app.schemas.user import UserOut

__all__ = [
    "ContractorIn",
    "DashboardResponse",
    "ImageAnalysis",
    "NoteIn",
    "OperatorStatsOut",
    "ReportCreate",
    "ReportOut",
    "ReportStatsOut",
    "ReportUpdate",
    "ReportsResponse",
    "StatusUpdate",
    "SubmitterStatsOut",
    "TypeBreakdown",
    "UserOut",
    "VoteIn",
]
