"""Database models."""

from app.models.report import Report, ReportNote, ReportVote
from app.models.stats import OperatorStats, ReportStatusCount, SubmitterStats
from app.models.user import Operator, User

__all__ = [
    "Operator",
    "OperatorStats",
    "Report",
    "ReportNote",
    "ReportStatusCount",
    "ReportVote",
    "SubmitterStats",
    "User",
]
