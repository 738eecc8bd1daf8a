"""Enumerations shared by models, schemas and services."""

from enum import StrEnum


class IssueType(StrEnum):
    POTHOLE = "pothole"
    CRACK = "crack"
    WATERLOGGED = "waterlogged"
    DEBRIS = "debris"
    SIGNAGE = "signage"
    OTHER = "other"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TrafficImpact(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    SEVERE = "severe"


class SafetyRisk(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReportStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class VoteDirection(StrEnum):
    UP = "up"
    DOWN = "down"


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class OperatorRole(StrEnum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    MODERATOR = "moderator"


class Permission(StrEnum):
    VIEW_REPORTS = "view_reports"
    EDIT_REPORTS = "edit_reports"
    DELETE_REPORTS = "delete_reports"
    VERIFY_REPORTS = "verify_reports"
    ASSIGN_CONTRACTORS = "assign_contractors"
    MANAGE_USERS = "manage_users"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_SETTINGS = "manage_settings"
    SUPER_ADMIN = "super_admin"


DEFAULT_OPERATOR_PERMISSIONS = [
    Permission.VIEW_REPORTS.value,
    Permission.EDIT_REPORTS.value,
    Permission.VERIFY_REPORTS.value,
]


class Level(StrEnum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
