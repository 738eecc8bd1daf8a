"""Priority scoring for reports.

Priority is a 0-10 integer derived from severity, traffic impact, safety risk,
age and net votes. It is never set directly.
"""

from app.models.report import Report

MAX_PRIORITY = 10

SEVERITY_WEIGHTS = {"low": 1, "medium": 2, "high": 3, "critical": 4}
TRAFFIC_WEIGHTS = {"none": 0, "low": 1, "medium": 2, "high": 3, "severe": 4}
SAFETY_WEIGHTS = {"none": 0, "low": 1, "medium": 2, "high": 3, "critical": 4}

# Unknown enum values fall back to these weights instead of raising
DEFAULT_SEVERITY_WEIGHT = 1
DEFAULT_TRAFFIC_WEIGHT = 0
DEFAULT_SAFETY_WEIGHT = 1


def age_bonus(age_in_days: int) -> int:
    if age_in_days > 30:
        return 2
    if age_in_days > 7:
        return 1
    return 0


def vote_bonus(vote_count: int) -> int:
    if vote_count > 10:
        return 2
    if vote_count > 5:
        return 1
    return 0


def score(
    severity: str | None,
    traffic_impact: str | None,
    safety_risk: str | None,
    age_in_days: int,
    vote_count: int,
) -> int:
    """
    Compute a report's priority.

    Sum of the three weight tables plus the age and vote bonuses, clamped to
    [0, MAX_PRIORITY].
    """
    total = (
        SEVERITY_WEIGHTS.get(severity, DEFAULT_SEVERITY_WEIGHT)
        + TRAFFIC_WEIGHTS.get(traffic_impact, DEFAULT_TRAFFIC_WEIGHT)
        + SAFETY_WEIGHTS.get(safety_risk, DEFAULT_SAFETY_WEIGHT)
        + age_bonus(age_in_days)
        + vote_bonus(vote_count)
    )
    return max(0, min(total, MAX_PRIORITY))


def recompute_priority(report: Report) -> int:
    """Refresh `report.priority` from its current fields and return it."""
    report.priority = score(
        report.severity,
        report.traffic_impact,
        report.safety_risk,
        report.age_in_days,
        report.vote_count,
    )
    return report.priority
