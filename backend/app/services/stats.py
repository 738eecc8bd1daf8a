"""Stats aggregation over the report store.

Submitter and operator stats are materialized views: every refresh recomputes
them from the reports table and overwrites the stored snapshot, so calling any
refresh twice in a row yields the same result.

Operator-wide status counts come from `report_status_counts`, which mutations
adjust incrementally and `reconcile_status_counts` rebuilds from a full scan.
"""

import logging
import math
from datetime import UTC, datetime

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Operator, OperatorStats, Report, ReportStatusCount, SubmitterStats, User
from app.models.enums import Level, ReportStatus, Severity, UserRole
from app.models.report import days_to_resolve
from app.schemas.stats import (
    ContributorOut,
    OperatorStatsOut,
    ReportStatsOut,
    SubmitterStatsOut,
    TypeBreakdown,
)

logger = logging.getLogger(__name__)

POINTS_PER_SUBMISSION = 10
POINTS_PER_RESOLUTION = 20

# (minimum points, level), highest first
LEVEL_THRESHOLDS = [
    (1000, Level.PLATINUM),
    (500, Level.GOLD),
    (100, Level.SILVER),
    (0, Level.BRONZE),
]

HIGH_PRIORITY_THRESHOLD = 7


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def level_for_points(points: int) -> Level:
    for minimum, level in LEVEL_THRESHOLDS:
        if points >= minimum:
            return level
    return Level.BRONZE


def points_for(submitted: int, resolved: int) -> int:
    return submitted * POINTS_PER_SUBMISSION + resolved * POINTS_PER_RESOLUTION


def efficiency_score(total: int, resolved: int, avg_resolution_days: int) -> int:
    """0.7 x resolution rate (percent) + 0.3 x max(0, 100 - average days)."""
    resolution_rate = (resolved / total) * 100 if total > 0 else 0
    return _round_half_up(resolution_rate * 0.7 + max(0, 100 - avg_resolution_days) * 0.3)


# ---------------------------------------------------------------------------
# Submitter stats
# ---------------------------------------------------------------------------


async def compute_submitter_stats(db: AsyncSession, user_id: str) -> SubmitterStatsOut:
    """Compute a submitter's stats from their current reports (no writes)."""
    result = await db.execute(
        select(Report.status, func.count(Report.id))
        .where(Report.reporter_id == user_id)
        .group_by(Report.status)
    )
    by_status = {status: count for status, count in result.all()}

    submitted = sum(by_status.values())
    resolved = by_status.get(ReportStatus.RESOLVED.value, 0)
    points = points_for(submitted, resolved)

    return SubmitterStatsOut(
        user_id=user_id,
        submitted=submitted,
        pending=by_status.get(ReportStatus.PENDING.value, 0),
        verified=by_status.get(ReportStatus.VERIFIED.value, 0),
        in_progress=by_status.get(ReportStatus.IN_PROGRESS.value, 0),
        resolved=resolved,
        points=points,
        level=level_for_points(points),
    )


async def refresh_submitter_stats(db: AsyncSession, user_id: str) -> SubmitterStatsOut:
    """Recompute and persist a submitter's snapshot. Caller commits."""
    stats = await compute_submitter_stats(db, user_id)

    row = await db.get(SubmitterStats, user_id)
    if row is None:
        row = SubmitterStats(user_id=user_id)
        db.add(row)

    row.submitted = stats.submitted
    row.pending = stats.pending
    row.verified = stats.verified
    row.in_progress = stats.in_progress
    row.resolved = stats.resolved
    row.points = stats.points
    row.level = stats.level.value
    row.computed_at = datetime.now(UTC)
    await db.flush()

    logger.debug(f"Submitter stats refreshed for {user_id}: {stats.points} pts")
    return stats


async def top_contributors(db: AsyncSession, limit: int = 10) -> list[ContributorOut]:
    """Active submitters ranked by stored points, then submissions."""
    result = await db.execute(
        select(User, SubmitterStats)
        .join(SubmitterStats, SubmitterStats.user_id == User.id)
        .where(User.is_active.is_(True), SubmitterStats.points > 0)
        .order_by(SubmitterStats.points.desc(), SubmitterStats.submitted.desc(), User.id)
        .limit(limit)
    )
    return [
        ContributorOut(
            user_id=user.id,
            name=user.name,
            picture=user.picture,
            submitted=stats.submitted,
            resolved=stats.resolved,
            points=stats.points,
            level=stats.level,
        )
        for user, stats in result.all()
    ]


# ---------------------------------------------------------------------------
# Status counters
# ---------------------------------------------------------------------------


async def adjust_status_count(db: AsyncSession, status: str, delta: int) -> None:
    """Add `delta` to one status counter inside the caller's transaction."""
    result = await db.execute(
        update(ReportStatusCount)
        .where(ReportStatusCount.status == status)
        .values(count=ReportStatusCount.count + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Counter row missing; reconciliation will correct any drift
        db.add(ReportStatusCount(status=status, count=max(delta, 0)))
        await db.flush()


async def record_status_change(db: AsyncSession, old: str | None, new: str) -> None:
    """Move one report between counters (old=None for a new report)."""
    if old == new:
        return
    if old is not None:
        await adjust_status_count(db, old, -1)
    await adjust_status_count(db, new, 1)


async def reconcile_status_counts(db: AsyncSession) -> dict[str, int]:
    """Rebuild all status counters from a full scan. Caller commits."""
    result = await db.execute(select(Report.status, func.count(Report.id)).group_by(Report.status))
    actual = {status: count for status, count in result.all()}

    stored_result = await db.execute(
        select(ReportStatusCount).execution_options(populate_existing=True)
    )
    stored = {row.status: row for row in stored_result.scalars().all()}

    counts: dict[str, int] = {}
    for status in ReportStatus:
        count = actual.get(status.value, 0)
        counts[status.value] = count
        row = stored.get(status.value)
        if row is None:
            db.add(ReportStatusCount(status=status.value, count=count))
        elif row.count != count:
            logger.warning(
                f"Status counter drift for {status.value}: stored={row.count} actual={count}"
            )
            row.count = count
    await db.flush()
    return counts


async def _status_counts(db: AsyncSession) -> dict[str, int]:
    result = await db.execute(
        select(ReportStatusCount.status, ReportStatusCount.count).execution_options(
            populate_existing=True
        )
    )
    counts = {status: count for status, count in result.all()}
    if any(status.value not in counts for status in ReportStatus):
        counts = await reconcile_status_counts(db)
    return counts


# ---------------------------------------------------------------------------
# Operator stats
# ---------------------------------------------------------------------------


async def average_resolution_days(db: AsyncSession) -> int:
    """Mean whole days from submission to resolution over resolved reports."""
    result = await db.execute(
        select(Report.created_at, Report.resolved_at).where(
            Report.status == ReportStatus.RESOLVED.value,
            Report.resolved_at.is_not(None),
        )
    )
    rows = result.all()
    if not rows:
        return 0

    total_days = 0
    for created_at, resolved_at in rows:
        total_days += days_to_resolve(created_at, resolved_at)
    return _round_half_up(total_days / len(rows))


async def compute_operator_stats(db: AsyncSession) -> OperatorStatsOut:
    """Compute system-wide operator stats (no writes besides counter repair)."""
    counts = await _status_counts(db)
    total = sum(counts.values())
    resolved = counts.get(ReportStatus.RESOLVED.value, 0)

    users_result = await db.execute(
        select(func.count(User.id)).where(User.role == UserRole.USER.value)
    )
    users_managed = users_result.scalar() or 0

    avg_days = await average_resolution_days(db)

    return OperatorStatsOut(
        total_managed=total,
        resolved=resolved,
        in_progress=counts.get(ReportStatus.IN_PROGRESS.value, 0),
        pending=counts.get(ReportStatus.PENDING.value, 0),
        users_managed=users_managed,
        avg_resolution_days=avg_days,
        efficiency_score=efficiency_score(total, resolved, avg_days),
        computed_at=datetime.now(UTC),
    )


async def refresh_operator_stats(db: AsyncSession) -> OperatorStatsOut:
    """Recompute operator stats and store a snapshot for every active operator."""
    stats = await compute_operator_stats(db)

    operators = (
        await db.execute(select(Operator).where(Operator.is_active.is_(True)))
    ).scalars().all()

    for operator in operators:
        row = await db.get(OperatorStats, operator.id)
        if row is None:
            row = OperatorStats(operator_id=operator.id)
            db.add(row)
        row.total_managed = stats.total_managed
        row.resolved = stats.resolved
        row.in_progress = stats.in_progress
        row.pending = stats.pending
        row.users_managed = stats.users_managed
        row.avg_resolution_days = stats.avg_resolution_days
        row.efficiency_score = stats.efficiency_score
        row.computed_at = stats.computed_at

    await db.flush()
    logger.info(
        f"Operator stats refreshed for {len(operators)} operators: "
        f"total={stats.total_managed} resolved={stats.resolved} "
        f"efficiency={stats.efficiency_score}"
    )
    return stats


# ---------------------------------------------------------------------------
# Report-level aggregates for dashboards
# ---------------------------------------------------------------------------


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


async def compute_report_stats(db: AsyncSession) -> ReportStatsOut:
    result = await db.execute(
        select(
            func.count(Report.id),
            _count_where(Report.status == ReportStatus.PENDING.value),
            _count_where(Report.status == ReportStatus.VERIFIED.value),
            _count_where(Report.status == ReportStatus.IN_PROGRESS.value),
            _count_where(Report.status == ReportStatus.RESOLVED.value),
            _count_where(Report.status == ReportStatus.REJECTED.value),
            _count_where(Report.severity == Severity.CRITICAL.value),
            _count_where(Report.priority >= HIGH_PRIORITY_THRESHOLD),
        )
    )
    row = result.one()
    return ReportStatsOut(
        total_reports=row[0] or 0,
        pending_reports=row[1],
        verified_reports=row[2],
        in_progress_reports=row[3],
        resolved_reports=row[4],
        rejected_reports=row[5],
        critical_reports=row[6],
        high_priority_reports=row[7],
    )


async def reports_by_type(db: AsyncSession) -> list[TypeBreakdown]:
    count = func.count(Report.id).label("count")
    result = await db.execute(
        select(
            Report.type,
            count,
            _count_where(Report.status == ReportStatus.RESOLVED.value),
            _count_where(Report.severity == Severity.CRITICAL.value),
        )
        .group_by(Report.type)
        .order_by(count.desc())
    )
    return [
        TypeBreakdown(type=row[0], count=row[1], resolved=row[2], critical=row[3])
        for row in result.all()
    ]
