"""Tests for submitter/operator stats aggregation."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from app.models import OperatorStats, Report, ReportStatusCount, SubmitterStats
from app.models.enums import Level
from app.models.report import utcnow
from app.services.reports import ReportService
from app.services.stats import (
    average_resolution_days,
    compute_operator_stats,
    compute_report_stats,
    compute_submitter_stats,
    efficiency_score,
    level_for_points,
    points_for,
    reconcile_status_counts,
    refresh_operator_stats,
    refresh_submitter_stats,
    reports_by_type,
    top_contributors,
)


async def resolve(service: ReportService, report_id: str, user, operator) -> None:
    for status in ("verified", "in-progress", "resolved"):
        await service.change_status(report_id, status, user, operator)


def add_report(db_session, **fields) -> Report:
    now = utcnow()
    values = {
        "reporter_id": "user-citizen",
        "type": "pothole",
        "severity": "medium",
        "status": "pending",
        "traffic_impact": "none",
        "safety_risk": "low",
        "priority": 3,
        "address": "1 Test Street",
        "latitude": 37.0,
        "longitude": -122.0,
        "description": "Seeded report for aggregation tests",
        "images": [],
        "tags": [],
        "created_at": now,
        "updated_at": now,
    }
    values.update(fields)
    report = Report(**values)
    db_session.add(report)
    return report


class TestPointsAndLevels:
    """Tests for the pure point/level/efficiency helpers."""

    def test_points(self):
        assert points_for(3, 1) == 50
        assert points_for(0, 0) == 0

    @pytest.mark.parametrize(
        "points,level",
        [
            (0, Level.BRONZE),
            (99, Level.BRONZE),
            (100, Level.SILVER),
            (499, Level.SILVER),
            (500, Level.GOLD),
            (999, Level.GOLD),
            (1000, Level.PLATINUM),
        ],
    )
    def test_level_thresholds(self, points, level):
        assert level_for_points(points) == level

    def test_efficiency_with_no_reports(self):
        """No reports: 0% resolution rate, 0 days -> 0.3 x 100 = 30."""
        assert efficiency_score(0, 0, 0) == 30

    def test_efficiency_weighting(self):
        # 50% resolved, 10 days -> 35 + 27 = 62
        assert efficiency_score(4, 2, 10) == 62

    def test_efficiency_slow_resolution_floors_at_zero(self):
        assert efficiency_score(1, 1, 250) == 70


class TestSubmitterStats:
    """Tests for submitter stats recomputation."""

    @pytest.mark.asyncio
    async def test_three_reports_one_resolved(
        self, db_session, citizen, operator, dispatcher, report_data
    ):
        """3 submitted, 1 resolved -> 50 points -> Bronze."""
        service = ReportService(db_session, dispatcher)
        created = [await service.create(report_data(), citizen) for _ in range(3)]
        admin = operator.user
        await resolve(service, created[0].id, admin, operator)

        stats = await compute_submitter_stats(db_session, "user-citizen")

        assert stats.submitted == 3
        assert stats.resolved == 1
        assert stats.pending == 2
        assert stats.points == 50
        assert stats.level == Level.BRONZE

    @pytest.mark.asyncio
    async def test_refresh_is_idempotent(self, db_session, citizen, dispatcher, report_data):
        service = ReportService(db_session, dispatcher)
        await service.create(report_data(), citizen)
        await service.create(report_data(type="crack"), citizen)

        first = await refresh_submitter_stats(db_session, "user-citizen")
        second = await refresh_submitter_stats(db_session, "user-citizen")

        assert first == second
        row = await db_session.get(SubmitterStats, "user-citizen")
        assert row.submitted == 2
        assert row.points == 20
        assert row.level == "Bronze"

    @pytest.mark.asyncio
    async def test_user_without_reports(self, db_session, citizen):
        stats = await compute_submitter_stats(db_session, "user-citizen")

        assert stats.submitted == 0
        assert stats.points == 0
        assert stats.level == Level.BRONZE


class TestTopContributors:
    """Tests for the points leaderboard."""

    @pytest.mark.asyncio
    async def test_ranked_by_points(
        self, db_session, citizen, other_citizen, operator, dispatcher, report_data
    ):
        service = ReportService(db_session, dispatcher)
        await service.create(report_data(), citizen)
        await service.create(report_data(type="crack"), citizen)
        resolved = await service.create(report_data(), other_citizen)
        await resolve(service, resolved.id, operator.user, operator)
        await refresh_submitter_stats(db_session, "user-other")

        ranking = await top_contributors(db_session)

        assert [(c.user_id, c.points) for c in ranking] == [
            ("user-other", 30),
            ("user-citizen", 20),
        ]
        assert ranking[0].name == "Robin Resident"
        assert ranking[0].resolved == 1

    @pytest.mark.asyncio
    async def test_inactive_and_pointless_users_excluded(
        self, db_session, citizen, other_citizen, dispatcher, report_data
    ):
        await ReportService(db_session, dispatcher).create(report_data(), other_citizen)
        await refresh_submitter_stats(db_session, "user-citizen")
        other_citizen.is_active = False
        await db_session.commit()

        assert await top_contributors(db_session) == []

    @pytest.mark.asyncio
    async def test_limit(self, db_session, citizen, other_citizen, dispatcher, report_data):
        service = ReportService(db_session, dispatcher)
        await service.create(report_data(), citizen)
        await service.create(report_data(), other_citizen)

        assert len(await top_contributors(db_session, limit=1)) == 1


class TestOperatorStats:
    """Tests for operator stats and status counters."""

    @pytest.mark.asyncio
    async def test_empty_store(self, db_session):
        stats = await compute_operator_stats(db_session)

        assert stats.total_managed == 0
        assert stats.avg_resolution_days == 0
        assert stats.efficiency_score == 30

    @pytest.mark.asyncio
    async def test_status_change_is_reflected_immediately(
        self, db_session, citizen, operator, dispatcher, report_data
    ):
        service = ReportService(db_session, dispatcher)
        report = await service.create(report_data(), citizen)

        before = await compute_operator_stats(db_session)
        assert before.pending == 1
        assert before.total_managed == 1

        await service.change_status(report.id, "verified", operator.user, operator)
        await service.change_status(report.id, "in-progress", operator.user, operator)

        after = await compute_operator_stats(db_session)
        assert after.pending == 0
        assert after.in_progress == 1
        assert after.total_managed == 1
        assert after.users_managed == 1

    @pytest.mark.asyncio
    async def test_refresh_writes_snapshot_per_operator(self, db_session, citizen, operator):
        add_report(db_session)
        await db_session.commit()
        await reconcile_status_counts(db_session)

        stats = await refresh_operator_stats(db_session)
        await db_session.commit()

        row = await db_session.get(OperatorStats, operator.id)
        assert row is not None
        assert row.total_managed == stats.total_managed == 1
        assert row.efficiency_score == stats.efficiency_score

    @pytest.mark.asyncio
    async def test_average_resolution_days_rounds_up_per_report(self, db_session, citizen):
        now = utcnow()
        # 3 days 1 hour -> 4 days; 1 day exactly -> 1 day; mean 2.5 -> 3
        add_report(
            db_session,
            status="resolved",
            created_at=now - timedelta(days=3, hours=1),
            resolved_at=now,
        )
        add_report(
            db_session,
            status="resolved",
            created_at=now - timedelta(days=1),
            resolved_at=now,
        )
        add_report(db_session, status="pending")
        await db_session.commit()

        assert await average_resolution_days(db_session) == 3

    @pytest.mark.asyncio
    async def test_reconcile_repairs_drifted_counters(self, db_session, citizen):
        add_report(db_session, status="pending")
        add_report(db_session, status="resolved", resolved_at=utcnow())
        await db_session.commit()

        # Counters were never adjusted for the direct inserts
        counts = await reconcile_status_counts(db_session)
        await db_session.commit()

        assert counts["pending"] == 1
        assert counts["resolved"] == 1
        assert counts["rejected"] == 0
        rows = (await db_session.execute(select(ReportStatusCount))).scalars().all()
        assert {row.status: row.count for row in rows}["resolved"] == 1

    @pytest.mark.asyncio
    async def test_missing_counter_rows_trigger_reconcile(self, db_session, citizen):
        add_report(db_session, status="verified")
        for row in (await db_session.execute(select(ReportStatusCount))).scalars().all():
            await db_session.delete(row)
        await db_session.commit()

        stats = await compute_operator_stats(db_session)

        assert stats.total_managed == 1
        assert stats.pending == 0


class TestReportAggregates:
    """Tests for dashboard report counts."""

    @pytest.mark.asyncio
    async def test_report_stats(self, db_session, citizen):
        add_report(db_session, severity="critical", priority=9)
        add_report(db_session, status="rejected")
        add_report(db_session, status="in-progress", priority=7)
        await db_session.commit()

        stats = await compute_report_stats(db_session)

        assert stats.total_reports == 3
        assert stats.pending_reports == 1
        assert stats.rejected_reports == 1
        assert stats.in_progress_reports == 1
        assert stats.critical_reports == 1
        assert stats.high_priority_reports == 2

    @pytest.mark.asyncio
    async def test_reports_by_type(self, db_session, citizen):
        add_report(db_session, type="pothole")
        add_report(db_session, type="pothole", status="resolved", resolved_at=utcnow())
        add_report(db_session, type="debris", severity="critical")
        await db_session.commit()

        breakdown = {row.type: row for row in await reports_by_type(db_session)}

        assert breakdown["pothole"].count == 2
        assert breakdown["pothole"].resolved == 1
        assert breakdown["debris"].critical == 1
