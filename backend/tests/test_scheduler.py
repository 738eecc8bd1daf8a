"""Tests for scheduled stats reconciliation."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.models import OperatorStats, Report, ReportStatusCount
from app.models.report import utcnow
from app.tasks import scheduler as scheduler_module
from app.tasks.scheduler import reconcile_stats, setup_scheduler, shutdown_scheduler


def stale_report(**fields) -> Report:
    created = utcnow() - timedelta(days=40)
    values = {
        "reporter_id": "user-citizen",
        "type": "crack",
        "severity": "medium",
        "status": "pending",
        "traffic_impact": "none",
        "safety_risk": "low",
        "priority": 3,
        "address": "77 Mission Street",
        "latitude": 37.79,
        "longitude": -122.39,
        "description": "Long crack across both lanes",
        "images": [],
        "tags": [],
        "created_at": created,
        "updated_at": created,
    }
    values.update(fields)
    return Report(**values)


class TestReconcileStats:
    """Tests for reconcile_stats."""

    @pytest.mark.asyncio
    async def test_rebuilds_counters_and_refreshes_priorities(self, db_session, citizen, operator):
        open_report = stale_report()
        closed_report = stale_report(status="resolved", resolved_at=utcnow())
        db_session.add_all([open_report, closed_report])
        await db_session.commit()

        with patch.object(scheduler_module.ws_manager, "publish", new=AsyncMock()) as publish:
            summary = await reconcile_stats(db_session)

        assert summary == {"total_managed": 2, "priorities_changed": 1}
        counts = dict(
            (await db_session.execute(select(ReportStatusCount.status, ReportStatusCount.count))).all()
        )
        assert counts["pending"] == 1
        assert counts["resolved"] == 1

        # medium(2) + none(0) + low(1) + age over 30 days(2)
        refreshed = await db_session.get(Report, open_report.id, populate_existing=True)
        assert refreshed.priority == 5
        untouched = await db_session.get(Report, closed_report.id, populate_existing=True)
        assert untouched.priority == 3

        assert await db_session.get(OperatorStats, operator.id) is not None
        publish.assert_any_await("admin:stats:update", {})

    @pytest.mark.asyncio
    async def test_empty_store(self, db_session):
        with patch.object(scheduler_module.ws_manager, "publish", new=AsyncMock()):
            summary = await reconcile_stats(db_session)

        assert summary == {"total_managed": 0, "priorities_changed": 0}


class TestScheduler:
    """Tests for scheduler setup."""

    @pytest.mark.asyncio
    async def test_setup_registers_reconcile_job(self):
        scheduler = setup_scheduler()
        try:
            job = scheduler.get_job("reconcile_stats")
            assert job is not None
            assert job.trigger.interval == timedelta(minutes=15)
        finally:
            shutdown_scheduler()

        assert scheduler_module.scheduler is None
