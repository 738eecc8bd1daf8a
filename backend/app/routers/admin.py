"""API routes for operator dashboards."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_operator
from app.database import get_db
from app.models import Operator
from app.schemas.report import ReportOut
from app.schemas.stats import DashboardResponse, OperatorStatsOut
from app.services.reports import ReportService
from app.services.stats import compute_report_stats, refresh_operator_stats

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=OperatorStatsOut)
async def get_operator_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    operator: Annotated[Operator, Depends(get_current_operator)],
) -> OperatorStatsOut:
    """System-wide management stats, recomputed before serving."""
    return await refresh_operator_stats(db)


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    db: Annotated[AsyncSession, Depends(get_db)],
    operator: Annotated[Operator, Depends(get_current_operator)],
    recent_limit: int = Query(10, ge=1, le=50),
) -> DashboardResponse:
    """Operator stats, report counts, recent and urgent reports in one call."""
    service = ReportService(db)
    operator_stats = await refresh_operator_stats(db)
    report_stats = await compute_report_stats(db)
    recent = await service.recent(limit=recent_limit)
    urgent = await service.urgent(limit=recent_limit)

    return DashboardResponse(
        operator_stats=operator_stats,
        report_stats=report_stats,
        recent_reports=[ReportOut.from_model(r) for r in recent],
        urgent_reports=[ReportOut.from_model(r) for r in urgent],
    )
