"""Health endpoints."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import OperatorStats, Report
from app.websocket.manager import manager

router = APIRouter(tags=["health"])


class ReportStoreStatus(BaseModel):
    """Status of the report store."""

    record_count: int
    oldest_record: datetime | None = None
    newest_record: datetime | None = None
    stats_computed_at: datetime | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    reports: ReportStoreStatus
    websocket_connections: int


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """
    Health check endpoint with report store status.

    Returns record counts and when operator stats were last recomputed.
    """
    result = await db.execute(
        select(func.count(Report.id), func.min(Report.created_at), func.max(Report.created_at))
    )
    count, oldest, newest = result.one()

    computed_result = await db.execute(select(func.max(OperatorStats.computed_at)))

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        reports=ReportStoreStatus(
            record_count=count or 0,
            oldest_record=oldest,
            newest_record=newest,
            stats_computed_at=computed_result.scalar(),
        ),
        websocket_connections=manager.connection_count,
    )


@router.get("/ready")
async def readiness_check() -> dict:
    """Simple readiness probe for container orchestration."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness probe for container orchestration."""
    return {"status": "alive"}
