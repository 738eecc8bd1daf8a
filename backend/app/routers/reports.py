"""API routes for road-issue reports."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_operator, get_current_user, operator_for, require_capability
from app.database import get_db
from app.errors import EnrichmentUnavailable
from app.models import Operator, Report, User
from app.models.enums import IssueType, Permission, ReportStatus, Severity
from app.schemas.report import (
    ContractorIn,
    ImageAnalysisResponse,
    LinkDuplicatesIn,
    NoteIn,
    ReportCreate,
    ReportFilters,
    ReportOut,
    ReportsResponse,
    ReportUpdate,
    StatusUpdate,
    VoteIn,
)
from app.schemas.stats import ReportStatsOut, TypeBreakdown
from app.services.enrichment import GeoClient, ImageAnalysisClient
from app.services.reports import ReportService
from app.services.stats import compute_report_stats, reports_by_type

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["reports"])

CurrentUser = Annotated[User, Depends(get_current_user)]
Database = Annotated[AsyncSession, Depends(get_db)]
Editor = Annotated[Operator, Depends(require_capability(Permission.EDIT_REPORTS))]


def get_image_client() -> ImageAnalysisClient:
    return ImageAnalysisClient()


def get_geo_client() -> GeoClient:
    return GeoClient()


def _with_distance(report: Report, distance: float) -> ReportOut:
    out = ReportOut.from_model(report)
    out.distance_m = round(distance, 1)
    return out


@router.post("", response_model=ReportOut, status_code=201)
async def create_report(data: ReportCreate, db: Database, user: CurrentUser) -> ReportOut:
    """Submit a new report. It starts out pending."""
    return await ReportService(db).create(data, user)


@router.get("", response_model=ReportsResponse)
async def list_reports(
    db: Database,
    user: CurrentUser,
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    type: IssueType | None = None,
    status: ReportStatus | None = None,
    severity: Severity | None = None,
    reporter_id: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    q: str | None = Query(None, max_length=100, description="Search description and address"),
) -> ReportsResponse:
    """
    List reports newest first with cursor pagination.

    The cursor is an opaque string that encodes the position in the result set.
    """
    filters = ReportFilters(
        type=type,
        status=status,
        severity=severity,
        reporter_id=reporter_id,
        since=since,
        until=until,
        q=q,
    )
    return await ReportService(db).list_reports(filters, cursor=cursor, limit=limit)


@router.get("/me", response_model=list[ReportOut])
async def my_reports(db: Database, user: CurrentUser) -> list[ReportOut]:
    """Reports submitted by the caller."""
    reports = await ReportService(db).list_mine(user)
    return [ReportOut.from_model(r) for r in reports]


@router.get("/urgent", response_model=list[ReportOut])
async def urgent_reports(
    db: Database,
    operator: Annotated[Operator, Depends(get_current_operator)],
    limit: int = Query(20, ge=1, le=100),
) -> list[ReportOut]:
    """Open critical or high-priority reports, highest priority then oldest first."""
    reports = await ReportService(db).urgent(limit=limit)
    return [ReportOut.from_model(r) for r in reports]


@router.get("/stats", response_model=ReportStatsOut)
async def report_stats(
    db: Database,
    operator: Annotated[Operator, Depends(get_current_operator)],
) -> ReportStatsOut:
    return await compute_report_stats(db)


@router.get("/stats/by-type", response_model=list[TypeBreakdown])
async def report_stats_by_type(
    db: Database,
    operator: Annotated[Operator, Depends(get_current_operator)],
) -> list[TypeBreakdown]:
    return await reports_by_type(db)


@router.get("/nearby", response_model=list[ReportOut])
async def nearby_reports(
    db: Database,
    user: CurrentUser,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(5000, gt=0, le=50000, description="Radius in meters"),
    type: IssueType | None = None,
    limit: int = Query(100, ge=1, le=500),
) -> list[ReportOut]:
    """Reports within `radius` meters of a point, nearest first, with `distance_m` set."""
    matches = await ReportService(db).nearby(lat, lng, radius, issue_type=type, limit=limit)
    return [_with_distance(report, distance) for report, distance in matches]


@router.post("/analyze-image", response_model=ImageAnalysisResponse)
async def analyze_image(
    request: Request,
    user: CurrentUser,
    client: Annotated[ImageAnalysisClient, Depends(get_image_client)],
) -> ImageAnalysisResponse:
    """
    Classify a raw image body (Content-Type: image/*).

    The analysis is advisory; when the classifier is unavailable the response
    carries `analysis: null` and the report can still be filed manually.
    """
    mime_type = request.headers.get("content-type", "").split(";")[0].strip()
    image_bytes = await request.body()
    try:
        analysis = await client.analyze(image_bytes, mime_type)
    except EnrichmentUnavailable as e:
        logger.warning(f"Image analysis unavailable for {user.id}: {e.message}")
        return ImageAnalysisResponse(
            analysis=None,
            message="AI analysis unavailable. Please fill in the details manually.",
        )
    return ImageAnalysisResponse(analysis=analysis, message="Image analyzed successfully")


@router.get("/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: str,
    db: Database,
    user: CurrentUser,
    geo: Annotated[GeoClient, Depends(get_geo_client)],
    include_weather: bool = False,
) -> ReportOut:
    """Get a report by id, optionally with current weather at its location."""
    report = ReportOut.from_model(await ReportService(db).get(report_id))
    if include_weather:
        coordinates = report.location.coordinates
        try:
            report.weather = await geo.current_weather(
                coordinates.latitude, coordinates.longitude
            )
        except EnrichmentUnavailable as e:
            logger.info(f"Weather unavailable for report {report_id}: {e.message}")
    return report


@router.put("/{report_id}", response_model=ReportOut)
async def update_report(
    report_id: str, data: ReportUpdate, db: Database, user: CurrentUser
) -> ReportOut:
    """Edit a report as its submitter or an operator."""
    is_operator = await operator_for(db, user) is not None
    return await ReportService(db).update(report_id, data, user, is_operator=is_operator)


@router.post("/{report_id}/vote", response_model=ReportOut)
async def vote_on_report(
    report_id: str, data: VoteIn, db: Database, user: CurrentUser
) -> ReportOut:
    """Up- or down-vote a report. A repeat vote replaces the caller's previous one."""
    return await ReportService(db).vote(report_id, data.vote, user)


@router.put("/{report_id}/status", response_model=ReportOut)
async def update_report_status(
    report_id: str,
    data: StatusUpdate,
    db: Database,
    user: CurrentUser,
    operator: Editor,
) -> ReportOut:
    """Move a report along its lifecycle (pending, verified, in-progress, resolved/rejected)."""
    return await ReportService(db).change_status(
        report_id, data.status, user, operator, notes=data.notes
    )


@router.post("/{report_id}/notes", response_model=ReportOut)
async def add_admin_note(
    report_id: str,
    data: NoteIn,
    db: Database,
    user: CurrentUser,
    operator: Editor,
) -> ReportOut:
    return await ReportService(db).add_note(report_id, data.note, user)


@router.put("/{report_id}/contractor", response_model=ReportOut)
async def assign_contractor(
    report_id: str,
    data: ContractorIn,
    db: Database,
    user: CurrentUser,
    operator: Editor,
) -> ReportOut:
    """Attach a contractor to a report."""
    return await ReportService(db).assign_contractor(report_id, data, user)


@router.get("/{report_id}/duplicates", response_model=list[ReportOut])
async def duplicate_candidates(
    report_id: str,
    db: Database,
    operator: Annotated[Operator, Depends(get_current_operator)],
    radius: float | None = Query(None, gt=0, le=5000, description="Radius in meters"),
) -> list[ReportOut]:
    """Nearby reports of the same type that may describe the same issue."""
    matches = await ReportService(db).duplicates(report_id, radius_m=radius)
    return [_with_distance(report, distance) for report, distance in matches]


@router.post("/{report_id}/link-duplicates", response_model=ReportOut)
async def link_duplicates(
    report_id: str,
    data: LinkDuplicatesIn,
    db: Database,
    user: CurrentUser,
    operator: Editor,
) -> ReportOut:
    """Mark other reports as duplicates of this one."""
    return await ReportService(db).link_duplicates(report_id, data.duplicate_ids, user)
