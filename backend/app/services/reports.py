"""Report store operations.

Every mutation of an existing report runs under that report's in-process lock
as a read-modify-write against the row's current version and commits. Stats
refresh and broadcast run before the lock is released, so events for one
report go out in commit order. Outbound notifications run after the lock is
released.
"""

import base64
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config import get_settings
from app.errors import ConcurrencyConflict, Forbidden, NotFound, ValidationError
from app.models import Operator, Report, ReportNote, User
from app.models.enums import IssueType, ReportStatus, SafetyRisk, Severity
from app.models.report import utcnow
from app.schemas.report import (
    ContractorIn,
    ReportCreate,
    ReportFilters,
    ReportOut,
    ReportsResponse,
    ReportUpdate,
)
from app.services.events import Actor, EventDispatcher, MutationEvent, MutationKind
from app.services.geo import bounding_box, haversine_meters
from app.services.lifecycle import transition
from app.services.locks import report_locks
from app.services.priority import recompute_priority
from app.services.stats import record_status_change
from app.services.votes import apply_vote

logger = logging.getLogger(__name__)
settings = get_settings()

CLOSED_STATUSES = (ReportStatus.RESOLVED.value, ReportStatus.REJECTED.value)
URGENT_PRIORITY = 8


def _encode_cursor(created_at: datetime, id: str) -> str:
    """Encode cursor for keyset pagination."""
    cursor_str = f"{created_at.isoformat()}|{id}"
    return base64.urlsafe_b64encode(cursor_str.encode()).decode()


def _decode_cursor(cursor: str) -> tuple[datetime, str]:
    """Decode cursor for keyset pagination."""
    cursor_str = base64.urlsafe_b64decode(cursor.encode()).decode()
    created_at, id = cursor_str.split("|", 1)
    return datetime.fromisoformat(created_at), id


def _apply_filters(query, filters: ReportFilters):
    if filters.type:
        query = query.where(Report.type == filters.type.value)
    if filters.status:
        query = query.where(Report.status == filters.status.value)
    if filters.severity:
        query = query.where(Report.severity == filters.severity.value)
    if filters.reporter_id:
        query = query.where(Report.reporter_id == filters.reporter_id)
    if filters.since:
        query = query.where(Report.created_at >= filters.since)
    if filters.until:
        query = query.where(Report.created_at <= filters.until)
    if filters.q:
        pattern = f"%{filters.q.strip()}%"
        query = query.where(
            or_(Report.description.ilike(pattern), Report.address.ilike(pattern))
        )
    return query


class ReportService:
    """
    Service for reading and mutating reports.

    Features:
    - Cursor pagination over (created_at, id), newest first
    - Per-report serialization plus optimistic version checks on every write
    - Post-commit stats refresh, broadcast and notification via EventDispatcher
    """

    def __init__(self, db: AsyncSession, dispatcher: EventDispatcher | None = None):
        self.db = db
        self.dispatcher = dispatcher or EventDispatcher()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, report_id: str) -> Report:
        result = await self.db.execute(
            select(Report)
            .where(Report.id == report_id)
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFound(f"Report {report_id} not found")
        return report

    async def list_reports(
        self,
        filters: ReportFilters | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> ReportsResponse:
        """List reports newest first with keyset pagination."""
        filters = filters or ReportFilters()
        query = _apply_filters(select(Report), filters).order_by(
            Report.created_at.desc(), Report.id.desc()
        )

        total_result = await self.db.execute(
            _apply_filters(select(func.count(Report.id)), filters)
        )
        total = total_result.scalar() or 0

        if cursor:
            try:
                cursor_time, cursor_id = _decode_cursor(cursor)
                query = query.where(
                    (Report.created_at < cursor_time)
                    | ((Report.created_at == cursor_time) & (Report.id < cursor_id))
                )
            except Exception:
                logger.warning(f"Invalid cursor: {cursor}")

        # Fetch one extra to check for next page
        result = await self.db.execute(query.limit(limit + 1))
        reports = list(result.scalars().all())

        has_next = len(reports) > limit
        if has_next:
            reports = reports[:limit]

        next_cursor = None
        if has_next and reports:
            last = reports[-1]
            next_cursor = _encode_cursor(last.created_at, last.id)

        return ReportsResponse(
            reports=[ReportOut.from_model(r) for r in reports],
            next_cursor=next_cursor,
            total=total,
        )

    async def list_mine(self, user: User) -> list[Report]:
        result = await self.db.execute(
            select(Report)
            .where(Report.reporter_id == user.id)
            .order_by(Report.created_at.desc(), Report.id.desc())
        )
        return list(result.scalars().all())

    async def urgent(self, limit: int = 20) -> list[Report]:
        """Open reports that are critical or high priority, most pressing first."""
        result = await self.db.execute(
            select(Report)
            .where(
                Report.status.not_in(CLOSED_STATUSES),
                or_(
                    Report.severity == Severity.CRITICAL.value,
                    Report.safety_risk == SafetyRisk.CRITICAL.value,
                    Report.priority >= URGENT_PRIORITY,
                ),
            )
            .order_by(Report.priority.desc(), Report.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def recent(self, limit: int = 10) -> list[Report]:
        result = await self.db.execute(
            select(Report).order_by(Report.created_at.desc(), Report.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def nearby(
        self,
        latitude: float,
        longitude: float,
        radius_m: float,
        issue_type: str | None = None,
        exclude_id: str | None = None,
        limit: int = 100,
    ) -> list[tuple[Report, float]]:
        """
        Reports within `radius_m` meters of a point as (report, meters), nearest first.

        A bounding box narrows the scan in SQL; the exact great-circle distance
        is checked here.
        """
        min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_m)
        query = select(Report).where(
            Report.latitude.between(min_lat, max_lat),
            Report.longitude.between(min_lng, max_lng),
        )
        if issue_type:
            query = query.where(Report.type == IssueType(issue_type).value)
        if exclude_id:
            query = query.where(Report.id != exclude_id)

        result = await self.db.execute(query)
        matches = []
        for report in result.scalars().all():
            distance = haversine_meters(latitude, longitude, report.latitude, report.longitude)
            if distance <= radius_m:
                matches.append((report, distance))

        matches.sort(key=lambda match: (match[1], match[0].id))
        return matches[:limit]

    async def duplicates(
        self, report_id: str, radius_m: float | None = None
    ) -> list[tuple[Report, float]]:
        """Non-rejected reports of the same type close to `report_id`, nearest first."""
        report = await self.get(report_id)
        candidates = await self.nearby(
            report.latitude,
            report.longitude,
            radius_m or settings.duplicate_radius_meters,
            issue_type=report.type,
            exclude_id=report.id,
        )
        return [
            (candidate, distance)
            for candidate, distance in candidates
            if candidate.status != ReportStatus.REJECTED
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, data: ReportCreate, submitter: User) -> ReportOut:
        """
        Store a new pending report.

        A supplied AI analysis only fills `type` and `severity` when the
        submitter left them out.
        """
        analysis = data.ai_analysis
        issue_type = data.type or (analysis.issue_type if analysis else None)
        if issue_type is None:
            raise ValidationError("Issue type is required")
        severity = data.severity or (analysis.severity if analysis else None) or Severity.MEDIUM

        now = utcnow()
        report = Report(
            reporter_id=submitter.id,
            type=issue_type.value,
            severity=severity.value,
            status=ReportStatus.PENDING.value,
            traffic_impact=data.traffic_impact.value,
            safety_risk=data.safety_risk.value,
            address=data.location.address,
            latitude=data.location.coordinates.latitude,
            longitude=data.location.coordinates.longitude,
            city=data.location.city,
            state=data.location.state,
            zip_code=data.location.zip_code,
            description=data.description,
            images=[image.model_dump(mode="json") for image in data.images],
            tags=data.tags,
            estimated_cost=data.estimated_cost,
            ai_analysis=analysis.model_dump(mode="json") if analysis else None,
            votes=[],
            notes=[],
            created_at=now,
            updated_at=now,
        )
        recompute_priority(report)

        actor = Actor.of(submitter)
        try:
            self.db.add(report)
            await self.db.flush()
            await record_status_change(self.db, None, report.status)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Report {report.id} created by {actor.id}: {report.type}/{report.severity} "
            f"priority={report.priority}"
        )
        snapshot = ReportOut.from_model(report)
        event = MutationEvent(MutationKind.CREATED, snapshot, actor)
        async with report_locks.hold(report.id):
            await self.dispatcher.publish(self.db, event)
        await self.dispatcher.send_notifications(event)
        return snapshot

    async def _mutate(
        self,
        report_id: str,
        kind: MutationKind,
        actor: Actor | None,
        apply: Callable[[Report], Awaitable[None]],
    ) -> ReportOut:
        """
        Load, modify and commit one report, retrying on a stale version.

        `apply` may run more than once and must only touch the report it is
        given (plus rows in the same transaction).
        """
        attempts = max(1, settings.mutation_retry_attempts)
        event = None
        async with report_locks.hold(report_id):
            for attempt in range(1, attempts + 1):
                try:
                    report = await self.get(report_id)
                    await apply(report)
                    await self.db.commit()
                except StaleDataError:
                    await self.db.rollback()
                    logger.warning(
                        f"Stale version on report {report_id} ({kind}), "
                        f"attempt {attempt}/{attempts}"
                    )
                    continue
                except Exception:
                    await self.db.rollback()
                    raise

                event = MutationEvent(kind, ReportOut.from_model(report), actor)
                await self.dispatcher.publish(self.db, event)
                break

        if event is None:
            raise ConcurrencyConflict(
                f"Report {report_id} was modified concurrently; gave up after {attempts} attempts"
            )

        await self.dispatcher.send_notifications(event)
        return event.report

    async def update(
        self, report_id: str, data: ReportUpdate, user: User, is_operator: bool = False
    ) -> ReportOut:
        """Edit descriptive fields as the owner or an operator."""
        actor = Actor.of(user)
        fields = data.model_dump(exclude_unset=True, exclude_none=True)

        async def apply(report: Report) -> None:
            if report.reporter_id != actor.id and not is_operator:
                raise Forbidden("Only the submitter or an operator can edit this report")

            for name in ("type", "severity", "traffic_impact", "safety_risk"):
                if name in fields:
                    setattr(report, name, getattr(data, name).value)
            if "description" in fields:
                report.description = data.description
            if "tags" in fields:
                report.tags = data.tags
            if data.location is not None:
                report.address = data.location.address
                report.latitude = data.location.coordinates.latitude
                report.longitude = data.location.coordinates.longitude
                report.city = data.location.city
                report.state = data.location.state
                report.zip_code = data.location.zip_code

            recompute_priority(report)
            report.updated_at = utcnow()

        return await self._mutate(report_id, MutationKind.UPDATED, actor, apply)

    async def vote(self, report_id: str, direction: str, user: User) -> ReportOut:
        actor = Actor.of(user)

        async def apply(report: Report) -> None:
            apply_vote(report, actor.id, direction)
            report.updated_at = utcnow()

        return await self._mutate(report_id, MutationKind.VOTED, actor, apply)

    async def change_status(
        self,
        report_id: str,
        new_status: str,
        user: User,
        operator: Operator,
        notes: str | None = None,
    ) -> ReportOut:
        """Apply a lifecycle transition and move the report between status counters."""
        actor = Actor.of(user)
        operator_id = operator.id

        async def apply(report: Report) -> None:
            old_status = report.status
            transition(report, new_status, actor.id, notes)
            await record_status_change(self.db, old_status, report.status)

            acting = await self.db.get(Operator, operator_id, populate_existing=True)
            if acting is not None:
                acting.record_activity(report.status)

        snapshot = await self._mutate(report_id, MutationKind.STATUS_CHANGED, actor, apply)
        logger.info(f"Report {report_id} moved to {snapshot.status} by {actor.id}")
        return snapshot

    async def add_note(self, report_id: str, note: str, user: User) -> ReportOut:
        actor = Actor.of(user)
        text = note.strip()
        if len(text) < 5 or len(text) > 500:
            raise ValidationError("Note must be between 5 and 500 characters")

        async def apply(report: Report) -> None:
            now = utcnow()
            report.notes.append(ReportNote(author_id=actor.id, note=text, created_at=now))
            report.updated_at = now

        return await self._mutate(report_id, MutationKind.NOTE_ADDED, actor, apply)

    async def assign_contractor(
        self, report_id: str, contractor: ContractorIn, user: User
    ) -> ReportOut:
        actor = Actor.of(user)

        async def apply(report: Report) -> None:
            now = utcnow()
            report.contractor_name = contractor.name.strip()
            report.contractor_phone = contractor.phone
            report.contractor_email = contractor.email
            report.contractor_estimated_completion = contractor.estimated_completion
            report.contractor_assigned_at = now
            report.contractor_assigned_by = actor.id
            report.updated_at = now

        snapshot = await self._mutate(
            report_id, MutationKind.CONTRACTOR_ASSIGNED, actor, apply
        )
        logger.info(f"Contractor {contractor.name} assigned to report {report_id} by {actor.id}")
        return snapshot

    async def link_duplicates(
        self, report_id: str, duplicate_ids: list[str], user: User
    ) -> ReportOut:
        """
        Record other reports as duplicates of `report_id`.

        Linking is idempotent: ids already linked keep their original timestamp.
        """
        actor = Actor.of(user)
        ids = list(dict.fromkeys(duplicate_ids))
        if not ids:
            raise ValidationError("At least one duplicate report id is required")
        if report_id in ids:
            raise ValidationError("A report cannot be a duplicate of itself")

        async def apply(report: Report) -> None:
            result = await self.db.execute(select(Report.id).where(Report.id.in_(ids)))
            found = set(result.scalars().all())
            missing = [i for i in ids if i not in found]
            if missing:
                raise NotFound(f"Reports not found: {', '.join(missing)}")

            linked = {link["report_id"] for link in report.duplicate_links}
            now = utcnow()
            new_links = [
                {"report_id": i, "linked_at": now.isoformat()} for i in ids if i not in linked
            ]
            if new_links:
                # JSON column: assign a new list so the change is flushed
                report.duplicate_links = [*report.duplicate_links, *new_links]
                report.updated_at = now

        snapshot = await self._mutate(report_id, MutationKind.DUPLICATES_LINKED, actor, apply)
        logger.info(f"Linked {len(ids)} duplicate(s) to report {report_id} by {actor.id}")
        return snapshot

    async def refresh_priorities(self) -> int:
        """
        Recompute priority of every open report (the age bonus drifts over time).

        Returns how many reports changed. A report another writer updated in the
        meantime is skipped until the next run.
        """
        result = await self.db.execute(
            select(Report.id).where(Report.status.not_in(CLOSED_STATUSES))
        )
        report_ids = list(result.scalars().all())

        changed = 0
        for report_id in report_ids:
            async with report_locks.hold(report_id):
                try:
                    report = await self.get(report_id)
                    before = report.priority
                    if recompute_priority(report) == before:
                        continue
                    report.updated_at = utcnow()
                    await self.db.commit()
                except (StaleDataError, NotFound):
                    await self.db.rollback()
                    logger.warning(f"Skipping priority refresh of report {report_id}")
                    continue

                changed += 1
                await self.dispatcher.publish(
                    self.db,
                    MutationEvent(MutationKind.REPRIORITIZED, ReportOut.from_model(report)),
                )

        if changed:
            logger.info(f"Priority refreshed for {changed} of {len(report_ids)} open reports")
        return changed
