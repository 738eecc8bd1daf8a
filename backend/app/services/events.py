"""Post-commit consumers for report mutations.

Every committed mutation becomes a MutationEvent. The dispatcher hands it to
three independent consumers in order: stats refresh, real-time broadcast and
notifications. A failing consumer is logged and skipped; it never undoes the
mutation or stops the consumers after it.
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User
from app.schemas.report import ReportOut
from app.services.notifications import NotificationDispatcher
from app.services.stats import refresh_operator_stats, refresh_submitter_stats
from app.websocket.manager import ConnectionManager, manager
from app.websocket.schemas import Topic

logger = logging.getLogger(__name__)


class MutationKind(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    VOTED = "voted"
    STATUS_CHANGED = "status_changed"
    NOTE_ADDED = "note_added"
    CONTRACTOR_ASSIGNED = "contractor_assigned"
    REPRIORITIZED = "reprioritized"
    DUPLICATES_LINKED = "duplicates_linked"


@dataclass(frozen=True)
class Actor:
    """Who performed a mutation, captured before any session rollback can expire it."""

    id: str
    name: str

    @classmethod
    def of(cls, user: User) -> "Actor":
        return cls(id=user.id, name=user.name)


@dataclass(frozen=True)
class MutationEvent:
    kind: MutationKind
    report: ReportOut
    actor: Actor | None = None


@dataclass(frozen=True)
class EventPlan:
    refresh_stats: bool
    topics: tuple[Topic, ...]
    notifications: tuple[str, ...] = field(default_factory=tuple)


EVENT_PLANS: dict[MutationKind, EventPlan] = {
    MutationKind.CREATED: EventPlan(
        refresh_stats=True,
        topics=(Topic.REPORT_NEW, Topic.USER_STATS_UPDATE, Topic.ADMIN_STATS_UPDATE),
        notifications=("report_created", "report_confirmation"),
    ),
    MutationKind.UPDATED: EventPlan(refresh_stats=False, topics=(Topic.REPORT_STATUS,)),
    MutationKind.VOTED: EventPlan(refresh_stats=False, topics=(Topic.REPORT_STATUS,)),
    MutationKind.STATUS_CHANGED: EventPlan(
        refresh_stats=True,
        topics=(
            Topic.REPORT_STATUS,
            Topic.STATUS_UPDATE,
            Topic.USER_STATS_UPDATE,
            Topic.ADMIN_STATS_UPDATE,
        ),
        notifications=("status_changed",),
    ),
    MutationKind.NOTE_ADDED: EventPlan(refresh_stats=False, topics=(Topic.REPORT_STATUS,)),
    MutationKind.CONTRACTOR_ASSIGNED: EventPlan(
        refresh_stats=True,
        topics=(
            Topic.REPORT_STATUS,
            Topic.CONTRACTOR_ASSIGN,
            Topic.USER_STATS_UPDATE,
            Topic.ADMIN_STATS_UPDATE,
        ),
        notifications=("contractor_assigned",),
    ),
    MutationKind.REPRIORITIZED: EventPlan(refresh_stats=False, topics=(Topic.REPORT_STATUS,)),
    MutationKind.DUPLICATES_LINKED: EventPlan(refresh_stats=False, topics=(Topic.REPORT_STATUS,)),
}


def payload_for(topic: Topic, event: MutationEvent) -> dict[str, Any]:
    """Build the wire payload of `topic` for one mutation."""
    report = event.report
    if topic in (Topic.REPORT_NEW, Topic.REPORT_STATUS):
        return report.model_dump(mode="json")
    if topic == Topic.STATUS_UPDATE:
        return {"report_id": report.id, "status": report.status.value}
    if topic == Topic.CONTRACTOR_ASSIGN:
        return {
            "report_id": report.id,
            "contractor": report.contractor.model_dump(mode="json") if report.contractor else None,
            "assigned_by": event.actor.id if event.actor else None,
        }
    if topic == Topic.USER_STATS_UPDATE:
        return {"user_id": report.reporter_id}
    return {}


class EventDispatcher:
    """Runs the post-commit consumers for a MutationEvent."""

    def __init__(
        self,
        broadcaster: ConnectionManager | None = None,
        notifier: NotificationDispatcher | None = None,
    ):
        self.broadcaster = broadcaster or manager
        self.notifier = notifier or NotificationDispatcher()

    async def publish(self, db: AsyncSession, event: MutationEvent) -> None:
        """
        Refresh stats and broadcast.

        Callers hold the report's lock around this so broadcasts for one report
        leave in commit order.
        """
        plan = EVENT_PLANS[event.kind]
        if plan.refresh_stats:
            await self.refresh_stats(db, event)
        await self.broadcast(event, plan.topics)

    async def send_notifications(self, event: MutationEvent) -> None:
        """Deliver outbound notifications. Callers run this after releasing the report lock."""
        for kind in EVENT_PLANS[event.kind].notifications:
            await self.notify(kind, event)

    async def refresh_stats(self, db: AsyncSession, event: MutationEvent) -> bool:
        """Recompute the submitter and operator snapshots in their own transaction."""
        try:
            await refresh_submitter_stats(db, event.report.reporter_id)
            await refresh_operator_stats(db)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                f"Stats refresh after {event.kind} of report {event.report.id} failed: {e}",
                exc_info=True,
            )
            return False
        return True

    async def broadcast(self, event: MutationEvent, topics: tuple[Topic, ...]) -> None:
        for topic in topics:
            try:
                await self.broadcaster.publish(topic, payload_for(topic, event))
            except Exception as e:
                logger.error(
                    f"Publishing {topic} for report {event.report.id} failed: {e}",
                    exc_info=True,
                )

    async def notify(self, kind: str, event: MutationEvent) -> bool:
        try:
            return await self.notifier.notify(kind, event.report, event.actor)
        except Exception as e:
            logger.error(f"Notification {kind} for report {event.report.id} failed: {e}", exc_info=True)
            return False
