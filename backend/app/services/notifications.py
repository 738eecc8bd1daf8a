"""Best-effort outbound notifications for committed report mutations."""

import logging
from typing import Any

import httpx

from app.config import get_settings
from app.errors import NotificationFailure
from app.schemas.report import ReportOut

logger = logging.getLogger(__name__)
settings = get_settings()

# kind -> (audience, subject template)
NOTIFICATION_KINDS: dict[str, tuple[str, str]] = {
    "report_created": ("admins", "New {type} report: {address}"),
    "report_confirmation": ("reporter", "We received your {type} report"),
    "status_changed": ("reporter", "Your report is now {status}"),
    "contractor_assigned": ("reporter", "A contractor was assigned to your report"),
}


class NotificationDispatcher:
    """
    Posts notification requests to an email relay webhook.

    `notify` never raises: failures are logged and reported as False so the
    mutation that triggered them is unaffected. `actor` is anything with
    `id` and `name` (the events module passes an Actor).
    """

    def __init__(
        self,
        webhook_url: str | None = settings.notification_webhook_url,
        timeout: float = settings.notification_timeout_seconds,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def build_message(self, kind: str, report: ReportOut, actor=None) -> dict[str, Any]:
        if kind not in NOTIFICATION_KINDS:
            raise NotificationFailure(f"Unknown notification kind: {kind}")
        audience, subject = NOTIFICATION_KINDS[kind]
        return {
            "kind": kind,
            "audience": audience,
            "reporter_id": report.reporter_id,
            "subject": subject.format(
                type=report.type.value,
                address=report.location.address,
                status=report.status.value,
            ),
            "report": {
                "id": report.id,
                "type": report.type.value,
                "severity": report.severity.value,
                "status": report.status.value,
                "address": report.location.address,
                "priority": report.priority,
                "contractor": report.contractor.name if report.contractor else None,
            },
            "actor": {"id": actor.id, "name": actor.name} if actor is not None else None,
        }

    async def _post(self, message: dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.webhook_url, json=message)
            response.raise_for_status()

    async def notify(self, kind: str, report: ReportOut, actor=None) -> bool:
        """Send one notification. Returns True on success, False otherwise."""
        if not self.enabled:
            logger.debug(f"Notifications disabled; skipping {kind} for report {report.id}")
            return False
        try:
            message = self.build_message(kind, report, actor)
            await self._post(message)
        except (httpx.HTTPError, NotificationFailure) as e:
            failure = e if isinstance(e, NotificationFailure) else NotificationFailure(str(e))
            logger.error(f"Notification {kind} for report {report.id} failed: {failure}")
            return False

        logger.info(f"Notification {kind} sent for report {report.id}")
        return True
