"""Report status state machine.

    pending     -> verified | rejected
    verified    -> in-progress | resolved | rejected
    in-progress -> resolved | rejected

resolved and rejected are terminal. Jumps outside this graph (e.g.
resolved -> pending) raise InvalidTransition.
"""

from datetime import datetime

from app.errors import InvalidTransition, ValidationError
from app.models.enums import ReportStatus
from app.models.report import Report, utcnow

ALLOWED_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.VERIFIED, ReportStatus.REJECTED}),
    ReportStatus.VERIFIED: frozenset(
        {ReportStatus.IN_PROGRESS, ReportStatus.RESOLVED, ReportStatus.REJECTED}
    ),
    ReportStatus.IN_PROGRESS: frozenset({ReportStatus.RESOLVED, ReportStatus.REJECTED}),
    ReportStatus.RESOLVED: frozenset(),
    ReportStatus.REJECTED: frozenset(),
}


def parse_status(status: str | ReportStatus) -> ReportStatus:
    try:
        return ReportStatus(str(status))
    except ValueError:
        raise ValidationError(f"Unknown status: {status!r}") from None


def can_transition(current: str | ReportStatus, target: str | ReportStatus) -> bool:
    return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]


def transition(
    report: Report,
    new_status: str | ReportStatus,
    actor_id: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Report:
    """
    Move `report` to `new_status`, stamping verification/resolution metadata.

    Verification and resolution are stamped only the first time their state is
    reached; an existing stamp is never overwritten.
    """
    target = parse_status(new_status)
    current = parse_status(report.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)

    now = now or utcnow()
    report.status = target.value

    if target == ReportStatus.VERIFIED and report.verified_at is None:
        report.verified_by = actor_id
        report.verified_at = now
        report.verification_notes = notes or ""
    elif target == ReportStatus.RESOLVED and report.resolved_at is None:
        report.resolved_by = actor_id
        report.resolved_at = now
        report.resolution_notes = notes or ""

    report.updated_at = now
    return report
