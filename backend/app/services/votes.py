"""Vote aggregation: at most one active vote per (report, user)."""

import logging

from app.errors import ValidationError
from app.models.enums import VoteDirection
from app.models.report import Report, ReportVote, utcnow
from app.services.priority import recompute_priority

logger = logging.getLogger(__name__)


def parse_direction(direction: str | VoteDirection) -> VoteDirection:
    """Accept "up"/"down" (and the legacy "upvote"/"downvote")."""
    value = str(direction).lower()
    if value in ("upvote", "downvote"):
        value = value[: -len("vote")]
    try:
        return VoteDirection(value)
    except ValueError:
        raise ValidationError(f"Unknown vote direction: {direction!r}") from None


def apply_vote(report: Report, user_id: str, direction: str | VoteDirection) -> Report:
    """
    Record `user_id`'s vote on `report` in `direction`.

    An existing vote by the same user is replaced (its direction and timestamp
    are overwritten in place), so the (report, user) pair never holds more than
    one vote. Any stray duplicates are removed. Priority is recomputed.

    Any authenticated user may vote, including the report's own submitter.
    """
    vote_direction = parse_direction(direction)

    existing = [v for v in report.votes if v.user_id == user_id]
    if existing:
        keep, *duplicates = existing
        for duplicate in duplicates:
            report.votes.remove(duplicate)
        keep.direction = vote_direction.value
        keep.created_at = utcnow()
    else:
        report.votes.append(ReportVote(user_id=user_id, direction=vote_direction.value))

    recompute_priority(report)
    logger.debug(
        f"Vote {vote_direction} by {user_id} on {report.id}: net={report.vote_count} "
        f"priority={report.priority}"
    )
    return report
