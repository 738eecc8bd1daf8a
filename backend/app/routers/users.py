"""API routes for users: the caller's profile and stats, and the contributor leaderboard."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user, operator_for
from app.database import get_db
from app.models import User
from app.schemas.stats import ContributorOut, SubmitterStatsOut
from app.schemas.user import OperatorOut, UserOut
from app.services.stats import refresh_submitter_stats, top_contributors

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> UserOut:
    operator = await operator_for(db, user)
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        picture=user.picture,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        operator=OperatorOut.model_validate(operator) if operator else None,
    )


@router.get("/me/stats", response_model=SubmitterStatsOut)
async def get_my_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> SubmitterStatsOut:
    """
    Submitter stats for the caller.

    Recomputed from the caller's reports on every read, so a snapshot missed by
    a failed post-mutation refresh heals here.
    """
    return await refresh_submitter_stats(db, user.id)


@router.get("/top-contributors", response_model=list[ContributorOut])
async def get_top_contributors(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    limit: int = Query(10, ge=1, le=100),
) -> list[ContributorOut]:
    """Leaderboard of active submitters by points."""
    return await top_contributors(db, limit=limit)
