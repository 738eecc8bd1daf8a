"""Bearer-token authentication and operator capability checks.

Tokens are issued by the external identity provider; this module only
verifies them and maps the subject to a local user.
"""

import logging
from typing import Annotated, Any

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.errors import Forbidden, Unauthorized
from app.models import Operator, User
from app.models.enums import Permission, UserRole

logger = logging.getLogger(__name__)
settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify a bearer token and return its claims."""
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise Unauthorized("Could not validate credentials") from e
    if not claims.get("sub"):
        raise Unauthorized("Token has no subject")
    return claims


async def user_from_claims(db: AsyncSession, claims: dict[str, Any]) -> User:
    """
    Resolve token claims to a user, provisioning unknown subjects.

    A subject seen for the first time is created from the token's email/name
    claims; tokens without an email cannot provision.
    """
    user_id = str(claims["sub"])
    user = await db.get(User, user_id)
    if user is None:
        email = claims.get("email")
        if not email:
            raise Unauthorized("Unknown user")
        existing = await db.execute(select(User).where(User.email == email.lower()))
        if existing.scalar_one_or_none() is not None:
            raise Unauthorized("Email already bound to another identity")
        user = User(
            id=user_id,
            email=email.lower(),
            name=claims.get("name") or email.split("@")[0],
            picture=claims.get("picture"),
            role=UserRole.USER.value,
            operator=None,
        )
        db.add(user)
        await db.flush()
        logger.info(f"Provisioned user {user_id} ({user.email})")

    if not user.is_active:
        raise Forbidden("User account is inactive")
    return user


async def operator_for(db: AsyncSession, user: User) -> Operator | None:
    """Return the user's operator record when it grants operator access."""
    result = await db.execute(select(Operator).where(Operator.user_id == user.id))
    operator = result.scalar_one_or_none()
    if operator is None or not operator.is_active or user.role != UserRole.ADMIN:
        return None
    return operator


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> User:
    """Dependency returning the authenticated user."""
    if not token:
        raise Unauthorized("Not authenticated")
    return await user_from_claims(db, decode_access_token(token))


async def get_current_operator(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> Operator:
    """Dependency returning the caller's active operator record."""
    operator = await operator_for(db, user)
    if operator is None:
        raise Forbidden("Operator access required")
    return operator


def require_capability(permission: Permission):
    """Build a dependency that demands `permission` from the calling operator."""

    async def dependency(
        operator: Annotated[Operator, Depends(get_current_operator)],
    ) -> Operator:
        if not operator.has_permission(permission):
            raise Forbidden(f"Missing capability: {permission}")
        return operator

    return dependency


async def authenticate_websocket(db: AsyncSession, token: str | None) -> tuple[User | None, bool]:
    """Resolve an optional websocket token to (user, is_operator)."""
    if not token:
        return None, False
    user = await user_from_claims(db, decode_access_token(token))
    return user, await operator_for(db, user) is not None
