"""Pydantic schemas for users and operators."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class OperatorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role: str
    permissions: list[str]
    is_active: bool
    reports_reviewed: int = 0
    reports_resolved: int = 0
    last_active_at: datetime | None = None


class UserOut(BaseModel):
    """Current user profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    picture: str | None = None
    role: str
    is_active: bool
    created_at: datetime
    operator: OperatorOut | None = None
