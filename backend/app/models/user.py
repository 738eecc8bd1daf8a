"""User and Operator models."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.enums import DEFAULT_OPERATOR_PERMISSIONS, OperatorRole, Permission, UserRole


class User(Base):
    """A citizen (or admin) identity known to the system."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    picture: Mapped[str | None] = mapped_column(String(500))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    operator: Mapped["Operator | None"] = relationship(
        back_populates="user", lazy="selectin", uselist=False
    )

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"


class Operator(Base):
    """
    Elevated capabilities attached to an admin user.

    Activity counters are bumped whenever the operator changes a report's status.
    """

    __tablename__ = "operators"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    permissions: Mapped[list[str]] = mapped_column(
        JSON, default=lambda: list(DEFAULT_OPERATOR_PERMISSIONS), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), default=OperatorRole.ADMIN.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # Activity
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reports_reviewed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reports_resolved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user: Mapped[User] = relationship(back_populates="operator", lazy="selectin")

    def has_permission(self, permission: str | Permission) -> bool:
        held = set(self.permissions or [])
        return str(permission) in held or Permission.SUPER_ADMIN.value in held

    def record_activity(self, status: str) -> None:
        self.last_active_at = datetime.now(UTC)
        if status == "resolved":
            self.reports_resolved = (self.reports_resolved or 0) + 1
        else:
            self.reports_reviewed = (self.reports_reviewed or 0) + 1

    def __repr__(self) -> str:
        return f"<Operator {self.id}: user={self.user_id} role={self.role}>"
