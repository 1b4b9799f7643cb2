import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from coachshare.models.base import Base, TimestampMixin, generate_uuid


class UserRole(str, enum.Enum):
    admin = "admin"
    coach = "coach"
    athlete = "athlete"


class UserStatus(str, enum.Enum):
    active = "active"
    suspended = "suspended"
    deleted = "deleted"


class User(TimestampMixin, Base):
    """A coach, athlete or admin.

    Relationship sets (``coaches``, ``athletes``, ``regimens``) are JSON lists
    of id strings with set semantics. They are mirrored on the other side of
    each link and only written through the relationship and reconciliation
    services.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False),
        default=UserRole.athlete,
        nullable=False,
        index=True,
    )
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, native_enum=False),
        default=UserStatus.active,
        nullable=False,
    )

    # Athlete side
    coach_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    primary_coach_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    coaches: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    regimens: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Coach side
    athletes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    bio: Mapped[str | None] = mapped_column(String(500), nullable=True)
    specialties: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Profile
    sport: Mapped[str | None] = mapped_column(String(100), nullable=True)
    level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # sha256 of the outstanding reset or invitation token
    reset_password_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_password_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
