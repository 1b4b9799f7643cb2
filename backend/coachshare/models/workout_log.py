import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from coachshare.models.base import Base, TimestampMixin, generate_uuid, utcnow


class Difficulty(str, enum.Enum):
    easy = "Easy"
    medium = "Medium"
    hard = "Hard"
    very_hard = "Very Hard"


class WorkoutLog(TimestampMixin, Base):
    """An athlete's record of one completed training day.

    ``regimen_id`` holds whichever regimen id the athlete logged against and is
    not enforced; logs whose regimen disappears are purged by reconciliation.
    """

    __tablename__ = "workout_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    athlete_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    regimen_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    regimen_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    day_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    difficulty: Mapped[Difficulty] = mapped_column(
        Enum(Difficulty, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Difficulty.medium,
    )
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    exercises: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    shared_with: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
