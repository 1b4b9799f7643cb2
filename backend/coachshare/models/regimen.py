import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from coachshare.models.base import Base, TimestampMixin, generate_uuid


def generate_external_id() -> str:
    return str(uuid.uuid4())


class Regimen(TimestampMixin, Base):
    """A coach-authored multi-day training plan.

    Addressable by the store id or by ``external_id``. ``created_by`` is a weak
    reference to the owning coach; ``assigned_to`` mirrors ``User.regimens``.
    """

    __tablename__ = "regimens"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    external_id: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, index=True, default=generate_external_id
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    sport: Mapped[str | None] = mapped_column(String(100), nullable=True)
    level: Mapped[str] = mapped_column(String(50), nullable=False, default="Intermediate")
    days: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    assigned_to: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    def matches(self, regimen_id: str) -> bool:
        return regimen_id in (str(self.id), self.external_id)
