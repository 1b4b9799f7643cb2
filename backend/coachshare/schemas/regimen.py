import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


def _day_id() -> str:
    return str(uuid.uuid4())


class ExerciseSpec(BaseModel):
    name: str = Field(..., max_length=255)
    sets: int | None = None
    reps: str | None = None
    weight: str | None = None
    notes: str | None = None


class RegimenDay(BaseModel):
    id: str = Field(default_factory=_day_id)
    day_number: int | None = None
    name: str = ""
    exercises: list[ExerciseSpec] = []


class RegimenCreate(BaseModel):
    name: str = Field(..., max_length=255)
    description: str | None = Field(None, max_length=2000)
    start_date: datetime
    end_date: datetime
    category: str = "General"
    sport: str | None = None
    level: str = "Intermediate"
    days: list[RegimenDay] = []


class RegimenUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)
    start_date: datetime | None = None
    end_date: datetime | None = None
    category: str | None = None
    sport: str | None = None
    level: str | None = None
    days: list[RegimenDay] | None = None


class RegimenRead(BaseModel):
    id: uuid.UUID
    external_id: str
    name: str
    description: str | None = None
    start_date: datetime
    end_date: datetime
    category: str
    sport: str | None = None
    level: str
    days: list[dict] = []
    created_by: uuid.UUID
    assigned_to: list[str] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssignRequest(BaseModel):
    athlete_id: str


class AssignResponse(BaseModel):
    status: Literal["assigned", "already_assigned"]
    regimen: RegimenRead


class BulkAssignRequest(BaseModel):
    athlete_ids: list[str] = Field(..., min_length=1, max_length=200)


class BulkAssignResponse(BaseModel):
    assigned: list[str]
    rejected: list[str]
    regimen: RegimenRead


class RegimenDeleteResponse(BaseModel):
    regimen_id: uuid.UUID
    athletes_updated: int
    logs_deleted: int
