import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from coachshare.models.workout_log import Difficulty


class WorkoutLogCreate(BaseModel):
    regimen_id: str | None = None
    day_id: str | None = None
    regimen_name: str | None = Field(None, max_length=255)
    day_name: str | None = Field(None, max_length=255)
    rating: int = 5
    difficulty: Difficulty = Difficulty.medium
    notes: str | None = Field(None, max_length=2000)
    completed: bool = True
    completed_at: datetime | None = None
    duration: int = 0
    exercises: list[dict] = []
    shared_with: list[str] = []


class WorkoutLogUpdate(BaseModel):
    regimen_name: str | None = Field(None, max_length=255)
    day_name: str | None = Field(None, max_length=255)
    rating: int | None = None
    difficulty: Difficulty | None = None
    notes: str | None = Field(None, max_length=2000)
    completed: bool | None = None
    completed_at: datetime | None = None
    duration: int | None = None
    exercises: list[dict] | None = None
    shared_with: list[str] | None = None


class WorkoutLogRead(BaseModel):
    id: uuid.UUID
    athlete_id: uuid.UUID
    regimen_id: str | None = None
    regimen_name: str | None = None
    day_id: str
    day_name: str | None = None
    rating: int
    difficulty: Difficulty
    notes: str | None = None
    completed: bool
    completed_at: datetime
    duration: int
    exercises: list[dict] = []
    shared_with: list[str] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class CoachWorkoutLogRead(WorkoutLogRead):
    athlete_name: str


class CoachStatsRead(BaseModel):
    total_workouts: int
    average_rating: float
    average_duration: float
    completion_rate: int
    recent_logs: list[CoachWorkoutLogRead]
    has_data: bool
