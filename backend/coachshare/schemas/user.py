import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    # Admins are created from the maintenance CLI only
    role: Literal["athlete", "coach"] = "athlete"


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)


class LoginResponse(BaseModel):
    token: str
    user_id: uuid.UUID
    role: str


class PasswordUpdateRequest(BaseModel):
    current_password: str = Field(..., max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., max_length=255)


class ForgotPasswordResponse(BaseModel):
    message: str


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=8, max_length=128)


class UserSummary(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: str
    sport: str | None = None
    level: str | None = None

    model_config = {"from_attributes": True}


class UserRead(UserSummary):
    status: str
    bio: str | None = None
    specialties: list[str] = []
    coaches: list[str] = []
    primary_coach_id: uuid.UUID | None = None
    regimens: list[str] = []
    athletes: list[str] = []
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    bio: str | None = Field(None, max_length=500)
    specialties: list[str] | None = None
    sport: str | None = Field(None, max_length=100)
    level: str | None = Field(None, max_length=50)


class InviteAthleteRequest(BaseModel):
    email: str = Field(..., max_length=255)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)


class InviteAthleteResponse(BaseModel):
    athlete: UserSummary
    created: bool
    # Redeem via POST /auth/reset-password to set a first password
    setup_token: str | None = None


class LinkResponse(BaseModel):
    athlete_id: uuid.UUID
    coach_id: uuid.UUID
    primary_coach_id: uuid.UUID | None = None
    changed: bool


class DeletionSummary(BaseModel):
    notifications_deleted: int = 0
    athletes_updated: int = 0
    regimens_deleted: int = 0
    coaches_updated: int = 0
    regimens_updated: int = 0
    logs_deleted: int = 0
