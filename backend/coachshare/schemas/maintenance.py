import uuid
from datetime import datetime

from pydantic import BaseModel


class RepairReportRead(BaseModel):
    processed: int
    skipped: int
    coach_to_athlete: int
    athlete_to_coach: int
    regimen_to_athlete: int
    athlete_to_regimen: int
    any_fixes: int

    model_config = {"from_attributes": True}


class OrphanReportRead(BaseModel):
    orphaned_regimen_ids: list[str]
    log_count: int
    dry_run: bool

    model_config = {"from_attributes": True}


class OrphanedLogRead(BaseModel):
    id: uuid.UUID
    athlete_id: uuid.UUID
    regimen_id: str | None = None
    day_id: str

    model_config = {"from_attributes": True}


class AssignmentSyncReportRead(BaseModel):
    added_to_regimens: int
    added_to_athletes: int

    model_config = {"from_attributes": True}


class LinkSyncReportRead(BaseModel):
    added_to_coaches: int
    added_to_athletes: int
    primaries_fixed: int

    model_config = {"from_attributes": True}


class LegacyMigrationRead(BaseModel):
    migrated: int


class AuditEventRead(BaseModel):
    """One audit trail entry, as shown to admins investigating a repair."""

    id: uuid.UUID
    user_id: uuid.UUID
    event_type: str
    entity_type: str
    entity_id: uuid.UUID
    action: str
    detail: dict | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}
