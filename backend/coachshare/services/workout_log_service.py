"""Workout log service: athlete-owned records of completed training days.

A log belongs to exactly one athlete. Only the owner may edit it; the owner or
an admin may delete it. The owner never appears in ``shared_with``.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.errors import Forbidden, InvalidInput, NotFound
from coachshare.models.user import User, UserRole
from coachshare.models.workout_log import Difficulty, WorkoutLog
from coachshare.services import audit_service
from coachshare.services.relationship_service import has_id, normalize_shared_with, parse_uuid

logger = logging.getLogger("coachshare.workout_logs")

_UPDATABLE_FIELDS = {
    "regimen_name",
    "day_name",
    "rating",
    "difficulty",
    "notes",
    "completed",
    "completed_at",
    "duration",
    "exercises",
    "shared_with",
}
_NULLABLE_FIELDS = {"regimen_name", "day_name", "notes"}

RECENT_LOGS_LIMIT = 5


def _validate_rating(rating: int) -> None:
    if not 1 <= rating <= 10:
        raise InvalidInput("rating must be between 1 and 10")


def log_to_dict(log: WorkoutLog, athlete: User | None = None) -> dict:
    data = {
        "id": log.id,
        "athlete_id": log.athlete_id,
        "regimen_id": log.regimen_id,
        "regimen_name": log.regimen_name,
        "day_id": log.day_id,
        "day_name": log.day_name,
        "rating": log.rating,
        "difficulty": log.difficulty.value,
        "notes": log.notes,
        "completed": log.completed,
        "completed_at": log.completed_at,
        "duration": log.duration,
        "exercises": log.exercises or [],
        "shared_with": log.shared_with or [],
        "created_at": log.created_at,
    }
    if athlete is not None:
        data["athlete_name"] = athlete.full_name or "Unknown Athlete"
    return data


async def create_workout_log(
    db: AsyncSession,
    *,
    athlete: User,
    regimen_id: str | None,
    day_id: str | None,
    regimen_name: str | None = None,
    day_name: str | None = None,
    rating: int = 5,
    difficulty: Difficulty = Difficulty.medium,
    notes: str | None = None,
    completed: bool = True,
    completed_at: datetime | None = None,
    duration: int = 0,
    exercises: list[dict] | None = None,
    shared_with: list[str] | None = None,
) -> WorkoutLog:
    """Record a workout for ``athlete``.

    The regimen reference is stored as given and not checked; the athlete's
    own id is silently dropped from ``shared_with``.
    """
    if athlete.role != UserRole.athlete:
        raise Forbidden("Only athletes can log workouts.")
    if not regimen_id or not day_id:
        raise InvalidInput("Regimen ID and Day ID are required")
    _validate_rating(rating)
    if duration < 0:
        raise InvalidInput("duration must not be negative")

    log = WorkoutLog(
        athlete_id=athlete.id,
        regimen_id=str(regimen_id).strip(),
        regimen_name=regimen_name,
        day_id=str(day_id).strip(),
        day_name=day_name,
        rating=rating,
        difficulty=difficulty,
        notes=notes,
        completed=completed,
        duration=duration,
        exercises=exercises or [],
        shared_with=normalize_shared_with(athlete.id, shared_with),
    )
    if completed_at is not None:
        log.completed_at = completed_at
    db.add(log)
    await db.flush()
    return log


async def get_my_logs(db: AsyncSession, athlete_id: uuid.UUID) -> list[WorkoutLog]:
    """An athlete's logs, most recent first."""
    result = await db.execute(
        select(WorkoutLog)
        .where(WorkoutLog.athlete_id == athlete_id)
        .order_by(WorkoutLog.completed_at.desc())
    )
    return list(result.scalars().all())


async def _get_log(db: AsyncSession, log_id: uuid.UUID | str) -> WorkoutLog:
    log = await db.get(WorkoutLog, parse_uuid(log_id, "workout log ID"))
    if log is None:
        raise NotFound("Workout log not found")
    return log


async def get_log_with_access_check(
    db: AsyncSession,
    log_id: uuid.UUID | str,
    requesting_user: User,
) -> WorkoutLog:
    """Fetch a log visible to the requester.

    Visible to its owner, to coaches of the owner, to coaches it was shared
    with, and to admins.
    """
    log = await _get_log(db, log_id)

    if requesting_user.role == UserRole.admin:
        return log
    if requesting_user.role == UserRole.athlete and log.athlete_id == requesting_user.id:
        return log
    if requesting_user.role == UserRole.coach:
        if has_id(log.shared_with, requesting_user.id):
            return log
        owner = await db.get(User, log.athlete_id)
        if owner is not None and has_id(owner.coaches, requesting_user.id):
            return log

    raise Forbidden("You do not have permission to view this workout log")


async def update_workout_log(
    db: AsyncSession,
    *,
    log_id: uuid.UUID | str,
    athlete: User,
    changes: dict,
) -> WorkoutLog:
    """Apply whitelisted changes to a log owned by ``athlete``."""
    log = await _get_log(db, log_id)
    if log.athlete_id != athlete.id:
        raise Forbidden("You can only update your own workout logs")

    applied = {
        k: v
        for k, v in changes.items()
        if k in _UPDATABLE_FIELDS and (v is not None or k in _NULLABLE_FIELDS)
    }
    if "rating" in applied:
        _validate_rating(applied["rating"])
    if "shared_with" in applied:
        applied["shared_with"] = normalize_shared_with(log.athlete_id, applied["shared_with"])
    for key, value in applied.items():
        setattr(log, key, value)
    await db.flush()
    return log


async def delete_workout_log(
    db: AsyncSession,
    *,
    log_id: uuid.UUID | str,
    requesting_user: User,
    ip_address: str | None = None,
) -> None:
    """Delete a log. Only the owning athlete or an admin may do this."""
    log = await _get_log(db, log_id)
    is_owner = log.athlete_id == requesting_user.id
    if not (is_owner or requesting_user.role == UserRole.admin):
        raise Forbidden("You can only delete your own workout logs")

    await audit_service.log_event(
        db,
        user_id=requesting_user.id,
        event_type="workout_log.deleted",
        entity_type="WorkoutLog",
        entity_id=log.id,
        action="delete",
        detail={"athlete_id": str(log.athlete_id), "regimen_id": log.regimen_id},
        ip_address=ip_address,
    )
    await db.delete(log)
    await db.flush()


async def delete_logs_by_regimen(db: AsyncSession, *regimen_ids) -> int:
    """Delete every log referencing any of the given regimen ids."""
    ids = [str(r) for r in regimen_ids if r]
    if not ids:
        raise InvalidInput("Regimen ID is required to delete logs.")
    result = await db.execute(delete(WorkoutLog).where(WorkoutLog.regimen_id.in_(ids)))
    deleted = result.rowcount or 0
    logger.info("deleted %d logs for regimen ids %s", deleted, ids)
    return deleted


async def _coached_athletes(db: AsyncSession, coach: User) -> dict[uuid.UUID, User]:
    athletes: dict[uuid.UUID, User] = {}
    for raw in coach.athletes or []:
        try:
            athlete = await db.get(User, uuid.UUID(raw))
        except ValueError:
            continue
        if athlete is not None and athlete.role == UserRole.athlete:
            athletes[athlete.id] = athlete
    return athletes


async def get_logs_for_coach(db: AsyncSession, coach: User) -> list[dict]:
    """Logs of every athlete the coach coaches, most recent first."""
    athletes = await _coached_athletes(db, coach)
    if not athletes:
        return []

    result = await db.execute(
        select(WorkoutLog)
        .where(WorkoutLog.athlete_id.in_(list(athletes)))
        .order_by(WorkoutLog.completed_at.desc())
    )
    return [log_to_dict(log, athletes[log.athlete_id]) for log in result.scalars().all()]


async def get_stats_for_coach(db: AsyncSession, coach: User) -> dict:
    """Aggregate rating, duration and exercise completion over the coach's athletes."""
    logs = await get_logs_for_coach(db, coach)
    if not logs:
        return {
            "total_workouts": 0,
            "average_rating": 0.0,
            "average_duration": 0.0,
            "completion_rate": 0,
            "recent_logs": [],
            "has_data": False,
        }

    total = len(logs)
    completion_sum = 0.0
    for log in logs:
        exercises = log["exercises"]
        if exercises:
            done = sum(1 for ex in exercises if ex.get("completed"))
            completion_sum += done / len(exercises)

    return {
        "total_workouts": total,
        "average_rating": sum(log["rating"] for log in logs) / total,
        "average_duration": sum(log["duration"] for log in logs) / total,
        "completion_rate": round(completion_sum / total * 100),
        "recent_logs": logs[:RECENT_LOGS_LIMIT],
        "has_data": True,
    }


async def get_logs_shared_with_coach(db: AsyncSession, coach_id: uuid.UUID) -> list[WorkoutLog]:
    """Logs whose owners explicitly shared them with this coach."""
    result = await db.execute(select(WorkoutLog).order_by(WorkoutLog.completed_at.desc()))
    return [log for log in result.scalars().all() if has_id(log.shared_with, coach_id)]
