"""Regimen service: coach-owned training plans.

Only the creating coach may change a regimen; admins may also delete one.
Assignment to athletes lives in ``relationship_service``.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.errors import Forbidden, InvalidInput
from coachshare.models.base import as_utc
from coachshare.models.regimen import Regimen, generate_external_id
from coachshare.models.user import User, UserRole
from coachshare.services import audit_service, workout_log_service
from coachshare.services.relationship_service import get_regimen, has_id, remove_id

logger = logging.getLogger("coachshare.regimens")

# Fields a coach may change through update_regimen
_UPDATABLE_FIELDS = {
    "name",
    "description",
    "start_date",
    "end_date",
    "category",
    "sport",
    "level",
    "days",
}
_NULLABLE_FIELDS = {"description", "sport"}


def _validate_dates(start_date: datetime, end_date: datetime) -> None:
    if as_utc(end_date) < as_utc(start_date):
        raise InvalidInput("end_date must not be before start_date")


async def create_regimen(
    db: AsyncSession,
    *,
    coach: User,
    name: str,
    start_date: datetime,
    end_date: datetime,
    description: str | None = None,
    category: str = "General",
    sport: str | None = None,
    level: str = "Intermediate",
    days: list[dict] | None = None,
    ip_address: str | None = None,
) -> Regimen:
    """Create a regimen owned by ``coach`` with a fresh external id."""
    if coach.role != UserRole.coach:
        raise Forbidden("Only coaches can create regimens.")
    if not name or not name.strip():
        raise InvalidInput("Regimen name is required")
    _validate_dates(start_date, end_date)

    regimen = Regimen(
        external_id=generate_external_id(),
        name=name.strip(),
        description=description,
        start_date=start_date,
        end_date=end_date,
        category=category,
        sport=sport,
        level=level,
        days=days or [],
        created_by=coach.id,
        assigned_to=[],
    )
    db.add(regimen)
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=coach.id,
        event_type="regimen.created",
        entity_type="Regimen",
        entity_id=regimen.id,
        action="create",
        detail={"name": regimen.name, "external_id": regimen.external_id},
        ip_address=ip_address,
    )
    return regimen


async def get_regimens_by_coach(db: AsyncSession, coach_id: uuid.UUID) -> list[Regimen]:
    result = await db.execute(
        select(Regimen).where(Regimen.created_by == coach_id).order_by(Regimen.created_at.desc())
    )
    return list(result.scalars().all())


async def get_regimens_for_athlete(db: AsyncSession, athlete: User) -> list[Regimen]:
    """Regimens whose ``assigned_to`` holds the athlete, newest first."""
    result = await db.execute(select(Regimen).order_by(Regimen.created_at.desc()))
    return [r for r in result.scalars().all() if has_id(r.assigned_to, athlete.id)]


async def get_regimen_with_access_check(
    db: AsyncSession,
    regimen_id: str,
    requesting_user: User,
) -> Regimen:
    """Fetch a regimen the requester may see.

    Coaches see their own regimens, athletes the ones assigned to them, admins
    everything.
    """
    regimen = await get_regimen(db, regimen_id)

    if requesting_user.role == UserRole.coach:
        if regimen.created_by != requesting_user.id:
            raise Forbidden("You do not have permission to access this regimen (not creator).")
    elif requesting_user.role == UserRole.athlete:
        if not has_id(regimen.assigned_to, requesting_user.id):
            raise Forbidden("You do not have permission to access this regimen (not assigned).")
    elif requesting_user.role != UserRole.admin:
        raise Forbidden("You do not have permission to access this resource.")

    return regimen


async def update_regimen(
    db: AsyncSession,
    *,
    regimen_id: str,
    requesting_coach_id: uuid.UUID,
    changes: dict,
    ip_address: str | None = None,
) -> Regimen:
    """Apply whitelisted changes. Ownership fields and assignments are never touched."""
    regimen = await get_regimen(db, regimen_id)
    if regimen.created_by != requesting_coach_id:
        raise Forbidden("You can only update regimens you created.")

    applied = {
        k: v
        for k, v in changes.items()
        if k in _UPDATABLE_FIELDS and (v is not None or k in _NULLABLE_FIELDS)
    }
    if "name" in applied and not applied["name"].strip():
        raise InvalidInput("Regimen name is required")
    for key, value in applied.items():
        setattr(regimen, key, value)
    _validate_dates(regimen.start_date, regimen.end_date)
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=requesting_coach_id,
        event_type="regimen.updated",
        entity_type="Regimen",
        entity_id=regimen.id,
        action="update",
        detail={"fields": sorted(applied)},
        ip_address=ip_address,
    )
    return regimen


async def delete_regimen(
    db: AsyncSession,
    *,
    regimen_id: str,
    requesting_user: User,
    ip_address: str | None = None,
) -> dict:
    """Delete a regimen, pull it from its athletes and delete its workout logs.

    Allowed for the creating coach and for admins.
    """
    regimen = await get_regimen(db, regimen_id)

    is_creator = regimen.created_by == requesting_user.id
    if not (is_creator or requesting_user.role == UserRole.admin):
        raise Forbidden("You do not have permission to delete this regimen.")

    result = await cascade_delete_regimen(db, regimen)

    await audit_service.log_event(
        db,
        user_id=requesting_user.id,
        event_type="regimen.deleted",
        entity_type="Regimen",
        entity_id=result["regimen_id"],
        action="delete",
        detail={
            "athletes_updated": result["athletes_updated"],
            "logs_deleted": result["logs_deleted"],
        },
        ip_address=ip_address,
    )
    return result


async def cascade_delete_regimen(db: AsyncSession, regimen: Regimen) -> dict:
    """Remove a regimen and every reference to it. Shared with account deletion."""
    regimen_pk = regimen.id
    external_id = regimen.external_id

    athletes_updated = 0
    for athlete_id in list(regimen.assigned_to or []):
        try:
            athlete = await db.get(User, uuid.UUID(athlete_id))
        except ValueError:
            continue
        if athlete is None:
            continue
        regimens, changed = remove_id(athlete.regimens, regimen_pk, external_id)
        if changed:
            athlete.regimens = regimens
            athletes_updated += 1

    await db.delete(regimen)
    await db.flush()

    logs_deleted = await workout_log_service.delete_logs_by_regimen(db, regimen_pk, external_id)

    logger.info(
        "deleted regimen %s: %d athletes updated, %d logs deleted",
        regimen_pk,
        athletes_updated,
        logs_deleted,
    )
    return {
        "regimen_id": regimen_pk,
        "athletes_updated": athletes_updated,
        "logs_deleted": logs_deleted,
    }
