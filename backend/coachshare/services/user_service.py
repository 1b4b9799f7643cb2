"""User service: profiles, coach/athlete rosters and account deletion.

Account deletion is role-specific. Each role has its own cascade that removes
the user from every relationship set that mentions them before the row goes.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.errors import Forbidden, Internal, InvalidInput, NotFound
from coachshare.models.regimen import Regimen
from coachshare.models.session import Session
from coachshare.models.user import User, UserRole, UserStatus
from coachshare.models.workout_log import WorkoutLog
from coachshare.services import audit_service, notification_service, regimen_service
from coachshare.services.relationship_service import has_id, parse_uuid, remove_id, sync_primary_coach

logger = logging.getLogger("coachshare.users")

_COMMON_PROFILE_FIELDS = {"first_name", "last_name"}

# Profile fields each role may change about itself
PROFILE_FIELDS: dict[UserRole, set[str]] = {
    UserRole.admin: _COMMON_PROFILE_FIELDS,
    UserRole.coach: _COMMON_PROFILE_FIELDS | {"bio", "specialties", "sport"},
    UserRole.athlete: _COMMON_PROFILE_FIELDS | {"sport", "level"},
}


async def get_user(db: AsyncSession, user_id: uuid.UUID | str) -> User:
    user = await db.get(User, parse_uuid(user_id, "user ID"))
    if user is None:
        raise NotFound("User not found")
    return user


async def fetch_users_by_ids(db: AsyncSession, ids: Iterable) -> list[User]:
    """Users for the given ids, in the given order. Malformed or unknown ids are ignored."""
    parsed: list[uuid.UUID] = []
    for raw in ids or []:
        try:
            parsed.append(uuid.UUID(str(raw)))
        except ValueError:
            continue
    if not parsed:
        return []

    result = await db.execute(select(User).where(User.id.in_(parsed)))
    found = {u.id: u for u in result.scalars().all()}
    return [found[uid] for uid in dict.fromkeys(parsed) if uid in found]


async def list_users(db: AsyncSession, *, role: UserRole | None = None) -> list[User]:
    stmt = select(User).order_by(User.created_at.asc())
    if role is not None:
        stmt = stmt.where(User.role == role)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_coaches(db: AsyncSession) -> list[User]:
    """Active coaches, for athletes browsing who to work with."""
    result = await db.execute(
        select(User)
        .where(User.role == UserRole.coach, User.status == UserStatus.active)
        .order_by(User.last_name, User.first_name)
    )
    return list(result.scalars().all())


async def get_coaches_for_athlete(db: AsyncSession, athlete: User) -> list[User]:
    coaches = await fetch_users_by_ids(db, athlete.coaches)
    return [c for c in coaches if c.role == UserRole.coach]


async def get_athletes_for_coach(db: AsyncSession, coach: User) -> list[User]:
    athletes = await fetch_users_by_ids(db, coach.athletes)
    return [a for a in athletes if a.role == UserRole.athlete]


async def update_profile(db: AsyncSession, *, user: User, changes: dict) -> User:
    """Apply the profile fields allowed for the user's role; others are ignored."""
    allowed = PROFILE_FIELDS[user.role]
    applied = {k: v for k, v in changes.items() if k in allowed and v is not None}
    for name_field in ("first_name", "last_name"):
        if name_field in applied:
            applied[name_field] = applied[name_field].strip()
            if not applied[name_field]:
                raise InvalidInput(f"{name_field} must not be empty")

    for key, value in applied.items():
        setattr(user, key, value)
    await db.flush()
    return user


# ── account deletion ──


async def _cascade_coach(db: AsyncSession, coach: User) -> dict:
    athletes_updated = 0
    result = await db.execute(select(User).where(User.role == UserRole.athlete))
    for athlete in result.scalars().all():
        coaches, removed = remove_id(athlete.coaches, coach.id)
        points_here = coach.id in (athlete.primary_coach_id, athlete.coach_id)
        if not (removed or points_here):
            continue
        athlete.coaches = coaches
        if athlete.primary_coach_id == coach.id:
            athlete.primary_coach_id = None
        sync_primary_coach(athlete)
        athletes_updated += 1

    result = await db.execute(select(Regimen).where(Regimen.created_by == coach.id))
    regimens = list(result.scalars().all())
    logs_deleted = 0
    for regimen in regimens:
        outcome = await regimen_service.cascade_delete_regimen(db, regimen)
        logs_deleted += outcome["logs_deleted"]

    result = await db.execute(select(WorkoutLog))
    for log in result.scalars().all():
        shared_with, changed = remove_id(log.shared_with, coach.id)
        if changed:
            log.shared_with = shared_with

    return {
        "athletes_updated": athletes_updated,
        "regimens_deleted": len(regimens),
        "logs_deleted": logs_deleted,
    }


async def _cascade_athlete(db: AsyncSession, athlete: User) -> dict:
    coaches_updated = 0
    result = await db.execute(select(User).where(User.role == UserRole.coach))
    for coach in result.scalars().all():
        athletes, changed = remove_id(coach.athletes, athlete.id)
        if changed:
            coach.athletes = athletes
            coaches_updated += 1

    regimens_updated = 0
    result = await db.execute(select(Regimen))
    for regimen in result.scalars().all():
        if has_id(regimen.assigned_to, athlete.id):
            regimen.assigned_to, _ = remove_id(regimen.assigned_to, athlete.id)
            regimens_updated += 1

    result = await db.execute(delete(WorkoutLog).where(WorkoutLog.athlete_id == athlete.id))
    return {
        "coaches_updated": coaches_updated,
        "regimens_updated": regimens_updated,
        "logs_deleted": result.rowcount or 0,
    }


async def _cascade_admin(db: AsyncSession, admin: User) -> dict:
    return {}


ROLE_CASCADES: dict[UserRole, Callable[[AsyncSession, User], Awaitable[dict]]] = {
    UserRole.coach: _cascade_coach,
    UserRole.athlete: _cascade_athlete,
    UserRole.admin: _cascade_admin,
}


async def delete_user_account(
    db: AsyncSession,
    *,
    user_id: uuid.UUID | str,
    requesting_user: User,
    ip_address: str | None = None,
) -> dict:
    """Delete an account and every relationship that points at it.

    Users may delete themselves; admins may delete anyone. Returns a summary
    of what the cascade touched.
    """
    user = await get_user(db, user_id)
    if user.id != requesting_user.id and requesting_user.role != UserRole.admin:
        raise Forbidden("You can only delete your own account")

    cascade = ROLE_CASCADES.get(user.role)
    if cascade is None:
        raise Internal(f"No deletion cascade for role {user.role}")

    summary = await cascade(db, user)
    summary["notifications_deleted"] = await notification_service.delete_all_for_user(db, user.id)

    await db.execute(delete(Session).where(Session.user_id == user.id))
    await db.delete(user)
    await db.flush()

    await audit_service.log_event(
        db,
        user_id=requesting_user.id,
        event_type="user.deleted",
        entity_type="User",
        entity_id=user.id,
        action="delete",
        detail={"role": user.role.value, **summary},
        ip_address=ip_address,
    )
    logger.info("deleted %s account %s: %s", user.role.value, user.id, summary)
    return summary
