"""Relationship service: coach-athlete links and regimen assignments.

Each relationship is stored on both entities:

- ``athlete.coaches`` / ``coach.athletes`` (plus the athlete's
  ``primary_coach_id`` and its legacy mirror ``coach_id``)
- ``regimen.assigned_to`` / ``athlete.regimens``

Every write to those fields goes through this module or the reconciliation
service. Operations validate first, then set-add or set-remove on both sides
and flush them in one unit of work, so repeated or concurrent calls converge
on a single entry. There is no cross-document transaction: an asymmetry left
behind by a failed write is repaired by ``reconciliation_service``.
"""

import logging
import secrets
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.config import settings
from coachshare.core.errors import Forbidden, InvalidInput, NotFound
from coachshare.models.notification import NotificationType
from coachshare.models.regimen import Regimen
from coachshare.models.user import User, UserRole, UserStatus
from coachshare.services import audit_service, notification_service

logger = logging.getLogger("coachshare.relationships")


@dataclass
class LinkResult:
    athlete: User
    coach: User
    changed: bool


@dataclass
class AssignmentResult:
    regimen: Regimen
    athlete: User
    changed: bool


@dataclass
class BulkAssignmentResult:
    regimen: Regimen
    assigned: list[str]
    rejected: list[str]


@dataclass
class InviteResult:
    athlete: User
    created: bool
    # Raw first-password token, only for newly created accounts
    setup_token: str | None = None


# ── id-set helpers ──


def parse_uuid(value: uuid.UUID | str, field: str = "id") -> uuid.UUID:
    """Coerce an id to UUID, raising InvalidInput on a malformed value."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError):
        raise InvalidInput(f"Invalid {field} format.")


def has_id(ids: Iterable[str] | None, value) -> bool:
    return str(value) in (ids or [])


def add_id(ids: Iterable[str] | None, value) -> tuple[list[str], bool]:
    """Set-add preserving insertion order. Returns (new_list, changed)."""
    current = list(ids or [])
    value = str(value)
    if value in current:
        return current, False
    return [*current, value], True


def remove_id(ids: Iterable[str] | None, *values) -> tuple[list[str], bool]:
    """Remove every occurrence of the given ids. Returns (new_list, changed)."""
    current = list(ids or [])
    drop = {str(v) for v in values}
    kept = [i for i in current if i not in drop]
    return kept, len(kept) != len(current)


def sync_primary_coach(athlete: User) -> bool:
    """Re-establish the primary-coach pointer and its legacy mirror.

    The current primary is kept while it is still in ``coaches``; otherwise the
    first remaining coach is promoted, or both pointers are cleared when the
    set is empty. Returns True if anything changed.
    """
    coaches = list(athlete.coaches or [])
    primary = athlete.primary_coach_id
    if primary is None or str(primary) not in coaches:
        primary = uuid.UUID(coaches[0]) if coaches else None

    changed = False
    if athlete.primary_coach_id != primary:
        athlete.primary_coach_id = primary
        changed = True
    if athlete.coach_id != primary:
        athlete.coach_id = primary
        changed = True
    return changed


def normalize_shared_with(athlete_id: uuid.UUID, shared_with: Iterable | None) -> list[str]:
    """Drop malformed ids, duplicates and the owning athlete from a share list."""
    result: list[str] = []
    owner = str(athlete_id)
    for raw in shared_with or []:
        try:
            coach_id = str(uuid.UUID(str(raw)))
        except ValueError:
            continue
        if coach_id != owner and coach_id not in result:
            result.append(coach_id)
    return result


# ── lookups ──


async def get_user_with_role(
    db: AsyncSession,
    user_id: uuid.UUID | str,
    role: UserRole,
) -> User:
    uid = parse_uuid(user_id, f"{role.value} ID")
    user = await db.get(User, uid)
    if user is None or user.role != role:
        raise NotFound(f"{role.value.capitalize()} not found or user is not a {role.value}.")
    return user


async def find_regimen(db: AsyncSession, regimen_id: uuid.UUID | str) -> Regimen | None:
    """Look a regimen up by external id first, then by store id."""
    rid = parse_uuid(regimen_id, "regimen ID")
    result = await db.execute(select(Regimen).where(Regimen.external_id == str(rid)))
    regimen = result.scalar_one_or_none()
    if regimen is None:
        regimen = await db.get(Regimen, rid)
    return regimen


async def get_regimen(db: AsyncSession, regimen_id: uuid.UUID | str) -> Regimen:
    regimen = await find_regimen(db, regimen_id)
    if regimen is None:
        raise NotFound("Regimen not found.")
    return regimen


# ── coach <-> athlete ──


async def link_coach_athlete(
    db: AsyncSession,
    *,
    athlete_id: uuid.UUID | str,
    coach_id: uuid.UUID | str,
    actor_id: uuid.UUID | None = None,
    ip_address: str | None = None,
) -> LinkResult:
    """Link an athlete and a coach on both sides.

    The coach becomes primary if the athlete has none. Calling this for an
    already-linked pair writes nothing.
    """
    athlete = await get_user_with_role(db, athlete_id, UserRole.athlete)
    coach = await get_user_with_role(db, coach_id, UserRole.coach)

    coaches, athlete_changed = add_id(athlete.coaches, coach.id)
    if athlete_changed:
        athlete.coaches = coaches
    if athlete.primary_coach_id is None:
        athlete.primary_coach_id = coach.id
        athlete_changed = True
    athlete_changed = sync_primary_coach(athlete) or athlete_changed

    athletes, coach_changed = add_id(coach.athletes, athlete.id)
    if coach_changed:
        coach.athletes = athletes

    changed = athlete_changed or coach_changed
    if not changed:
        return LinkResult(athlete=athlete, coach=coach, changed=False)

    await db.flush()
    logger.info("linked coach %s to athlete %s", coach.id, athlete.id)

    await audit_service.log_event(
        db,
        user_id=actor_id or coach.id,
        event_type="relationship.linked",
        entity_type="User",
        entity_id=athlete.id,
        action="link",
        detail={"coach_id": str(coach.id), "primary_coach_id": str(athlete.primary_coach_id)},
        ip_address=ip_address,
    )
    await notification_service.create_notification(
        db,
        user_id=athlete.id,
        title="New coach",
        message=f"{coach.full_name or coach.email} is now coaching you.",
        type=NotificationType.coach_message,
        related_id=str(coach.id),
    )
    return LinkResult(athlete=athlete, coach=coach, changed=True)


async def unlink_coach_athlete(
    db: AsyncSession,
    *,
    athlete_id: uuid.UUID | str,
    coach_id: uuid.UUID | str,
    actor_id: uuid.UUID | None = None,
    ip_address: str | None = None,
) -> bool:
    """Remove the link on both sides. Returns True if anything changed.

    If the coach was primary, the first remaining coach is promoted; with no
    coaches left the primary and legacy pointers are cleared.
    """
    athlete = await get_user_with_role(db, athlete_id, UserRole.athlete)
    coach = await get_user_with_role(db, coach_id, UserRole.coach)

    athlete_changed = False
    coaches, removed = remove_id(athlete.coaches, coach.id)
    if removed or athlete.primary_coach_id == coach.id or athlete.coach_id == coach.id:
        athlete.coaches = coaches
        if athlete.primary_coach_id == coach.id:
            athlete.primary_coach_id = None
        sync_primary_coach(athlete)
        athlete_changed = True

    athletes, coach_changed = remove_id(coach.athletes, athlete.id)
    if coach_changed:
        coach.athletes = athletes

    if not (athlete_changed or coach_changed):
        return False

    await db.flush()
    logger.info("unlinked coach %s from athlete %s", coach.id, athlete.id)

    await audit_service.log_event(
        db,
        user_id=actor_id or coach.id,
        event_type="relationship.unlinked",
        entity_type="User",
        entity_id=athlete.id,
        action="unlink",
        detail={
            "coach_id": str(coach.id),
            "primary_coach_id": str(athlete.primary_coach_id) if athlete.primary_coach_id else None,
        },
        ip_address=ip_address,
    )
    return True


async def invite_athlete(
    db: AsyncSession,
    *,
    coach: User,
    email: str,
    first_name: str = "",
    last_name: str = "",
    ip_address: str | None = None,
) -> InviteResult:
    """Link a coach to the athlete with this email, creating the account if needed.

    A new account gets an unusable password plus a setup token; the athlete
    redeems the token through the password-reset flow to choose a password.
    """
    from coachshare.core.auth import get_user_by_email, issue_password_token, normalize_email

    if coach.role != UserRole.coach:
        raise Forbidden("Only coaches can invite athletes.")

    email = normalize_email(email)
    if not email:
        raise InvalidInput("Email is required.")

    athlete = await get_user_by_email(db, email)
    setup_token = None
    if athlete is None:
        athlete = User(
            email=email,
            password_hash=f"!invited-{secrets.token_hex(16)}",
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            role=UserRole.athlete,
            status=UserStatus.active,
        )
        setup_token = issue_password_token(athlete, timedelta(hours=settings.invite_token_hours))
        db.add(athlete)
        await db.flush()
        logger.info("coach %s invited new athlete %s", coach.id, athlete.id)
    elif athlete.role != UserRole.athlete:
        raise InvalidInput("That email belongs to a user who is not an athlete.")

    await link_coach_athlete(
        db, athlete_id=athlete.id, coach_id=coach.id, actor_id=coach.id, ip_address=ip_address
    )
    return InviteResult(athlete=athlete, created=setup_token is not None, setup_token=setup_token)


# ── regimen <-> athlete ──


async def assign_regimen_to_athlete(
    db: AsyncSession,
    *,
    regimen_id: uuid.UUID | str,
    athlete_id: uuid.UUID | str,
    requesting_coach_id: uuid.UUID | str,
    ip_address: str | None = None,
) -> AssignmentResult:
    """Assign a regimen to one of the requesting coach's athletes.

    Only the regimen's creator may assign it, and only to an athlete already
    linked to them. Re-assigning is a no-op reported with ``changed=False``.
    """
    coach_uuid = parse_uuid(requesting_coach_id, "coach ID")
    athlete_uuid = parse_uuid(athlete_id, "athlete ID")

    regimen = await get_regimen(db, regimen_id)
    if regimen.created_by != coach_uuid:
        raise Forbidden("You can only assign regimens you created.")

    athlete = await db.get(User, athlete_uuid)
    if athlete is None or athlete.role != UserRole.athlete or not has_id(athlete.coaches, coach_uuid):
        raise NotFound("Athlete not found or not coached by you.")

    assigned_to, regimen_changed = add_id(regimen.assigned_to, athlete.id)
    if regimen_changed:
        regimen.assigned_to = assigned_to

    regimens, athlete_changed = add_id(athlete.regimens, regimen.id)
    if athlete_changed:
        athlete.regimens = regimens

    if not (regimen_changed or athlete_changed):
        logger.info("regimen %s already assigned to athlete %s", regimen.id, athlete.id)
        return AssignmentResult(regimen=regimen, athlete=athlete, changed=False)

    await db.flush()
    logger.info("assigned regimen %s to athlete %s", regimen.id, athlete.id)

    await audit_service.log_event(
        db,
        user_id=coach_uuid,
        event_type="regimen.assigned",
        entity_type="Regimen",
        entity_id=regimen.id,
        action="assign",
        detail={"athlete_id": str(athlete.id)},
        ip_address=ip_address,
    )
    await notification_service.create_notification(
        db,
        user_id=athlete.id,
        title="New program assigned",
        message=f"You have been assigned the program '{regimen.name}'.",
        type=NotificationType.program_assigned,
        related_id=regimen.external_id,
    )
    return AssignmentResult(regimen=regimen, athlete=athlete, changed=True)


async def assign_regimen_to_athletes(
    db: AsyncSession,
    *,
    regimen_id: uuid.UUID | str,
    athlete_ids: Iterable[uuid.UUID | str],
    requesting_coach_id: uuid.UUID | str,
    ip_address: str | None = None,
) -> BulkAssignmentResult:
    """Assign one regimen to several of the requesting coach's athletes.

    Each id goes through the single-assign checks. Malformed, unknown or
    unlinked athletes are reported in ``rejected``; athletes that already had
    the regimen count as assigned. InvalidInput if no athlete qualifies.
    """
    requested = list(dict.fromkeys(str(a).strip() for a in athlete_ids))
    if not requested:
        raise InvalidInput("At least one athlete ID is required.")

    coach_uuid = parse_uuid(requesting_coach_id, "coach ID")
    regimen = await get_regimen(db, regimen_id)
    if regimen.created_by != coach_uuid:
        raise Forbidden("You can only assign regimens you created.")

    assigned: list[str] = []
    rejected: list[str] = []
    for athlete_id in requested:
        try:
            result = await assign_regimen_to_athlete(
                db,
                regimen_id=regimen.id,
                athlete_id=athlete_id,
                requesting_coach_id=coach_uuid,
                ip_address=ip_address,
            )
        except (InvalidInput, NotFound):
            rejected.append(athlete_id)
            continue
        assigned.append(str(result.athlete.id))

    if rejected:
        logger.warning("regimen %s: skipped athletes %s", regimen.id, ", ".join(rejected))
    if not assigned:
        raise InvalidInput("None of the selected athletes could be found or belong to you.")

    return BulkAssignmentResult(regimen=regimen, assigned=assigned, rejected=rejected)


async def unassign_regimen_from_athlete(
    db: AsyncSession,
    *,
    regimen_id: uuid.UUID | str,
    athlete_id: uuid.UUID | str,
    requesting_coach_id: uuid.UUID | str,
    ip_address: str | None = None,
) -> bool:
    """Remove an assignment on both sides. Returns True if anything changed."""
    coach_uuid = parse_uuid(requesting_coach_id, "coach ID")
    athlete_uuid = parse_uuid(athlete_id, "athlete ID")

    regimen = await get_regimen(db, regimen_id)
    if regimen.created_by != coach_uuid:
        raise Forbidden("You can only modify regimens you created.")

    assigned_to, regimen_changed = remove_id(regimen.assigned_to, athlete_uuid)
    if regimen_changed:
        regimen.assigned_to = assigned_to

    athlete_changed = False
    athlete = await db.get(User, athlete_uuid)
    if athlete is not None:
        regimens, athlete_changed = remove_id(athlete.regimens, regimen.id, regimen.external_id)
        if athlete_changed:
            athlete.regimens = regimens

    if not (regimen_changed or athlete_changed):
        return False

    await db.flush()
    logger.info("removed athlete %s from regimen %s", athlete_uuid, regimen.id)

    await audit_service.log_event(
        db,
        user_id=coach_uuid,
        event_type="regimen.unassigned",
        entity_type="Regimen",
        entity_id=regimen.id,
        action="unassign",
        detail={"athlete_id": str(athlete_uuid)},
        ip_address=ip_address,
    )
    return True
