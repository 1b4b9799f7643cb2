"""Reconciliation service: batch repair of relationship asymmetries.

Relationship writes are flushed per unit of work without a cross-entity
transaction, and legacy data predates the multi-coach model. These
operator-triggered sweeps find and repair what that leaves behind:

- coach/athlete links missing on one side (from workout logs or a full sweep)
- regimen assignments missing on one side
- workout logs pointing at regimens that no longer exist
- athletes that only carry the legacy single-coach pointer

Every repair is an additive set insert, so running a sweep twice is safe.
These are full scans and are not meant for request paths.
"""

import logging
import uuid
from dataclasses import asdict, dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.models.regimen import Regimen
from coachshare.models.user import User, UserRole
from coachshare.models.workout_log import WorkoutLog
from coachshare.services import audit_service
from coachshare.services.relationship_service import add_id, has_id, sync_primary_coach

logger = logging.getLogger("coachshare.reconciliation")


@dataclass
class RepairReport:
    processed: int = 0
    skipped: int = 0
    coach_to_athlete: int = 0
    athlete_to_coach: int = 0
    regimen_to_athlete: int = 0
    athlete_to_regimen: int = 0
    any_fixes: int = 0


@dataclass
class OrphanReport:
    orphaned_regimen_ids: list[str]
    log_count: int
    dry_run: bool


@dataclass
class AssignmentSyncReport:
    added_to_regimens: int = 0
    added_to_athletes: int = 0


@dataclass
class LinkSyncReport:
    added_to_coaches: int = 0
    added_to_athletes: int = 0
    primaries_fixed: int = 0


async def _record_run(
    db: AsyncSession,
    actor_id: uuid.UUID | None,
    event_type: str,
    detail: dict,
) -> None:
    """Audit a maintenance run. CLI runs without an actor are only logged."""
    run_id = uuid.uuid4()
    logger.info("%s run=%s: %s", event_type, run_id, detail)
    if actor_id is None:
        return
    await audit_service.log_event(
        db,
        user_id=actor_id,
        event_type=event_type,
        entity_type=audit_service.MAINTENANCE_RUN,
        entity_id=run_id,
        action="reconcile",
        detail=detail,
    )


async def _load_users(db: AsyncSession, role: UserRole | None = None) -> dict[str, User]:
    stmt = select(User)
    if role is not None:
        stmt = stmt.where(User.role == role)
    result = await db.execute(stmt)
    return {str(u.id): u for u in result.scalars().all()}


async def _load_regimens(db: AsyncSession) -> list[Regimen]:
    result = await db.execute(select(Regimen))
    return list(result.scalars().all())


def _regimen_index(regimens: list[Regimen]) -> dict[str, Regimen]:
    """Index regimens under both their store id and external id."""
    index: dict[str, Regimen] = {}
    for regimen in regimens:
        index[str(regimen.id)] = regimen
        index[regimen.external_id] = regimen
    return index


async def repair_workout_log_relationships(
    db: AsyncSession,
    *,
    actor_id: uuid.UUID | None = None,
) -> RepairReport:
    """Walk every workout log and repair the links it implies.

    A log by athlete A on a regimen created by coach C implies that C coaches
    A and that the regimen is assigned to A. Logs whose regimen, athlete or
    coach is missing are skipped; they are orphan candidates, not repair
    targets.
    """
    report = RepairReport()
    users = await _load_users(db)
    regimens = _regimen_index(await _load_regimens(db))

    result = await db.execute(select(WorkoutLog).order_by(WorkoutLog.completed_at))
    for log in result.scalars().all():
        report.processed += 1
        regimen = regimens.get(log.regimen_id or "")
        athlete = users.get(str(log.athlete_id))
        if regimen is None or athlete is None or athlete.role != UserRole.athlete:
            report.skipped += 1
            continue
        coach = users.get(str(regimen.created_by))
        if coach is None or coach.role != UserRole.coach:
            report.skipped += 1
            continue

        fixed = False

        athletes, changed = add_id(coach.athletes, athlete.id)
        if changed:
            coach.athletes = athletes
            report.coach_to_athlete += 1
            fixed = True

        coaches, changed = add_id(athlete.coaches, coach.id)
        if changed:
            athlete.coaches = coaches
            sync_primary_coach(athlete)
            report.athlete_to_coach += 1
            fixed = True

        assigned_to, changed = add_id(regimen.assigned_to, athlete.id)
        if changed:
            regimen.assigned_to = assigned_to
            report.regimen_to_athlete += 1
            fixed = True

        # Older rows may hold the external id
        if not (has_id(athlete.regimens, regimen.id) or has_id(athlete.regimens, regimen.external_id)):
            athlete.regimens, _ = add_id(athlete.regimens, regimen.id)
            report.athlete_to_regimen += 1
            fixed = True

        if fixed:
            report.any_fixes += 1
            await db.flush()

    await _record_run(db, actor_id, "maintenance.relationships_repaired", asdict(report))
    return report


async def find_orphaned_regimen_ids(db: AsyncSession) -> list[str]:
    """Regimen ids referenced by workout logs that match no existing regimen."""
    referenced = (
        await db.execute(select(WorkoutLog.regimen_id).where(WorkoutLog.regimen_id.is_not(None)).distinct())
    ).scalars().all()
    existing = set(_regimen_index(await _load_regimens(db)))
    return sorted(rid for rid in referenced if rid not in existing)


async def find_orphaned_logs(db: AsyncSession) -> list[WorkoutLog]:
    orphaned = await find_orphaned_regimen_ids(db)
    if not orphaned:
        return []
    result = await db.execute(
        select(WorkoutLog).where(WorkoutLog.regimen_id.in_(orphaned)).order_by(WorkoutLog.completed_at)
    )
    return list(result.scalars().all())


async def purge_orphaned_logs(
    db: AsyncSession,
    *,
    dry_run: bool = False,
    actor_id: uuid.UUID | None = None,
) -> OrphanReport:
    """Delete workout logs whose regimen no longer exists.

    With ``dry_run`` the logs are only counted.
    """
    orphaned = await find_orphaned_regimen_ids(db)
    if not orphaned:
        return OrphanReport(orphaned_regimen_ids=[], log_count=0, dry_run=dry_run)

    if dry_run:
        count = len(await find_orphaned_logs(db))
    else:
        result = await db.execute(delete(WorkoutLog).where(WorkoutLog.regimen_id.in_(orphaned)))
        count = result.rowcount or 0

    report = OrphanReport(orphaned_regimen_ids=orphaned, log_count=count, dry_run=dry_run)
    if not dry_run:
        await _record_run(db, actor_id, "maintenance.orphans_purged", asdict(report))
    return report


async def sync_regimen_assignments(
    db: AsyncSession,
    *,
    actor_id: uuid.UUID | None = None,
) -> AssignmentSyncReport:
    """Make ``regimen.assigned_to`` and ``athlete.regimens`` mirror each other.

    Ids on either side that point at a missing entity are left alone; only
    pairs where both ends exist are completed.
    """
    report = AssignmentSyncReport()
    athletes = await _load_users(db, UserRole.athlete)
    regimens = await _load_regimens(db)
    index = _regimen_index(regimens)

    for regimen in regimens:
        for athlete_id in regimen.assigned_to or []:
            athlete = athletes.get(athlete_id)
            if athlete is None:
                continue
            if any(regimen.matches(rid) for rid in athlete.regimens or []):
                continue
            athlete.regimens, _ = add_id(athlete.regimens, regimen.id)
            report.added_to_athletes += 1

    for athlete in athletes.values():
        for regimen_id in athlete.regimens or []:
            regimen = index.get(regimen_id)
            if regimen is None:
                continue
            assigned_to, changed = add_id(regimen.assigned_to, athlete.id)
            if changed:
                regimen.assigned_to = assigned_to
                report.added_to_regimens += 1

    await db.flush()
    await _record_run(db, actor_id, "maintenance.assignments_synced", asdict(report))
    return report


async def sync_coach_links(
    db: AsyncSession,
    *,
    actor_id: uuid.UUID | None = None,
) -> LinkSyncReport:
    """Make ``coach.athletes`` and ``athlete.coaches`` mirror each other.

    Afterwards every athlete's primary and legacy pointers are re-derived
    from its coaches set.
    """
    report = LinkSyncReport()
    coaches = await _load_users(db, UserRole.coach)
    athletes = await _load_users(db, UserRole.athlete)

    for coach in coaches.values():
        for athlete_id in coach.athletes or []:
            athlete = athletes.get(athlete_id)
            if athlete is None:
                continue
            coach_ids, changed = add_id(athlete.coaches, coach.id)
            if changed:
                athlete.coaches = coach_ids
                report.added_to_athletes += 1

    for athlete in athletes.values():
        for coach_id in athlete.coaches or []:
            coach = coaches.get(coach_id)
            if coach is None:
                continue
            athlete_ids, changed = add_id(coach.athletes, athlete.id)
            if changed:
                coach.athletes = athlete_ids
                report.added_to_coaches += 1
        if sync_primary_coach(athlete):
            report.primaries_fixed += 1

    await db.flush()
    await _record_run(db, actor_id, "maintenance.links_synced", asdict(report))
    return report


async def migrate_legacy_coach_fields(
    db: AsyncSession,
    *,
    actor_id: uuid.UUID | None = None,
) -> int:
    """Move athletes off the single ``coach_id`` field onto the coaches set.

    Only athletes with a legacy coach and an empty coaches set are touched.
    The coach's own ``athletes`` side is completed by ``sync_coach_links``.
    """
    result = await db.execute(
        select(User).where(User.role == UserRole.athlete, User.coach_id.is_not(None))
    )
    migrated = 0
    for athlete in result.scalars().all():
        if athlete.coaches:
            continue
        athlete.coaches = [str(athlete.coach_id)]
        athlete.primary_coach_id = athlete.coach_id
        migrated += 1

    await db.flush()
    await _record_run(db, actor_id, "maintenance.legacy_coaches_migrated", {"migrated": migrated})
    return migrated
