import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.models.audit import AuditLogEvent
from coachshare.models.workout_log import WorkoutLog
from coachshare.services import reconciliation_service, regimen_service, workout_log_service


async def _log(db: AsyncSession, athlete, regimen_id: str) -> WorkoutLog:
    return await workout_log_service.create_workout_log(
        db, athlete=athlete, regimen_id=regimen_id, day_id="day-1"
    )


async def _regimen_ids(db: AsyncSession) -> list[str]:
    result = await db.execute(select(WorkoutLog.regimen_id).order_by(WorkoutLog.regimen_id))
    return list(result.scalars().all())


# ── orphan purge ──


@pytest.mark.asyncio
async def test_purge_deletes_only_logs_of_missing_regimens(
    db_session: AsyncSession, athlete, coach, make_regimen
):
    existing = await make_regimen(coach)
    missing = str(uuid.uuid4())
    await _log(db_session, athlete, str(existing.id))
    await _log(db_session, athlete, str(existing.id))
    await _log(db_session, athlete, missing)
    await _log(db_session, athlete, missing)
    await db_session.commit()

    report = await reconciliation_service.purge_orphaned_logs(db_session)
    await db_session.commit()

    assert report.orphaned_regimen_ids == [missing]
    assert report.log_count == 2
    assert await _regimen_ids(db_session) == [str(existing.id)] * 2


@pytest.mark.asyncio
async def test_external_id_references_are_not_orphans(db_session: AsyncSession, athlete, coach, make_regimen):
    regimen = await make_regimen(coach)
    await _log(db_session, athlete, regimen.external_id)
    await db_session.commit()

    assert await reconciliation_service.find_orphaned_regimen_ids(db_session) == []
    report = await reconciliation_service.purge_orphaned_logs(db_session)
    assert report.log_count == 0


@pytest.mark.asyncio
async def test_purge_dry_run_only_counts(db_session: AsyncSession, athlete):
    await _log(db_session, athlete, "gone-1")
    await _log(db_session, athlete, "gone-2")
    await db_session.commit()

    orphans = await reconciliation_service.find_orphaned_logs(db_session)
    report = await reconciliation_service.purge_orphaned_logs(db_session, dry_run=True)

    assert len(orphans) == 2
    assert report.dry_run is True
    assert report.log_count == 2
    assert report.orphaned_regimen_ids == ["gone-1", "gone-2"]
    assert len(await _regimen_ids(db_session)) == 2


@pytest.mark.asyncio
async def test_purge_records_audit_event_for_actor(db_session: AsyncSession, athlete, admin):
    await _log(db_session, athlete, "gone")
    await db_session.commit()

    await reconciliation_service.purge_orphaned_logs(db_session, actor_id=admin.id)
    await db_session.commit()

    event = (
        await db_session.execute(
            select(AuditLogEvent).where(AuditLogEvent.event_type == "maintenance.orphans_purged")
        )
    ).scalar_one()
    assert event.user_id == admin.id
    assert event.detail["log_count"] == 1


# ── relationship repair ──


@pytest.mark.asyncio
async def test_repair_restores_links_implied_by_logs(db_session: AsyncSession, athlete, coach, make_regimen):
    """A log on a coach's regimen implies link and assignment; both are restored."""
    regimen = await make_regimen(coach)
    await _log(db_session, athlete, regimen.external_id)
    await db_session.commit()

    report = await reconciliation_service.repair_workout_log_relationships(db_session)
    await db_session.commit()

    assert report.processed == 1
    assert report.skipped == 0
    assert report.coach_to_athlete == 1
    assert report.athlete_to_coach == 1
    assert report.regimen_to_athlete == 1
    assert report.athlete_to_regimen == 1
    assert report.any_fixes == 1
    assert coach.athletes == [str(athlete.id)]
    assert athlete.coaches == [str(coach.id)]
    assert athlete.primary_coach_id == coach.id
    assert athlete.coach_id == coach.id
    assert regimen.assigned_to == [str(athlete.id)]
    assert athlete.regimens == [str(regimen.id)]
    assert [r.id for r in await regimen_service.get_regimens_for_athlete(db_session, athlete)] == [regimen.id]

    rerun = await reconciliation_service.repair_workout_log_relationships(db_session)
    assert rerun.any_fixes == 0
    assert rerun.processed == 1


@pytest.mark.asyncio
async def test_repair_fixes_one_sided_link(db_session: AsyncSession, athlete, coach, make_regimen):
    regimen = await make_regimen(coach)
    coach.athletes = [str(athlete.id)]
    regimen.assigned_to = [str(athlete.id)]
    athlete.regimens = [regimen.external_id]
    await _log(db_session, athlete, str(regimen.id))
    await db_session.commit()

    report = await reconciliation_service.repair_workout_log_relationships(db_session)

    assert report.coach_to_athlete == 0
    assert report.athlete_to_coach == 1
    assert report.regimen_to_athlete == 0
    assert report.athlete_to_regimen == 0
    assert athlete.regimens == [regimen.external_id]
    assert report.any_fixes == 1


@pytest.mark.asyncio
async def test_repair_skips_logs_without_regimen_or_coach(
    db_session: AsyncSession, athlete, coach, make_regimen
):
    regimen = await make_regimen(coach)
    await _log(db_session, athlete, "missing-regimen")
    await _log(db_session, athlete, str(regimen.id))
    await db_session.commit()
    regimen.created_by = uuid.uuid4()
    await db_session.commit()

    report = await reconciliation_service.repair_workout_log_relationships(db_session)

    assert report.processed == 2
    assert report.skipped == 2
    assert report.any_fixes == 0
    assert athlete.coaches == []


# ── full sweeps ──


@pytest.mark.asyncio
async def test_sync_regimen_assignments_both_directions(
    db_session: AsyncSession, athlete, coach, make_user, make_regimen
):
    other = await make_user("b@x.com")
    forward = await make_regimen(coach, "Forward")
    backward = await make_regimen(coach, "Backward")
    forward.assigned_to = [str(athlete.id), str(uuid.uuid4())]
    other.regimens = [backward.external_id, str(uuid.uuid4())]
    await db_session.commit()

    report = await reconciliation_service.sync_regimen_assignments(db_session)
    await db_session.commit()

    assert report.added_to_athletes == 1
    assert report.added_to_regimens == 1
    assert athlete.regimens == [str(forward.id)]
    assert backward.assigned_to == [str(other.id)]

    rerun = await reconciliation_service.sync_regimen_assignments(db_session)
    assert (rerun.added_to_athletes, rerun.added_to_regimens) == (0, 0)


@pytest.mark.asyncio
async def test_sync_coach_links_and_primaries(db_session: AsyncSession, athlete, coach, second_coach, make_user):
    other = await make_user("b@x.com")
    coach.athletes = [str(athlete.id)]
    other.coaches = [str(second_coach.id)]
    other.primary_coach_id = coach.id
    await db_session.commit()

    report = await reconciliation_service.sync_coach_links(db_session)
    await db_session.commit()

    assert report.added_to_athletes == 1
    assert report.added_to_coaches == 1
    assert report.primaries_fixed == 2
    assert athlete.coaches == [str(coach.id)]
    assert athlete.primary_coach_id == coach.id
    assert second_coach.athletes == [str(other.id)]
    assert other.primary_coach_id == second_coach.id
    assert other.coach_id == second_coach.id


@pytest.mark.asyncio
async def test_migrate_legacy_coach_fields(db_session: AsyncSession, athlete, coach, second_coach, make_user):
    already = await make_user("b@x.com")
    athlete.coach_id = coach.id
    already.coach_id = coach.id
    already.coaches = [str(second_coach.id)]
    await db_session.commit()

    migrated = await reconciliation_service.migrate_legacy_coach_fields(db_session)
    await db_session.commit()

    assert migrated == 1
    assert athlete.coaches == [str(coach.id)]
    assert athlete.primary_coach_id == coach.id
    assert already.coaches == [str(second_coach.id)]

    links = await reconciliation_service.sync_coach_links(db_session)
    assert links.added_to_coaches == 2
    assert coach.athletes == [str(athlete.id)]
