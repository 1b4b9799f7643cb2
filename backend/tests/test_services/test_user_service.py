import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.auth import login_user
from coachshare.core.errors import Forbidden, InvalidInput
from coachshare.models.audit import AuditLogEvent
from coachshare.models.notification import Notification
from coachshare.models.regimen import Regimen
from coachshare.models.session import Session
from coachshare.models.user import User, UserRole
from coachshare.models.workout_log import WorkoutLog
from coachshare.services import relationship_service, user_service, workout_log_service
from coachshare.services.user_service import ROLE_CASCADES


async def _link_and_assign(db: AsyncSession, athlete, coach, regimen):
    await relationship_service.link_coach_athlete(db, athlete_id=athlete.id, coach_id=coach.id)
    await relationship_service.assign_regimen_to_athlete(
        db, regimen_id=regimen.id, athlete_id=athlete.id, requesting_coach_id=coach.id
    )
    await db.commit()


def test_every_role_has_a_deletion_cascade():
    assert set(ROLE_CASCADES) == set(UserRole)


@pytest.mark.asyncio
async def test_fetch_users_by_ids_ignores_bad_ids(db_session: AsyncSession, athlete, coach):
    users = await user_service.fetch_users_by_ids(
        db_session, [str(coach.id), "garbage", str(uuid.uuid4()), str(athlete.id), str(coach.id)]
    )
    assert [u.id for u in users] == [coach.id, athlete.id]


@pytest.mark.asyncio
async def test_rosters(db_session: AsyncSession, athlete, coach, second_coach):
    await relationship_service.link_coach_athlete(db_session, athlete_id=athlete.id, coach_id=coach.id)
    await relationship_service.link_coach_athlete(db_session, athlete_id=athlete.id, coach_id=second_coach.id)

    assert [c.id for c in await user_service.get_coaches_for_athlete(db_session, athlete)] == [
        coach.id,
        second_coach.id,
    ]
    assert [a.id for a in await user_service.get_athletes_for_coach(db_session, coach)] == [athlete.id]
    assert {c.id for c in await user_service.list_coaches(db_session)} == {coach.id, second_coach.id}
    assert len(await user_service.list_users(db_session, role=UserRole.athlete)) == 1


@pytest.mark.asyncio
async def test_update_profile_respects_role_fields(db_session: AsyncSession, athlete, coach):
    await user_service.update_profile(
        db_session, user=athlete, changes={"first_name": " Sam ", "level": "Elite", "bio": "ignored"}
    )
    await user_service.update_profile(
        db_session, user=coach, changes={"bio": "Sprint coach", "specialties": ["100m"], "level": "ignored"}
    )

    assert athlete.first_name == "Sam"
    assert athlete.level == "Elite"
    assert athlete.bio is None
    assert coach.bio == "Sprint coach"
    assert coach.specialties == ["100m"]
    assert coach.level is None

    with pytest.raises(InvalidInput):
        await user_service.update_profile(db_session, user=athlete, changes={"last_name": "  "})


@pytest.mark.asyncio
async def test_delete_coach_cascade(db_session: AsyncSession, athlete, coach, second_coach, make_regimen):
    regimen = await make_regimen(coach)
    await _link_and_assign(db_session, athlete, coach, regimen)
    await relationship_service.link_coach_athlete(db_session, athlete_id=athlete.id, coach_id=second_coach.id)
    await workout_log_service.create_workout_log(
        db_session, athlete=athlete, regimen_id=str(regimen.id), day_id="day-1"
    )
    kept = await workout_log_service.create_workout_log(
        db_session, athlete=athlete, regimen_id="elsewhere", day_id="day-1", shared_with=[str(coach.id)]
    )
    await login_user(db_session, email=coach.email, password="Pass1234!")
    await db_session.commit()
    coach_id = coach.id

    summary = await user_service.delete_user_account(db_session, user_id=coach_id, requesting_user=coach)
    await db_session.commit()

    assert summary["athletes_updated"] == 1
    assert summary["regimens_deleted"] == 1
    assert summary["logs_deleted"] == 1
    assert await db_session.get(User, coach_id) is None
    assert athlete.coaches == [str(second_coach.id)]
    assert athlete.primary_coach_id == second_coach.id
    assert athlete.coach_id == second_coach.id
    assert athlete.regimens == []
    assert (await db_session.execute(select(Regimen))).scalars().all() == []
    logs = (await db_session.execute(select(WorkoutLog))).scalars().all()
    assert [log.id for log in logs] == [kept.id]
    assert logs[0].shared_with == []
    sessions = (await db_session.execute(select(Session).where(Session.user_id == coach_id))).scalars().all()
    assert sessions == []


@pytest.mark.asyncio
async def test_delete_athlete_cascade(db_session: AsyncSession, athlete, coach, make_regimen):
    regimen = await make_regimen(coach)
    await _link_and_assign(db_session, athlete, coach, regimen)
    await workout_log_service.create_workout_log(
        db_session, athlete=athlete, regimen_id=str(regimen.id), day_id="day-1"
    )
    await db_session.commit()
    athlete_id = athlete.id

    summary = await user_service.delete_user_account(db_session, user_id=athlete_id, requesting_user=athlete)
    await db_session.commit()

    assert summary["coaches_updated"] == 1
    assert summary["regimens_updated"] == 1
    assert summary["logs_deleted"] == 1
    assert summary["notifications_deleted"] == 2
    assert coach.athletes == []
    assert regimen.assigned_to == []
    remaining = (
        await db_session.execute(select(Notification).where(Notification.user_id == athlete_id))
    ).scalars().all()
    assert remaining == []

    event = (
        await db_session.execute(select(AuditLogEvent).where(AuditLogEvent.event_type == "user.deleted"))
    ).scalar_one()
    assert event.entity_id == athlete_id
    assert event.detail["role"] == "athlete"


@pytest.mark.asyncio
async def test_delete_admin_account(db_session: AsyncSession, admin):
    summary = await user_service.delete_user_account(db_session, user_id=admin.id, requesting_user=admin)
    assert summary == {"notifications_deleted": 0}


@pytest.mark.asyncio
async def test_delete_requires_self_or_admin(db_session: AsyncSession, athlete, coach, admin):
    with pytest.raises(Forbidden):
        await user_service.delete_user_account(db_session, user_id=athlete.id, requesting_user=coach)

    await user_service.delete_user_account(db_session, user_id=athlete.id, requesting_user=admin)
    await db_session.commit()
    assert await db_session.get(User, athlete.id) is None
