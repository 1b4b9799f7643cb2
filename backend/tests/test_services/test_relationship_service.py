import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.errors import Forbidden, InvalidInput, NotFound
from coachshare.models.audit import AuditLogEvent
from coachshare.models.notification import Notification, NotificationType
from coachshare.models.user import User, UserRole
from coachshare.services import relationship_service


async def _link(db: AsyncSession, athlete: User, coach: User):
    result = await relationship_service.link_coach_athlete(
        db, athlete_id=athlete.id, coach_id=coach.id
    )
    await db.commit()
    return result


async def _unlink(db: AsyncSession, athlete: User, coach: User) -> bool:
    changed = await relationship_service.unlink_coach_athlete(
        db, athlete_id=athlete.id, coach_id=coach.id
    )
    await db.commit()
    return changed


# ── link / unlink ──


@pytest.mark.asyncio
async def test_invite_existing_athlete_links_both_sides(db_session: AsyncSession, athlete, coach):
    """Registered athlete invited by a coach ends up linked with that coach as primary."""
    result = await relationship_service.invite_athlete(
        db_session, coach=coach, email="A@X.com "
    )
    await db_session.commit()

    assert result.created is False
    assert result.setup_token is None
    assert result.athlete.id == athlete.id
    assert athlete.coaches == [str(coach.id)]
    assert athlete.primary_coach_id == coach.id
    assert athlete.coach_id == coach.id
    assert coach.athletes == [str(athlete.id)]


@pytest.mark.asyncio
async def test_invite_unknown_email_creates_athlete(db_session: AsyncSession, coach):
    result = await relationship_service.invite_athlete(
        db_session, coach=coach, email="new@x.com", first_name="New", last_name="Runner"
    )
    await db_session.commit()
    invited = result.athlete

    assert result.created is True
    assert result.setup_token
    assert invited.reset_password_token != result.setup_token
    assert invited.reset_password_expires is not None
    assert invited.role == UserRole.athlete
    assert invited.email == "new@x.com"
    assert invited.password_hash.startswith("!invited-")
    assert coach.athletes == [str(invited.id)]


@pytest.mark.asyncio
async def test_invite_rejects_non_athlete_email(db_session: AsyncSession, coach, second_coach):
    with pytest.raises(InvalidInput):
        await relationship_service.invite_athlete(db_session, coach=coach, email=second_coach.email)


@pytest.mark.asyncio
async def test_invite_requires_coach(db_session: AsyncSession, athlete):
    with pytest.raises(Forbidden):
        await relationship_service.invite_athlete(db_session, coach=athlete, email="x@x.com")


@pytest.mark.asyncio
async def test_link_twice_is_idempotent(db_session: AsyncSession, athlete, coach):
    first = await _link(db_session, athlete, coach)
    snapshot = (list(athlete.coaches), athlete.primary_coach_id, athlete.coach_id, list(coach.athletes))

    second = await _link(db_session, athlete, coach)

    assert first.changed is True
    assert second.changed is False
    assert (list(athlete.coaches), athlete.primary_coach_id, athlete.coach_id, list(coach.athletes)) == snapshot

    events = (
        await db_session.execute(
            select(AuditLogEvent).where(AuditLogEvent.event_type == "relationship.linked")
        )
    ).scalars().all()
    assert len(events) == 1


@pytest.mark.asyncio
async def test_link_notifies_athlete(db_session: AsyncSession, athlete, coach):
    await _link(db_session, athlete, coach)

    notes = (
        await db_session.execute(select(Notification).where(Notification.user_id == athlete.id))
    ).scalars().all()
    assert len(notes) == 1
    assert notes[0].type == NotificationType.coach_message
    assert notes[0].related_id == str(coach.id)


@pytest.mark.asyncio
async def test_link_and_unlink_keep_both_sides_symmetric(
    db_session: AsyncSession, make_user, coach, second_coach
):
    athletes = [await make_user(f"sym{i}@x.com") for i in range(3)]
    coaches = [coach, second_coach]

    operations = [
        ("link", 0, 0), ("link", 0, 1), ("link", 1, 0), ("unlink", 0, 0),
        ("link", 2, 1), ("link", 0, 0), ("unlink", 1, 0), ("unlink", 2, 1),
        ("unlink", 2, 1), ("link", 1, 1),
    ]
    for op, a, c in operations:
        if op == "link":
            await _link(db_session, athletes[a], coaches[c])
        else:
            await _unlink(db_session, athletes[a], coaches[c])

    for a in athletes:
        for c in coaches:
            assert (str(c.id) in a.coaches) == (str(a.id) in c.athletes)


@pytest.mark.asyncio
async def test_unlink_primary_promotes_next_coach(db_session: AsyncSession, athlete, coach, second_coach):
    await _link(db_session, athlete, coach)
    await _link(db_session, athlete, second_coach)
    assert athlete.primary_coach_id == coach.id

    assert await _unlink(db_session, athlete, coach) is True

    assert athlete.coaches == [str(second_coach.id)]
    assert athlete.primary_coach_id == second_coach.id
    assert athlete.coach_id == second_coach.id
    assert coach.athletes == []


@pytest.mark.asyncio
async def test_unlink_last_coach_clears_primary_and_legacy(db_session: AsyncSession, athlete, coach):
    await _link(db_session, athlete, coach)

    await _unlink(db_session, athlete, coach)

    assert athlete.coaches == []
    assert athlete.primary_coach_id is None
    assert athlete.coach_id is None


@pytest.mark.asyncio
async def test_unlink_non_primary_keeps_primary(db_session: AsyncSession, athlete, coach, second_coach):
    await _link(db_session, athlete, coach)
    await _link(db_session, athlete, second_coach)

    await _unlink(db_session, athlete, second_coach)

    assert athlete.primary_coach_id == coach.id
    assert athlete.coaches == [str(coach.id)]


@pytest.mark.asyncio
async def test_unlink_clears_stale_legacy_pointer(db_session: AsyncSession, athlete, coach):
    """A legacy coach_id is cleared even when the coaches set was already empty."""
    athlete.coach_id = coach.id
    await db_session.commit()

    changed = await _unlink(db_session, athlete, coach)

    assert changed is True
    assert athlete.coach_id is None
    assert athlete.primary_coach_id is None


@pytest.mark.asyncio
async def test_unlink_unlinked_pair_is_noop(db_session: AsyncSession, athlete, coach):
    assert await _unlink(db_session, athlete, coach) is False


@pytest.mark.asyncio
async def test_link_rejects_wrong_roles(db_session: AsyncSession, athlete, coach):
    with pytest.raises(NotFound):
        await relationship_service.link_coach_athlete(
            db_session, athlete_id=coach.id, coach_id=athlete.id
        )


@pytest.mark.asyncio
async def test_link_rejects_unknown_and_malformed_ids(db_session: AsyncSession, athlete):
    with pytest.raises(NotFound):
        await relationship_service.link_coach_athlete(
            db_session, athlete_id=athlete.id, coach_id=uuid.uuid4()
        )
    with pytest.raises(InvalidInput):
        await relationship_service.link_coach_athlete(
            db_session, athlete_id=athlete.id, coach_id="not-a-uuid"
        )


# ── regimen assignment ──


@pytest.mark.asyncio
async def test_assign_regimen_then_reassign_reports_no_change(
    db_session: AsyncSession, athlete, coach, make_regimen
):
    await _link(db_session, athlete, coach)
    regimen = await make_regimen(coach)

    first = await relationship_service.assign_regimen_to_athlete(
        db_session, regimen_id=regimen.external_id, athlete_id=athlete.id, requesting_coach_id=coach.id
    )
    await db_session.commit()
    assert first.changed is True
    assert regimen.assigned_to == [str(athlete.id)]
    assert athlete.regimens == [str(regimen.id)]

    again = await relationship_service.assign_regimen_to_athlete(
        db_session, regimen_id=str(regimen.id), athlete_id=athlete.id, requesting_coach_id=coach.id
    )
    assert again.changed is False
    assert regimen.assigned_to == [str(athlete.id)]
    assert athlete.regimens == [str(regimen.id)]


@pytest.mark.asyncio
async def test_assign_creates_program_notification(db_session: AsyncSession, athlete, coach, make_regimen):
    await _link(db_session, athlete, coach)
    regimen = await make_regimen(coach, "Taper")

    await relationship_service.assign_regimen_to_athlete(
        db_session, regimen_id=regimen.id, athlete_id=athlete.id, requesting_coach_id=coach.id
    )
    await db_session.commit()

    note = (
        await db_session.execute(
            select(Notification).where(Notification.type == NotificationType.program_assigned)
        )
    ).scalar_one()
    assert note.user_id == athlete.id
    assert note.related_id == regimen.external_id
    assert "Taper" in note.message


@pytest.mark.asyncio
async def test_assign_requires_regimen_creator(
    db_session: AsyncSession, athlete, coach, second_coach, make_regimen
):
    await _link(db_session, athlete, second_coach)
    regimen = await make_regimen(coach)

    with pytest.raises(Forbidden):
        await relationship_service.assign_regimen_to_athlete(
            db_session, regimen_id=regimen.id, athlete_id=athlete.id, requesting_coach_id=second_coach.id
        )


@pytest.mark.asyncio
async def test_assign_requires_linked_athlete(db_session: AsyncSession, athlete, coach, make_regimen):
    regimen = await make_regimen(coach)

    with pytest.raises(NotFound):
        await relationship_service.assign_regimen_to_athlete(
            db_session, regimen_id=regimen.id, athlete_id=athlete.id, requesting_coach_id=coach.id
        )
    assert regimen.assigned_to == []
    assert athlete.regimens == []


@pytest.mark.asyncio
async def test_assign_unknown_regimen(db_session: AsyncSession, athlete, coach):
    with pytest.raises(NotFound):
        await relationship_service.assign_regimen_to_athlete(
            db_session, regimen_id=uuid.uuid4(), athlete_id=athlete.id, requesting_coach_id=coach.id
        )


@pytest.mark.asyncio
async def test_unassign_removes_both_sides(db_session: AsyncSession, athlete, coach, make_regimen):
    await _link(db_session, athlete, coach)
    regimen = await make_regimen(coach)
    await relationship_service.assign_regimen_to_athlete(
        db_session, regimen_id=regimen.id, athlete_id=athlete.id, requesting_coach_id=coach.id
    )
    # legacy rows may hold the external id instead of the store id
    athlete.regimens = [*athlete.regimens, regimen.external_id]
    await db_session.commit()

    changed = await relationship_service.unassign_regimen_from_athlete(
        db_session, regimen_id=regimen.id, athlete_id=athlete.id, requesting_coach_id=coach.id
    )
    await db_session.commit()

    assert changed is True
    assert regimen.assigned_to == []
    assert athlete.regimens == []

    again = await relationship_service.unassign_regimen_from_athlete(
        db_session, regimen_id=regimen.id, athlete_id=athlete.id, requesting_coach_id=coach.id
    )
    assert again is False


@pytest.mark.asyncio
async def test_bulk_assign_keeps_only_coached_athletes(
    db_session: AsyncSession, athlete, coach, make_user, make_regimen
):
    already = await make_user("b@x.com")
    stranger = await make_user("s@x.com")
    await _link(db_session, athlete, coach)
    await _link(db_session, already, coach)
    regimen = await make_regimen(coach)
    await relationship_service.assign_regimen_to_athlete(
        db_session, regimen_id=regimen.id, athlete_id=already.id, requesting_coach_id=coach.id
    )

    result = await relationship_service.assign_regimen_to_athletes(
        db_session,
        regimen_id=regimen.external_id,
        athlete_ids=[athlete.id, already.id, stranger.id, "nope", str(athlete.id)],
        requesting_coach_id=coach.id,
    )
    await db_session.commit()

    assert result.assigned == [str(athlete.id), str(already.id)]
    assert result.rejected == [str(stranger.id), "nope"]
    assert regimen.assigned_to == [str(already.id), str(athlete.id)]
    assert athlete.regimens == [str(regimen.id)]
    assert already.regimens == [str(regimen.id)]
    assert stranger.regimens == []


@pytest.mark.asyncio
async def test_bulk_assign_rejections(
    db_session: AsyncSession, athlete, coach, second_coach, make_regimen
):
    regimen = await make_regimen(coach)

    with pytest.raises(InvalidInput):
        await relationship_service.assign_regimen_to_athletes(
            db_session, regimen_id=regimen.id, athlete_ids=[], requesting_coach_id=coach.id
        )
    with pytest.raises(InvalidInput):
        await relationship_service.assign_regimen_to_athletes(
            db_session, regimen_id=regimen.id, athlete_ids=[athlete.id], requesting_coach_id=coach.id
        )
    with pytest.raises(Forbidden):
        await relationship_service.assign_regimen_to_athletes(
            db_session, regimen_id=regimen.id, athlete_ids=[athlete.id], requesting_coach_id=second_coach.id
        )
    assert regimen.assigned_to == []


# ── helpers ──


def test_normalize_shared_with_drops_owner_duplicates_and_garbage():
    owner = uuid.uuid4()
    coach_id = uuid.uuid4()

    result = relationship_service.normalize_shared_with(
        owner, [str(owner), str(coach_id), coach_id, "nope", str(owner).upper()]
    )

    assert result == [str(coach_id)]


def test_sync_primary_coach_keeps_valid_primary():
    first, second = uuid.uuid4(), uuid.uuid4()
    athlete = User(coaches=[str(first), str(second)], primary_coach_id=second, coach_id=None)

    assert relationship_service.sync_primary_coach(athlete) is True
    assert athlete.primary_coach_id == second
    assert athlete.coach_id == second
