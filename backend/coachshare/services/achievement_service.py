"""Achievement service: milestone badges computed from completed workouts.

Badges are never stored. They are derived on demand from the athlete's
completion timestamps, so the set a user holds can only grow as logs are
added.
"""

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.models.base import as_utc
from coachshare.models.workout_log import WorkoutLog

# Fixed catalog, in display order
ACHIEVEMENTS: list[dict] = [
    {
        "id": "first-workout",
        "title": "First Step",
        "description": "Completed your first workout!",
        "icon_name": "Award",
    },
    {
        "id": "milestone-10",
        "title": "Workout Warrior (10)",
        "description": "Completed 10 workouts.",
        "icon_name": "Star",
    },
    {
        "id": "milestone-25",
        "title": "Workout Pro (25)",
        "description": "Completed 25 workouts.",
        "icon_name": "TrendingUp",
    },
    {
        "id": "consistent-week",
        "title": "Consistent Week",
        "description": "Completed workouts on 3+ days in a week.",
        "icon_name": "Calendar",
    },
]

_CATALOG = {a["id"]: a for a in ACHIEVEMENTS}

# workout count -> badge earned on that workout
MILESTONES = {1: "first-workout", 10: "milestone-10", 25: "milestone-25"}

CONSISTENCY_WINDOW = timedelta(days=6)
CONSISTENCY_MIN_DAYS = 3


def _earned(achievement_id: str, achieved_date: datetime) -> dict:
    return {**_CATALOG[achievement_id], "achieved": True, "achieved_date": achieved_date}


def _first_consistent_week(timestamps: list[datetime]) -> datetime | None:
    """End of the earliest-anchored window holding workouts on 3+ UTC days.

    Each workout anchors a window ``[t, t + 6 days]``. The first anchor that
    qualifies wins, even if a later window is tighter.
    """
    if len(timestamps) < CONSISTENCY_MIN_DAYS:
        return None

    for anchor in timestamps:
        window_end = anchor + CONSISTENCY_WINDOW
        days = {t.date() for t in timestamps if anchor <= t <= window_end}
        if len(days) >= CONSISTENCY_MIN_DAYS:
            return window_end
    return None


def evaluate_achievements(timestamps: Sequence[datetime]) -> list[dict]:
    """Earned badges for one athlete's completion timestamps.

    Timestamps are sorted here, so callers need not pre-order them. Naive
    values are taken as UTC.
    """
    ordered = sorted(as_utc(t) for t in timestamps)
    earned = []

    for count, achievement_id in MILESTONES.items():
        if len(ordered) >= count:
            earned.append(_earned(achievement_id, ordered[count - 1]))

    week_end = _first_consistent_week(ordered)
    if week_end is not None:
        earned.append(_earned("consistent-week", week_end))

    return earned


async def calculate_user_achievements(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Evaluate badges over the user's completed workout logs."""
    result = await db.execute(
        select(WorkoutLog.completed_at)
        .where(WorkoutLog.athlete_id == user_id, WorkoutLog.completed.is_(True))
        .order_by(WorkoutLog.completed_at.asc())
    )
    return evaluate_achievements([ts for ts in result.scalars().all() if ts is not None])
