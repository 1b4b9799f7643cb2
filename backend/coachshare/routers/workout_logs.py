"""Workout log routes: athletes record workouts, coaches review them."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.auth import get_current_user, require_role
from coachshare.dependencies import get_db
from coachshare.models.user import User, UserRole
from coachshare.schemas.workout_log import (
    CoachStatsRead,
    CoachWorkoutLogRead,
    WorkoutLogCreate,
    WorkoutLogRead,
    WorkoutLogUpdate,
)
from coachshare.services import workout_log_service

router = APIRouter(prefix="/workout-logs", tags=["workout-logs"])


@router.post("", status_code=201, response_model=WorkoutLogRead)
async def create_log(
    body: WorkoutLogCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.athlete)),
):
    return await workout_log_service.create_workout_log(db, athlete=current_user, **body.model_dump())


@router.get("/me", response_model=list[WorkoutLogRead])
async def my_logs(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.athlete)),
):
    return await workout_log_service.get_my_logs(db, current_user.id)


@router.get("/coach", response_model=list[CoachWorkoutLogRead])
async def coach_logs(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    return await workout_log_service.get_logs_for_coach(db, current_user)


@router.get("/coach/stats", response_model=CoachStatsRead)
async def coach_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    return await workout_log_service.get_stats_for_coach(db, current_user)


@router.get("/shared", response_model=list[WorkoutLogRead])
async def shared_logs(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    return await workout_log_service.get_logs_shared_with_coach(db, current_user.id)


@router.get("/{log_id}", response_model=WorkoutLogRead)
async def get_log(
    log_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await workout_log_service.get_log_with_access_check(db, log_id, current_user)


@router.patch("/{log_id}", response_model=WorkoutLogRead)
async def update_log(
    log_id: str,
    body: WorkoutLogUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.athlete)),
):
    return await workout_log_service.update_workout_log(
        db, log_id=log_id, athlete=current_user, changes=body.model_dump(exclude_unset=True)
    )


@router.delete("/{log_id}", status_code=204)
async def delete_log(
    log_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ip = request.client.host if request.client else None
    await workout_log_service.delete_workout_log(
        db, log_id=log_id, requesting_user=current_user, ip_address=ip
    )
