"""User routes: profile, coach/athlete links, invitations, account deletion."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.auth import get_current_user, require_role
from coachshare.dependencies import get_db
from coachshare.models.user import User, UserRole
from coachshare.schemas.user import (
    DeletionSummary,
    InviteAthleteRequest,
    InviteAthleteResponse,
    LinkResponse,
    ProfileUpdate,
    UserRead,
    UserSummary,
)
from coachshare.services import relationship_service, user_service

router = APIRouter(prefix="/users", tags=["users"])


def _link_response(athlete: User, coach: User, changed: bool) -> dict:
    return {
        "athlete_id": athlete.id,
        "coach_id": coach.id,
        "primary_coach_id": athlete.primary_coach_id,
        "changed": changed,
    }


@router.get("/me", response_model=UserRead)
async def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await user_service.update_profile(
        db, user=current_user, changes=body.model_dump(exclude_unset=True)
    )


@router.delete("/me", response_model=DeletionSummary)
async def delete_own_account(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ip = request.client.host if request.client else None
    return await user_service.delete_user_account(
        db, user_id=current_user.id, requesting_user=current_user, ip_address=ip
    )


@router.get("/coaches", response_model=list[UserSummary])
async def list_coaches(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await user_service.list_coaches(db)


# ── athlete side ──


@router.get("/me/coaches", response_model=list[UserSummary])
async def my_coaches(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.athlete)),
):
    return await user_service.get_coaches_for_athlete(db, current_user)


@router.post("/me/coaches/{coach_id}", response_model=LinkResponse)
async def add_coach(
    coach_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.athlete)),
):
    ip = request.client.host if request.client else None
    result = await relationship_service.link_coach_athlete(
        db, athlete_id=current_user.id, coach_id=coach_id, actor_id=current_user.id, ip_address=ip
    )
    return _link_response(result.athlete, result.coach, result.changed)


@router.delete("/me/coaches/{coach_id}", status_code=204)
async def remove_coach(
    coach_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.athlete)),
):
    ip = request.client.host if request.client else None
    await relationship_service.unlink_coach_athlete(
        db, athlete_id=current_user.id, coach_id=coach_id, actor_id=current_user.id, ip_address=ip
    )


# ── coach side ──


@router.get("/me/athletes", response_model=list[UserSummary])
async def my_athletes(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    return await user_service.get_athletes_for_coach(db, current_user)


@router.post("/me/athletes/invite", response_model=InviteAthleteResponse, status_code=201)
async def invite_athlete(
    body: InviteAthleteRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    ip = request.client.host if request.client else None
    result = await relationship_service.invite_athlete(
        db,
        coach=current_user,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        ip_address=ip,
    )
    return {"athlete": result.athlete, "created": result.created, "setup_token": result.setup_token}


@router.delete("/me/athletes/{athlete_id}", status_code=204)
async def remove_athlete(
    athlete_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    ip = request.client.host if request.client else None
    await relationship_service.unlink_coach_athlete(
        db, athlete_id=athlete_id, coach_id=current_user.id, actor_id=current_user.id, ip_address=ip
    )


# ── admin ──


@router.get("", response_model=list[UserSummary])
async def list_users(
    role: UserRole | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.admin)),
):
    return await user_service.list_users(db, role=role)


@router.post("/{athlete_id}/coaches/{coach_id}", response_model=LinkResponse)
async def admin_link(
    athlete_id: str,
    coach_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.admin)),
):
    ip = request.client.host if request.client else None
    result = await relationship_service.link_coach_athlete(
        db, athlete_id=athlete_id, coach_id=coach_id, actor_id=current_user.id, ip_address=ip
    )
    return _link_response(result.athlete, result.coach, result.changed)


@router.delete("/{user_id}", response_model=DeletionSummary)
async def delete_account(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.admin)),
):
    ip = request.client.host if request.client else None
    return await user_service.delete_user_account(
        db, user_id=user_id, requesting_user=current_user, ip_address=ip
    )
