"""Achievement routes: badge catalog and earned badges."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.auth import get_current_user, require_role
from coachshare.core.errors import NotFound
from coachshare.dependencies import get_db
from coachshare.models.user import User, UserRole
from coachshare.schemas.achievement import AchievementDefinition, AchievementRead
from coachshare.services import achievement_service
from coachshare.services.relationship_service import get_user_with_role, has_id

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("", response_model=list[AchievementDefinition])
async def list_achievements(current_user: User = Depends(get_current_user)):
    return achievement_service.ACHIEVEMENTS


@router.get("/me", response_model=list[AchievementRead])
async def my_achievements(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.athlete)),
):
    return await achievement_service.calculate_user_achievements(db, current_user.id)


@router.get("/athletes/{athlete_id}", response_model=list[AchievementRead])
async def athlete_achievements(
    athlete_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach, UserRole.admin)),
):
    """Badges of an athlete the requesting coach coaches."""
    athlete = await get_user_with_role(db, athlete_id, UserRole.athlete)
    if current_user.role == UserRole.coach and not has_id(athlete.coaches, current_user.id):
        raise NotFound("Athlete not found or not coached by you.")
    return await achievement_service.calculate_user_achievements(db, athlete.id)
