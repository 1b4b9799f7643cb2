"""Pace calculator route."""

from fastapi import APIRouter, Depends

from coachshare.core.auth import get_current_user
from coachshare.models.user import User
from coachshare.schemas.pace import PaceRequest, PaceResponse
from coachshare.services import pace_service

router = APIRouter(prefix="/pace", tags=["pace"])


@router.post("/calculate", response_model=PaceResponse)
async def calculate(
    body: PaceRequest,
    current_user: User = Depends(get_current_user),
):
    splits = pace_service.calculate_pace(body.total_distance, body.target_time, body.effort_percentage)
    return {
        "total_distance": body.total_distance,
        "effort_percentage": body.effort_percentage,
        "splits": splits,
    }
