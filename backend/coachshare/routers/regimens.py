"""Regimen routes: CRUD for coaches, assignment to athletes."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.auth import get_current_user, require_role
from coachshare.dependencies import get_db
from coachshare.models.user import User, UserRole
from coachshare.schemas.regimen import (
    AssignRequest,
    AssignResponse,
    BulkAssignRequest,
    BulkAssignResponse,
    RegimenCreate,
    RegimenDeleteResponse,
    RegimenRead,
    RegimenUpdate,
)
from coachshare.services import regimen_service, relationship_service

router = APIRouter(prefix="/regimens", tags=["regimens"])


@router.post("", status_code=201, response_model=RegimenRead)
async def create_regimen(
    body: RegimenCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    ip = request.client.host if request.client else None
    return await regimen_service.create_regimen(
        db,
        coach=current_user,
        name=body.name,
        description=body.description,
        start_date=body.start_date,
        end_date=body.end_date,
        category=body.category,
        sport=body.sport,
        level=body.level,
        days=[day.model_dump() for day in body.days],
        ip_address=ip,
    )


@router.get("", response_model=list[RegimenRead])
async def list_regimens(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach, UserRole.athlete)),
):
    """Coaches get the regimens they created; athletes the ones assigned to them."""
    if current_user.role == UserRole.coach:
        return await regimen_service.get_regimens_by_coach(db, current_user.id)
    return await regimen_service.get_regimens_for_athlete(db, current_user)


@router.get("/{regimen_id}", response_model=RegimenRead)
async def get_regimen(
    regimen_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await regimen_service.get_regimen_with_access_check(db, regimen_id, current_user)


@router.patch("/{regimen_id}", response_model=RegimenRead)
async def update_regimen(
    regimen_id: str,
    body: RegimenUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    ip = request.client.host if request.client else None
    changes = body.model_dump(exclude_unset=True)
    if body.days is not None:
        changes["days"] = [day.model_dump() for day in body.days]
    return await regimen_service.update_regimen(
        db,
        regimen_id=regimen_id,
        requesting_coach_id=current_user.id,
        changes=changes,
        ip_address=ip,
    )


@router.delete("/{regimen_id}", response_model=RegimenDeleteResponse)
async def delete_regimen(
    regimen_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach, UserRole.admin)),
):
    ip = request.client.host if request.client else None
    return await regimen_service.delete_regimen(
        db, regimen_id=regimen_id, requesting_user=current_user, ip_address=ip
    )


@router.post("/{regimen_id}/assign", response_model=AssignResponse)
async def assign_regimen(
    regimen_id: str,
    body: AssignRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    ip = request.client.host if request.client else None
    result = await relationship_service.assign_regimen_to_athlete(
        db,
        regimen_id=regimen_id,
        athlete_id=body.athlete_id,
        requesting_coach_id=current_user.id,
        ip_address=ip,
    )
    return {
        "status": "assigned" if result.changed else "already_assigned",
        "regimen": result.regimen,
    }


@router.post("/{regimen_id}/assign-bulk", response_model=BulkAssignResponse)
async def assign_regimen_bulk(
    regimen_id: str,
    body: BulkAssignRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    ip = request.client.host if request.client else None
    result = await relationship_service.assign_regimen_to_athletes(
        db,
        regimen_id=regimen_id,
        athlete_ids=body.athlete_ids,
        requesting_coach_id=current_user.id,
        ip_address=ip,
    )
    return {"assigned": result.assigned, "rejected": result.rejected, "regimen": result.regimen}


@router.delete("/{regimen_id}/athletes/{athlete_id}", status_code=204)
async def unassign_regimen(
    regimen_id: str,
    athlete_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.coach)),
):
    ip = request.client.host if request.client else None
    await relationship_service.unassign_regimen_from_athlete(
        db,
        regimen_id=regimen_id,
        athlete_id=athlete_id,
        requesting_coach_id=current_user.id,
        ip_address=ip,
    )
