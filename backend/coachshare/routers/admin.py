"""Admin routes: relationship maintenance and audit history."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.auth import require_role
from coachshare.dependencies import get_db
from coachshare.models.user import User, UserRole
from coachshare.schemas.maintenance import (
    AssignmentSyncReportRead,
    AuditEventRead,
    LegacyMigrationRead,
    LinkSyncReportRead,
    OrphanedLogRead,
    OrphanReportRead,
    RepairReportRead,
)
from coachshare.services import audit_service, reconciliation_service
from coachshare.services.relationship_service import parse_uuid

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_role(UserRole.admin)


@router.post("/maintenance/repair-relationships", response_model=RepairReportRead)
async def repair_relationships(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await reconciliation_service.repair_workout_log_relationships(db, actor_id=current_user.id)


@router.get("/maintenance/orphaned-logs", response_model=list[OrphanedLogRead])
async def list_orphaned_logs(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await reconciliation_service.find_orphaned_logs(db)


@router.post("/maintenance/purge-orphaned-logs", response_model=OrphanReportRead)
async def purge_orphaned_logs(
    dry_run: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await reconciliation_service.purge_orphaned_logs(
        db, dry_run=dry_run, actor_id=current_user.id
    )


@router.post("/maintenance/sync-assignments", response_model=AssignmentSyncReportRead)
async def sync_assignments(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await reconciliation_service.sync_regimen_assignments(db, actor_id=current_user.id)


@router.post("/maintenance/sync-links", response_model=LinkSyncReportRead)
async def sync_links(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await reconciliation_service.sync_coach_links(db, actor_id=current_user.id)


@router.post("/maintenance/migrate-legacy-coaches", response_model=LegacyMigrationRead)
async def migrate_legacy_coaches(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    migrated = await reconciliation_service.migrate_legacy_coach_fields(db, actor_id=current_user.id)
    return {"migrated": migrated}


@router.get("/maintenance/runs", response_model=list[AuditEventRead])
async def maintenance_runs(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await audit_service.get_maintenance_runs(db, limit=limit)


@router.get("/audit/users/{user_id}", response_model=list[AuditEventRead])
async def user_audit_events(
    user_id: str,
    event_type: str | None = None,
    event_prefix: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await audit_service.get_events_for_user(
        db,
        parse_uuid(user_id, "user ID"),
        event_type=event_type,
        event_prefix=event_prefix,
        limit=limit,
        offset=offset,
    )


@router.get("/audit/{entity_type}/{entity_id}", response_model=list[AuditEventRead])
async def entity_history(
    entity_type: str,
    entity_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await audit_service.get_entity_history(db, entity_type, parse_uuid(entity_id, "entity ID"))
