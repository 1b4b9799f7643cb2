"""Audit service: append-only record of who changed which relationship.

Links, assignments, deletions and maintenance runs all land here, so an
admin can explain how a coach, athlete or regimen reached its current state.
There is no update or delete pathway.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coachshare.core.errors import Internal
from coachshare.models.audit import AuditLogEvent

logger = logging.getLogger("coachshare.audit")

MAINTENANCE_RUN = "MaintenanceRun"

ENTITY_TYPES = frozenset({"User", "Session", "Regimen", "WorkoutLog", MAINTENANCE_RUN})


async def log_event(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    event_type: str,
    entity_type: str,
    entity_id: uuid.UUID,
    action: str,
    detail: dict | None = None,
    ip_address: str | None = None,
) -> AuditLogEvent:
    """Append one event. ``user_id`` is the actor, not necessarily the subject."""
    if entity_type not in ENTITY_TYPES:
        raise Internal(f"Unknown audit entity type: {entity_type}")

    event = AuditLogEvent(
        user_id=user_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        detail=detail,
        ip_address=ip_address,
    )
    db.add(event)
    await db.flush()
    logger.debug("audit %s %s/%s by %s", event_type, entity_type, entity_id, user_id)
    return event


async def get_events_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    event_type: str | None = None,
    event_prefix: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AuditLogEvent]:
    """Events performed by a user, oldest first.

    ``event_prefix`` narrows to a family such as ``"relationship."``.
    """
    stmt = select(AuditLogEvent).where(AuditLogEvent.user_id == user_id)
    if event_type is not None:
        stmt = stmt.where(AuditLogEvent.event_type == event_type)
    if event_prefix:
        stmt = stmt.where(AuditLogEvent.event_type.startswith(event_prefix, autoescape=True))
    stmt = stmt.order_by(AuditLogEvent.timestamp.asc()).offset(offset).limit(limit)

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_entity_history(
    db: AsyncSession,
    entity_type: str,
    entity_id: uuid.UUID,
) -> list[AuditLogEvent]:
    """Every event touching one entity, in the order it happened.

    Used to explain how a relationship reached its current state, e.g. which
    coach assigned a regimen or which maintenance run repaired a link.
    """
    stmt = (
        select(AuditLogEvent)
        .where(
            AuditLogEvent.entity_type == entity_type,
            AuditLogEvent.entity_id == entity_id,
        )
        .order_by(AuditLogEvent.timestamp.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_maintenance_runs(db: AsyncSession, *, limit: int = 20) -> list[AuditLogEvent]:
    """Most recent reconciliation runs started by an admin, newest first."""
    result = await db.execute(
        select(AuditLogEvent)
        .where(AuditLogEvent.entity_type == MAINTENANCE_RUN)
        .order_by(AuditLogEvent.timestamp.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
