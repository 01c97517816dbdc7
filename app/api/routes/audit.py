"""
Audit Log API Routes - read-only view of wash session transitions
"""
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.tenant import get_network_id
from app.api.routes.wash_sessions import AuditEntryResponse
from app.db.database import get_db
from app.db.models.audit_log import ActorType, AuditAction
from app.domain.services.audit_service import AuditService

router = APIRouter()


class PaginatedAuditLogResponse(BaseModel):
    items: List[AuditEntryResponse]
    total: int
    limit: int
    offset: int


@router.get(
    "/",
    response_model=PaginatedAuditLogResponse,
    summary="Audit log",
    description=(
        "Transitions of all sessions in the caller's network, newest first. "
        "Supports filtering by action, actor and date range."
    ),
    tags=["Audit Log"]
)
async def list_audit_logs(
    action: AuditAction | None = Query(None, description="Action filter"),
    actor_type: ActorType | None = Query(None, description="Actor type filter"),
    actor_id: str | None = Query(None, description="Actor id filter"),
    date_from: datetime | None = Query(None, description="Recorded at or after"),
    date_to: datetime | None = Query(None, description="Recorded at or before"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    network_id: int = Depends(get_network_id),
    db: AsyncSession = Depends(get_db),
) -> PaginatedAuditLogResponse:
    entries, total = await AuditService(db).list_entries(
        network_id,
        action=action,
        actor_type=actor_type,
        actor_id=actor_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return PaginatedAuditLogResponse(
        items=[AuditEntryResponse.model_validate(entry) for entry in entries],
        total=total,
        limit=limit,
        offset=offset,
    )
