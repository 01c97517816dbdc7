"""
Audit Service - append-only trail of wash session transitions

``record`` only stages the row on the caller's session; the caller commits it
together with the status write so both land or neither does.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.audit_log import ActorType, AuditAction, WashAuditLog
from app.db.models.wash_session import WashSessionStatus

DEFAULT_PAGE_LIMIT = 100


@dataclass(frozen=True)
class ActorContext:
    """Who is performing an operation; used for audit attribution only"""

    actor_type: ActorType
    actor_id: Optional[str] = None


SYSTEM_ACTOR = ActorContext(actor_type=ActorType.SYSTEM, actor_id="system")


class AuditService:
    """Writes and queries WashAuditLog rows"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        network_id: int,
        wash_session_id: int,
        action: AuditAction,
        previous_status: Optional[WashSessionStatus],
        new_status: WashSessionStatus,
        actor: ActorContext,
        version: int,
        pricing: Optional[dict[str, Any]] = None,
        details: Optional[dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> WashAuditLog:
        entry = WashAuditLog(
            network_id=network_id,
            wash_session_id=wash_session_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            actor_type=actor.actor_type,
            actor_id=actor.actor_id,
            version=version,
            pricing=pricing,
            details=details,
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(entry)
        return entry

    async def get_session_history(self, network_id: int, wash_session_id: int) -> list[WashAuditLog]:
        """All entries of one session, oldest first"""
        result = await self.db.execute(
            select(WashAuditLog)
            .where(
                WashAuditLog.network_id == network_id,
                WashAuditLog.wash_session_id == wash_session_id,
            )
            .order_by(WashAuditLog.version.asc(), WashAuditLog.id.asc())
        )
        return list(result.scalars().all())

    async def list_entries(
        self,
        network_id: int,
        action: Optional[AuditAction] = None,
        actor_type: Optional[ActorType] = None,
        actor_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> Tuple[list[WashAuditLog], int]:
        """
        Network-wide audit entries, newest first.

        Returns (entries, total) where total counts all entries matching the
        filters regardless of limit/offset.
        """
        conditions = [WashAuditLog.network_id == network_id]
        if action is not None:
            conditions.append(WashAuditLog.action == action)
        if actor_type is not None:
            conditions.append(WashAuditLog.actor_type == actor_type)
        if actor_id is not None:
            conditions.append(WashAuditLog.actor_id == actor_id)
        if date_from is not None:
            conditions.append(WashAuditLog.created_at >= date_from)
        if date_to is not None:
            conditions.append(WashAuditLog.created_at <= date_to)

        total_result = await self.db.execute(
            select(func.count(WashAuditLog.id)).where(*conditions)
        )
        total = total_result.scalar_one()

        result = await self.db.execute(
            select(WashAuditLog)
            .where(*conditions)
            .order_by(WashAuditLog.created_at.desc(), WashAuditLog.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total
