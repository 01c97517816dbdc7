"""
State Manager - versioned wash session transitions

Every transition is a conditional write:

    UPDATE wash_sessions SET status = :new, version = version + 1, ...
    WHERE id = :id AND network_id = :network AND version = :read_version

If another writer got there first the update matches no row and the caller
receives ConcurrentModificationError. The audit entry is added in the same
transaction, so a rolled-back transition leaves no trace.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConcurrentModificationError,
    StateTransitionError,
    WashSessionNotFoundError,
)
from app.core.logging import get_logger
from app.db.models.audit_log import AuditAction
from app.db.models.wash_session import WashSession, WashSessionStatus
from app.domain.services.audit_service import ActorContext, AuditService
from app.state_machine.states import (
    STATE_TIMESTAMP_FIELDS,
    TransitionAction,
    allowed_actions,
    is_terminal,
    next_state,
)

logger = get_logger(__name__)


class WashSessionStateManager:
    """Applies graph-validated, version-checked status changes"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def load(self, network_id: int, session_id: int) -> WashSession:
        """Session scoped to its network; other tenants' sessions do not exist"""
        result = await self.db.execute(
            select(WashSession).where(
                WashSession.id == session_id,
                WashSession.network_id == network_id,
            )
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise WashSessionNotFoundError(session_id)
        return session

    def ensure_version(self, session: WashSession, expected_version: Optional[int]) -> None:
        """Reject a caller-supplied version that no longer matches the stored one"""
        if expected_version is None or expected_version == session.version:
            return
        logger.warning(
            "Stale version supplied for transition",
            extra_data={
                "session_id": session.id,
                "expected_version": expected_version,
                "actual_version": session.version,
            }
        )
        raise ConcurrentModificationError(
            session_id=session.id,
            expected_version=expected_version,
            actual_version=session.version,
        )

    def validate(self, session: WashSession, action: TransitionAction) -> WashSessionStatus:
        """Target state, or StateTransitionError if ``action`` is not allowed now"""
        current = WashSessionStatus(session.status)
        target = next_state(current, action)
        if target is None:
            permitted = [a.value for a in allowed_actions(current)]
            logger.warning(
                "Invalid state transition attempted",
                extra_data={
                    "session_id": session.id,
                    "current_state": current.value,
                    "action": TransitionAction(action).value,
                    "terminal": is_terminal(current),
                    "allowed_actions": permitted,
                    "version": session.version,
                }
            )
            raise StateTransitionError(
                session_id=session.id,
                current_state=current.name,
                action=TransitionAction(action).value,
                allowed_actions=permitted,
            )
        return target

    async def transition(
        self,
        network_id: int,
        session_id: int,
        action: TransitionAction,
        actor: ActorContext,
        expected_version: Optional[int] = None,
        changes: Optional[dict[str, Any]] = None,
        pricing: Optional[dict[str, Any]] = None,
        details: Optional[dict[str, Any]] = None,
        session: Optional[WashSession] = None,
        now: Optional[datetime] = None,
    ) -> WashSession:
        """
        Move a session along one edge of the graph.

        Args:
            changes: extra column values written together with the status
            pricing / details: stored on the audit entry
            session: an already loaded instance, to skip the read

        Raises:
            WashSessionNotFoundError: unknown id in this network
            ConcurrentModificationError: expected_version mismatch, or a
                concurrent writer changed the row after it was read
            StateTransitionError: the action is not allowed from the current state
        """
        if session is None:
            session = await self.load(network_id, session_id)

        read_version = session.version
        self.ensure_version(session, expected_version)

        previous = WashSessionStatus(session.status)
        target = self.validate(session, action)
        now = now or datetime.utcnow()

        values: dict[str, Any] = dict(changes or {})
        values["status"] = target
        values["version"] = WashSession.version + 1
        timestamp_field = STATE_TIMESTAMP_FIELDS.get(target)
        if timestamp_field:
            values[timestamp_field] = now

        try:
            result = await self.db.execute(
                update(WashSession)
                .where(
                    WashSession.id == session_id,
                    WashSession.network_id == network_id,
                    WashSession.version == read_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount != 1:
                await self.db.rollback()
                logger.warning(
                    "Concurrent modification detected",
                    extra_data={
                        "session_id": session_id,
                        "read_version": read_version,
                        "action": TransitionAction(action).value,
                    }
                )
                raise ConcurrentModificationError(
                    session_id=session_id,
                    expected_version=read_version,
                )

            self.audit.record(
                network_id=network_id,
                wash_session_id=session_id,
                action=AuditAction(TransitionAction(action).value),
                previous_status=previous,
                new_status=target,
                actor=actor,
                version=read_version + 1,
                pricing=pricing,
                details=details,
                created_at=now,
            )
            await self.db.commit()
        except ConcurrentModificationError:
            raise
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(session)

        logger.info(
            "Wash session transitioned",
            extra_data={
                "session_id": session_id,
                "network_id": network_id,
                "from_state": previous.value,
                "to_state": target.value,
                "version": session.version,
                "actor_type": actor.actor_type.value,
                "actor_id": actor.actor_id,
            }
        )
        return session
