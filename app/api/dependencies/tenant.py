"""
Tenant and actor resolution from upstream headers.

Authentication happens in front of this service; the gateway forwards the
resolved tenant and caller as headers:

    X-Network-ID: 12
    X-Actor-Type: user | driver | system
    X-Actor-ID: operator-7

Usage:
    @router.post("/{session_id}/authorize")
    async def authorize(
        network_id: int = Depends(get_network_id),
        actor: ActorContext = Depends(get_actor),
    ):
        ...
"""
from fastapi import Header

from app.core.exceptions import ValidationException
from app.db.models.audit_log import ActorType
from app.domain.services.audit_service import ActorContext


async def get_network_id(
    x_network_id: str | None = Header(None, alias="X-Network-ID"),
) -> int:
    """Tenant of the request; required on every wash endpoint"""
    if not x_network_id:
        raise ValidationException("Missing X-Network-ID header", field="X-Network-ID")
    try:
        network_id = int(x_network_id)
    except ValueError:
        raise ValidationException("X-Network-ID must be an integer", field="X-Network-ID")
    if network_id <= 0:
        raise ValidationException("X-Network-ID must be positive", field="X-Network-ID")
    return network_id


async def get_actor(
    x_actor_type: str | None = Header(None, alias="X-Actor-Type"),
    x_actor_id: str | None = Header(None, alias="X-Actor-ID"),
) -> ActorContext:
    """Caller attribution for the audit trail"""
    if not x_actor_type:
        raise ValidationException("Missing X-Actor-Type header", field="X-Actor-Type")
    try:
        actor_type = ActorType(x_actor_type.strip().lower())
    except ValueError:
        raise ValidationException(
            f"Unknown actor type: {x_actor_type}",
            field="X-Actor-Type",
            details={"allowed": [t.value for t in ActorType]},
        )
    actor_id = (x_actor_id or "").strip() or None
    if actor_type != ActorType.SYSTEM and actor_id is None:
        raise ValidationException("Missing X-Actor-ID header", field="X-Actor-ID")
    return ActorContext(actor_type=actor_type, actor_id=actor_id)
