"""
Wash Session API Routes
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.tenant import get_actor, get_network_id
from app.core.logging import get_logger
from app.db.database import get_db
from app.db.models.audit_log import ActorType, AuditAction
from app.db.models.network import OperationTrack
from app.db.models.service_price import VehicleType
from app.db.models.wash_session import EntryMode, VehicleRole, WashSessionStatus
from app.domain.services.audit_service import ActorContext
from app.domain.services.billing_service import BillingService
from app.domain.services.wash_session_service import (
    CreateWashSessionInput,
    VehicleComponentInput,
    WashSessionService,
)

logger = get_logger(__name__)

router = APIRouter()

_CONFLICT_RESPONSES = {
    404: {"description": "Session not found in this network"},
    409: {"description": "Invalid transition or concurrent modification"},
}


# ==================== Schemas ====================


class VehicleComponentCreate(BaseModel):
    vehicle_role: VehicleRole
    vehicle_type: VehicleType
    plate_number: str = Field(..., max_length=20)
    quantity: int = Field(1, ge=1)

    @field_validator("plate_number")
    @classmethod
    def normalize_plate(cls, v: str) -> str:
        return v.strip().upper()


class WashSessionCreate(BaseModel):
    """
    Schema for creating a wash session.

    Cross-field rules (driver vs. operator entry, vehicle combinations) are
    checked by the service so they surface as 400 validation errors.
    """
    location_id: int
    service_package_id: int
    entry_mode: EntryMode
    components: List[VehicleComponentCreate] = Field(default_factory=list)
    driver_id: int | None = None
    driver_name_manual: str | None = Field(None, max_length=200)
    partner_account_id: int | None = None


class TransitionRequest(BaseModel):
    """Optional optimistic-concurrency guard"""
    expected_version: int | None = Field(None, ge=1)


class RejectRequest(TransitionRequest):
    reason: str = Field(..., max_length=1000)


class WashSessionComponentResponse(BaseModel):
    position: int
    vehicle_role: VehicleRole
    vehicle_type: VehicleType
    plate_number: str
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    total_price: Decimal

    model_config = {"from_attributes": True}


class WashSessionResponse(BaseModel):
    """Response schema for wash session data"""
    id: int
    network_id: int
    location_id: int
    service_package_id: int
    entry_mode: EntryMode
    driver_id: int | None
    driver_name_manual: str | None
    partner_account_id: int | None
    operation_track: OperationTrack
    status: WashSessionStatus
    version: int
    usage_count: int
    discount_percent: Decimal
    total_price: Decimal
    currency: str
    rejection_reason: str | None
    created_at: datetime
    authorized_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    locked_at: datetime | None
    rejected_at: datetime | None
    components: List[WashSessionComponentResponse]

    model_config = {"from_attributes": True}


class PaginatedWashSessionResponse(BaseModel):
    items: List[WashSessionResponse]
    total: int
    limit: int
    offset: int


class AuditEntryResponse(BaseModel):
    id: int
    wash_session_id: int
    action: AuditAction
    previous_status: WashSessionStatus | None
    new_status: WashSessionStatus
    actor_type: ActorType
    actor_id: str | None
    version: int
    pricing: Optional[dict] = None
    details: Optional[dict] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BillingLineItemResponse(BaseModel):
    wash_session_id: int
    position: int
    description: str
    vehicle_role: VehicleRole
    vehicle_type: VehicleType
    plate_number: str
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    total: Decimal
    currency: str

    model_config = {"from_attributes": True}


# ==================== Endpoints ====================


@router.post(
    "/",
    response_model=WashSessionResponse,
    status_code=201,
    summary="Create a wash session",
    description=(
        "Creates a session in CREATED state. Every vehicle is priced from the "
        "catalog and the partner's volume discount is fixed at this point."
    ),
    responses={
        201: {"description": "Session created"},
        400: {"description": "Invalid references, vehicles or missing price"},
    },
    tags=["Wash Sessions"]
)
async def create_wash_session(
    data: WashSessionCreate,
    network_id: int = Depends(get_network_id),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
) -> WashSessionResponse:
    service = WashSessionService(db)
    session = await service.create(
        network_id,
        CreateWashSessionInput(
            location_id=data.location_id,
            service_package_id=data.service_package_id,
            entry_mode=data.entry_mode,
            components=[
                VehicleComponentInput(
                    vehicle_role=component.vehicle_role,
                    vehicle_type=component.vehicle_type,
                    plate_number=component.plate_number,
                    quantity=component.quantity,
                )
                for component in data.components
            ],
            driver_id=data.driver_id,
            driver_name_manual=data.driver_name_manual,
            partner_account_id=data.partner_account_id,
        ),
        actor,
    )
    return session


@router.get(
    "/",
    response_model=PaginatedWashSessionResponse,
    summary="List wash sessions",
    description="Sessions of the caller's network, newest first.",
    tags=["Wash Sessions"]
)
async def list_wash_sessions(
    location_id: int | None = Query(None),
    driver_id: int | None = Query(None),
    partner_account_id: int | None = Query(None),
    status: WashSessionStatus | None = Query(None),
    date_from: datetime | None = Query(None, description="Created at or after"),
    date_to: datetime | None = Query(None, description="Created at or before"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    network_id: int = Depends(get_network_id),
    db: AsyncSession = Depends(get_db)
) -> PaginatedWashSessionResponse:
    service = WashSessionService(db)
    items, total = await service.list_sessions(
        network_id,
        location_id=location_id,
        driver_id=driver_id,
        partner_account_id=partner_account_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return PaginatedWashSessionResponse(
        items=[WashSessionResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{session_id}",
    response_model=WashSessionResponse,
    summary="Get wash session by ID",
    responses={404: {"description": "Session not found in this network"}},
    tags=["Wash Sessions"]
)
async def get_wash_session(
    session_id: int,
    network_id: int = Depends(get_network_id),
    db: AsyncSession = Depends(get_db)
) -> WashSessionResponse:
    return await WashSessionService(db).get_session(network_id, session_id)


@router.post(
    "/{session_id}/authorize",
    response_model=WashSessionResponse,
    summary="Authorize a wash session",
    description="CREATED -> AUTHORIZED",
    responses=_CONFLICT_RESPONSES,
    tags=["Wash Sessions"]
)
async def authorize_wash_session(
    session_id: int,
    body: TransitionRequest | None = None,
    network_id: int = Depends(get_network_id),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
) -> WashSessionResponse:
    return await WashSessionService(db).authorize(
        network_id, session_id, actor, expected_version=body.expected_version if body else None
    )


@router.post(
    "/{session_id}/start",
    response_model=WashSessionResponse,
    summary="Start a wash session",
    description="AUTHORIZED -> IN_PROGRESS",
    responses=_CONFLICT_RESPONSES,
    tags=["Wash Sessions"]
)
async def start_wash_session(
    session_id: int,
    body: TransitionRequest | None = None,
    network_id: int = Depends(get_network_id),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
) -> WashSessionResponse:
    return await WashSessionService(db).start(
        network_id, session_id, actor, expected_version=body.expected_version if body else None
    )


@router.post(
    "/{session_id}/complete",
    response_model=WashSessionResponse,
    summary="Complete a wash session",
    description="IN_PROGRESS -> COMPLETED",
    responses=_CONFLICT_RESPONSES,
    tags=["Wash Sessions"]
)
async def complete_wash_session(
    session_id: int,
    body: TransitionRequest | None = None,
    network_id: int = Depends(get_network_id),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
) -> WashSessionResponse:
    return await WashSessionService(db).complete(
        network_id, session_id, actor, expected_version=body.expected_version if body else None
    )


@router.post(
    "/{session_id}/lock",
    response_model=WashSessionResponse,
    summary="Lock a wash session",
    description="COMPLETED -> LOCKED. A locked session is immutable and billable.",
    responses=_CONFLICT_RESPONSES,
    tags=["Wash Sessions"]
)
async def lock_wash_session(
    session_id: int,
    body: TransitionRequest | None = None,
    network_id: int = Depends(get_network_id),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
) -> WashSessionResponse:
    return await WashSessionService(db).lock(
        network_id, session_id, actor, expected_version=body.expected_version if body else None
    )


@router.post(
    "/{session_id}/reject",
    response_model=WashSessionResponse,
    summary="Reject a wash session",
    description="CREATED or AUTHORIZED -> REJECTED. A non-blank reason is required.",
    responses={**_CONFLICT_RESPONSES, 400: {"description": "Blank reason"}},
    tags=["Wash Sessions"]
)
async def reject_wash_session(
    session_id: int,
    body: RejectRequest,
    network_id: int = Depends(get_network_id),
    actor: ActorContext = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
) -> WashSessionResponse:
    return await WashSessionService(db).reject(
        network_id, session_id, actor, body.reason, expected_version=body.expected_version
    )


@router.get(
    "/{session_id}/history",
    response_model=List[AuditEntryResponse],
    summary="Audit history of a session",
    description="Every transition of the session, oldest first.",
    responses={404: {"description": "Session not found in this network"}},
    tags=["Wash Sessions"]
)
async def get_wash_session_history(
    session_id: int,
    network_id: int = Depends(get_network_id),
    db: AsyncSession = Depends(get_db)
) -> List[AuditEntryResponse]:
    return await WashSessionService(db).get_history(network_id, session_id)


@router.get(
    "/{session_id}/billing-lines",
    response_model=List[BillingLineItemResponse],
    summary="Invoice-ready lines of a locked session",
    responses={
        404: {"description": "Session not found in this network"},
        409: {"description": "Session is not locked"},
    },
    tags=["Wash Sessions"]
)
async def get_wash_session_billing_lines(
    session_id: int,
    network_id: int = Depends(get_network_id),
    db: AsyncSession = Depends(get_db)
) -> List[BillingLineItemResponse]:
    items = await BillingService(db).compose(network_id, session_id)
    return [BillingLineItemResponse.model_validate(item) for item in items]
