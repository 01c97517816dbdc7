"""
Invoice API Routes
"""
from datetime import datetime
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.tenant import get_network_id
from app.core.logging import get_logger
from app.db.database import get_db
from app.db.models.invoice_record import InvoiceStatus
from app.domain.services.invoice_service import InvoiceService

logger = get_logger(__name__)

router = APIRouter()


class InvoiceIssueRequest(BaseModel):
    """Schema for issuing a partner invoice over a period"""
    partner_account_id: int
    period_start: datetime
    period_end: datetime

    @model_validator(mode="after")
    def check_period(self) -> "InvoiceIssueRequest":
        if self.period_end <= self.period_start:
            raise ValueError("period_end must be after period_start")
        return self


class InvoicedSessionResponse(BaseModel):
    wash_session_id: int

    model_config = {"from_attributes": True}


class InvoiceRecordResponse(BaseModel):
    id: int
    partner_account_id: int
    provider: str
    status: InvoiceStatus
    external_reference: str | None
    error: str | None
    period_start: datetime
    period_end: datetime
    line_count: int
    total: Decimal
    currency: str
    sessions: List[InvoicedSessionResponse]

    model_config = {"from_attributes": True}


@router.post(
    "/",
    response_model=InvoiceRecordResponse,
    status_code=201,
    summary="Issue a partner invoice",
    description=(
        "Sends every locked, not yet invoiced session of the partner in the "
        "period to the configured invoice provider."
    ),
    responses={
        201: {"description": "Invoice issued"},
        404: {"description": "Partner not found in this network"},
        409: {"description": "Nothing to invoice"},
        502: {"description": "Invoice provider failed; a FAILED record was stored"},
        503: {"description": "Invoice provider temporarily disabled"},
    },
    tags=["Invoices"]
)
async def issue_invoice(
    data: InvoiceIssueRequest,
    network_id: int = Depends(get_network_id),
    db: AsyncSession = Depends(get_db),
) -> InvoiceRecordResponse:
    logger.info(
        "Issuing partner invoice",
        extra_data={
            "network_id": network_id,
            "partner_account_id": data.partner_account_id,
        }
    )
    return await InvoiceService(db).issue_partner_invoice(
        network_id,
        data.partner_account_id,
        data.period_start,
        data.period_end,
    )
