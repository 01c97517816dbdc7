"""
Invoice Service - forwards a partner's locked sessions to the invoice provider

Every attempt leaves an InvoiceRecord. A run first commits a PENDING record
linked to its sessions, then calls the provider; a failed attempt releases the
sessions so it can be repeated.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ExternalServiceException,
    InvoiceProviderError,
    PreconditionError,
    ValidationException,
)
from app.core.logging import get_logger
from app.db.models.invoice_record import InvoicedSession, InvoiceRecord, InvoiceStatus
from app.db.models.partner_account import PartnerAccount
from app.db.models.wash_session import WashSession, WashSessionStatus
from app.domain.services.billing_service import BillingLineItem, build_line_items
from app.domain.services.invoicing.base_provider import (
    BaseInvoiceProvider,
    InvoiceCustomer,
    InvoiceLine,
    InvoiceRequest,
)
from app.domain.services.invoicing.provider_factory import get_invoice_provider
from app.domain.services.partner_account_service import PartnerAccountService

logger = get_logger(__name__)


def _customer_for(partner: PartnerAccount) -> InvoiceCustomer:
    return InvoiceCustomer(
        name=partner.billing_name or partner.name,
        address=partner.billing_address,
        city=partner.billing_city,
        zip_code=partner.billing_zip_code,
        country=partner.billing_country,
        tax_number=partner.tax_number,
    )


def _invoice_line(item: BillingLineItem) -> InvoiceLine:
    return InvoiceLine(
        description=item.description,
        quantity=item.quantity,
        unit_price=item.unit_price,
        discount_percent=item.discount_percent,
        total=item.total,
    )


class InvoiceService:
    """Partner invoicing over locked sessions"""

    def __init__(self, db: AsyncSession, provider: Optional[BaseInvoiceProvider] = None):
        self.db = db
        self.provider = provider or get_invoice_provider()
        self.partner_service = PartnerAccountService(db)

    async def get_uninvoiced_sessions(
        self,
        network_id: int,
        partner_account_id: int,
        period_start: datetime,
        period_end: datetime,
    ) -> list[WashSession]:
        """LOCKED sessions of the partner locked in [period_start, period_end) and not claimed by an invoice"""
        already_invoiced = select(InvoicedSession.wash_session_id)
        result = await self.db.execute(
            select(WashSession)
            .where(
                WashSession.network_id == network_id,
                WashSession.partner_account_id == partner_account_id,
                WashSession.status == WashSessionStatus.LOCKED,
                WashSession.locked_at >= period_start,
                WashSession.locked_at < period_end,
                WashSession.id.not_in(already_invoiced),
            )
            .order_by(WashSession.locked_at.asc(), WashSession.id.asc())
        )
        return list(result.scalars().all())

    async def _claim(
        self,
        network_id: int,
        partner_account_id: int,
        period_start: datetime,
        period_end: datetime,
        request: InvoiceRequest,
        session_ids: list[int],
    ) -> InvoiceRecord:
        """
        Commit a PENDING record linked to the sessions before the provider is called.

        The unique link per session means a second run over the same sessions
        fails here, before it can reach the provider.
        """
        record = InvoiceRecord(
            network_id=network_id,
            partner_account_id=partner_account_id,
            provider=self.provider.provider_name,
            status=InvoiceStatus.PENDING,
            period_start=period_start,
            period_end=period_end,
            line_count=len(request.items),
            total=request.total,
            currency=request.currency,
            sessions=[InvoicedSession(wash_session_id=sid) for sid in session_ids],
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                "Sessions already claimed by another invoice run",
                extra_data={"partner_account_id": partner_account_id, "session_ids": session_ids},
            )
            raise PreconditionError(
                "Sessions are already being invoiced",
                details={"partner_account_id": partner_account_id},
            )
        await self.db.refresh(record)
        return record

    async def _fail(self, record: InvoiceRecord, error: Optional[str]) -> InvoiceRecord:
        """Mark the claim FAILED and release its sessions for a later run"""
        record.status = InvoiceStatus.FAILED
        record.error = error
        record.sessions.clear()
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def issue_partner_invoice(
        self,
        network_id: int,
        partner_account_id: int,
        period_start: datetime,
        period_end: datetime,
    ) -> InvoiceRecord:
        """
        Invoice every uninvoiced LOCKED session of the partner in the period.

        Raises:
            NotFoundException: unknown partner in this network
            ValidationException: empty period
            PreconditionError: nothing to invoice, sessions in mixed currencies,
                or another run already claimed the sessions
            InvoiceProviderError / CircuitBreakerOpenError: the provider did not
                issue the invoice; the record is stored as FAILED
        """
        if period_end <= period_start:
            raise ValidationException("period_end must be after period_start", field="period_end")

        partner = await self.partner_service.get_partner_account(network_id, partner_account_id)
        sessions = await self.get_uninvoiced_sessions(network_id, partner.id, period_start, period_end)
        if not sessions:
            raise PreconditionError(
                "No locked, uninvoiced sessions in the period",
                details={
                    "partner_account_id": partner.id,
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                },
            )

        currencies = {session.currency for session in sessions}
        if len(currencies) > 1:
            raise PreconditionError(
                "Sessions in the period are priced in more than one currency",
                details={"currencies": sorted(currencies)},
            )

        items: list[BillingLineItem] = []
        for session in sessions:
            items.extend(build_line_items(session))

        partner_id = partner.id
        request = InvoiceRequest(
            reference=f"P{partner_id}-{period_start:%Y%m%d}-{period_end:%Y%m%d}",
            customer=_customer_for(partner),
            currency=currencies.pop(),
            payment_due_days=(
                partner.payment_due_days
                if partner.payment_due_days is not None
                else settings.DEFAULT_PAYMENT_DUE_DAYS
            ),
            items=[_invoice_line(item) for item in items],
        )
        session_ids = [session.id for session in sessions]
        record = await self._claim(
            network_id, partner_id, period_start, period_end, request, session_ids
        )

        try:
            result = await self.provider.create_invoice(request)
        except ExternalServiceException as e:
            record = await self._fail(record, e.message)
            logger.error(
                "Invoice provider call failed",
                extra_data={
                    "provider": self.provider.provider_name,
                    "invoice_record_id": record.id,
                    "partner_account_id": partner_id,
                    "error": e.message,
                }
            )
            e.details["invoice_record_id"] = record.id
            raise

        if not result.success:
            record = await self._fail(record, result.error)
            logger.error(
                "Invoice provider declined the invoice",
                extra_data={
                    "provider": self.provider.provider_name,
                    "invoice_record_id": record.id,
                    "partner_account_id": partner_id,
                    "error": result.error,
                }
            )
            raise InvoiceProviderError(
                self.provider.provider_name,
                message=result.error or "invoice was not issued",
                details={"invoice_record_id": record.id},
            )

        record.status = InvoiceStatus.ISSUED
        record.external_reference = result.reference
        await self.db.commit()
        await self.db.refresh(record)
        logger.info(
            "Partner invoice issued",
            extra_data={
                "invoice_record_id": record.id,
                "partner_account_id": partner_id,
                "session_count": len(session_ids),
                "total": str(record.total),
                "currency": record.currency,
                "reference": record.external_reference,
            }
        )
        return record
