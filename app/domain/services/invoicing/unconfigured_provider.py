"""
Placeholder provider used when no invoicing service is configured
"""
from __future__ import annotations

from app.domain.services.invoicing.base_provider import (
    BaseInvoiceProvider,
    InvoiceRequest,
    InvoiceResult,
)

NOT_CONFIGURED = "provider not configured"


class UnconfiguredInvoiceProvider(BaseInvoiceProvider):
    @property
    def provider_name(self) -> str:
        return "none"

    async def create_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        return InvoiceResult(success=False, error=NOT_CONFIGURED)

    async def validate_connection(self) -> bool:
        return False
