"""
Invoice Provider Abstraction Layer

Lets the invoicing service change without touching billing logic.
"""
from app.domain.services.invoicing.base_provider import (
    BaseInvoiceProvider,
    InvoiceCustomer,
    InvoiceLine,
    InvoiceRequest,
    InvoiceResult,
)
from app.domain.services.invoicing.provider_factory import get_invoice_provider, reset_provider

__all__ = [
    "BaseInvoiceProvider",
    "InvoiceCustomer",
    "InvoiceLine",
    "InvoiceRequest",
    "InvoiceResult",
    "get_invoice_provider",
    "reset_provider",
]
