"""
Invoice provider interface

Business code depends only on this interface; the concrete provider is chosen
from settings by provider_factory.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional


@dataclass(frozen=True)
class InvoiceCustomer:
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    tax_number: Optional[str] = None


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceRequest:
    reference: str
    customer: InvoiceCustomer
    currency: str
    payment_due_days: int
    items: list[InvoiceLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((item.total for item in self.items), Decimal("0.00"))

    def to_payload(self) -> dict[str, Any]:
        """JSON body; amounts are sent as strings to keep them exact"""
        return {
            "reference": self.reference,
            "customer": {
                "name": self.customer.name,
                "address": self.customer.address,
                "city": self.customer.city,
                "zip_code": self.customer.zip_code,
                "country": self.customer.country,
                "tax_number": self.customer.tax_number,
            },
            "currency": self.currency,
            "payment_due_days": self.payment_due_days,
            "items": [
                {
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_price": str(item.unit_price),
                    "discount_percent": str(item.discount_percent),
                    "total": str(item.total),
                }
                for item in self.items
            ],
            "total": str(self.total),
        }


@dataclass(frozen=True)
class InvoiceResult:
    success: bool
    reference: Optional[str] = None
    error: Optional[str] = None


class BaseInvoiceProvider(ABC):
    """
    Uniform interface for third-party invoicing services.

    Implementations return InvoiceResult for answers the remote side gave
    and raise InvoiceProviderError when the call itself failed.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Name used in logs and on InvoiceRecord rows."""

    @abstractmethod
    async def create_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        """
        Issue one invoice.

        Raises:
            InvoiceProviderError: transport failure or non-2xx response
            CircuitBreakerOpenError: the provider is temporarily disabled
        """

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Whether the provider is reachable with the configured credentials."""
