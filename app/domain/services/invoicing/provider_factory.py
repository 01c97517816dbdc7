"""
Provider Factory - builds the invoice provider selected by INVOICE_PROVIDER
"""
from __future__ import annotations

import threading

from app.core.circuit_breaker import get_invoice_provider_circuit_breaker
from app.core.config import settings
from app.core.logging import get_logger
from app.domain.services.invoicing.base_provider import BaseInvoiceProvider

logger = get_logger(__name__)

_provider: BaseInvoiceProvider | None = None
_lock = threading.Lock()


def _create_provider(provider_type: str) -> BaseInvoiceProvider:
    if provider_type == "none":
        from app.domain.services.invoicing.unconfigured_provider import UnconfiguredInvoiceProvider

        return UnconfiguredInvoiceProvider()

    if provider_type == "http":
        from app.domain.services.invoicing.http_provider import HttpInvoiceProvider

        return HttpInvoiceProvider(circuit_breaker=get_invoice_provider_circuit_breaker())

    raise ValueError(f"Unknown invoice provider: {provider_type}")


def get_invoice_provider() -> BaseInvoiceProvider:
    global _provider
    if _provider is None:
        with _lock:
            if _provider is None:
                _provider = _create_provider(settings.INVOICE_PROVIDER)
                logger.info(
                    "Invoice provider initialized",
                    extra_data={"provider": _provider.provider_name},
                )
    return _provider


def reset_provider() -> None:
    """Drop the cached provider (tests only)."""
    global _provider
    with _lock:
        _provider = None
