"""
HTTP invoice provider - JSON over HTTP to an external invoicing service

Endpoints used:
- POST /invoices - issue an invoice, answers {"success", "invoice_number", "error"}
- GET /health - connectivity check
"""
from __future__ import annotations

import httpx

from app.core.circuit_breaker import CircuitBreaker
from app.core.config import settings
from app.core.exceptions import InvoiceProviderError
from app.core.logging import get_logger
from app.domain.services.invoicing.base_provider import (
    BaseInvoiceProvider,
    InvoiceRequest,
    InvoiceResult,
)

logger = get_logger(__name__)


class HttpInvoiceProvider(BaseInvoiceProvider):
    """Invoicing service reached over HTTP, guarded by a circuit breaker"""

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._circuit_breaker = circuit_breaker
        self._base_url = (base_url or settings.INVOICE_PROVIDER_URL).rstrip("/")
        self._api_key = api_key or settings.INVOICE_PROVIDER_API_KEY
        self._timeout = timeout or settings.INVOICE_PROVIDER_TIMEOUT_SECONDS

    @property
    def provider_name(self) -> str:
        return "http"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _post_invoice(self, payload: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/invoices",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.TimeoutException:
            raise InvoiceProviderError(
                self.provider_name,
                message="request timed out",
                details={"timeout": True},
            )
        except httpx.RequestError as exc:
            raise InvoiceProviderError(
                self.provider_name,
                message=f"network error: {str(exc)}",
                details={"network_error": True},
            )

        if not response.is_success:
            raise InvoiceProviderError.from_response(self.provider_name, response)

        try:
            return response.json()
        except ValueError:
            raise InvoiceProviderError(
                self.provider_name,
                message="response body is not valid JSON",
                details={"status_code": response.status_code},
            )

    async def create_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        body = await self._circuit_breaker.execute(self._post_invoice, request.to_payload())

        if body.get("success"):
            logger.info(
                "Invoice issued by provider",
                extra_data={
                    "provider": self.provider_name,
                    "reference": request.reference,
                    "invoice_number": body.get("invoice_number"),
                }
            )
            return InvoiceResult(success=True, reference=body.get("invoice_number"))

        return InvoiceResult(success=False, error=body.get("error") or "invoice was not issued")

    async def validate_connection(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._base_url}/health", headers=self._headers())
            return response.is_success
        except httpx.RequestError as exc:
            logger.warning(
                "Invoice provider connection check failed",
                extra_data={"provider": self.provider_name, "error": str(exc)},
            )
            return False
