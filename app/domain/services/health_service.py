"""
Health Service - readiness checks for the database and the invoice provider

Liveness (/health) never touches dependencies; readiness reports each one.
"""
from typing import Any

from sqlalchemy import text

from app.core.logging import get_logger
from app.db.database import AsyncSessionLocal
from app.domain.services.invoicing.provider_factory import get_invoice_provider

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"
# invoicing is switched off; sessions still work
_CHECK_NOT_CONFIGURED = "not_configured"

_ERROR_DB = "error: db_unavailable"
_ERROR_INVOICE_PROVIDER = "error: invoice_provider_unavailable"


async def _check_db() -> str:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return _CHECK_OK
    except Exception as e:
        logger.warning("Database health check failed", extra_data={"error": str(e)})
        return _ERROR_DB


async def _check_invoice_provider() -> str:
    """Asks the configured provider whether it can be reached"""
    provider = get_invoice_provider()
    if provider.provider_name == "none":
        return _CHECK_NOT_CONFIGURED
    try:
        reachable = await provider.validate_connection()
    except Exception as e:
        logger.warning(
            "Invoice provider health check failed",
            extra_data={"provider": provider.provider_name, "error": str(e)},
        )
        return _ERROR_INVOICE_PROVIDER
    return _CHECK_OK if reachable else _ERROR_INVOICE_PROVIDER


async def check_readiness() -> dict[str, Any]:
    """
    Overall status plus one entry per dependency.

    status is "healthy" when every check is ok (an unconfigured invoice
    provider counts as ok), otherwise "degraded".
    """
    checks = {
        "db": await _check_db(),
        "invoice_provider": await _check_invoice_provider(),
    }

    all_ok = all(v in (_CHECK_OK, _CHECK_NOT_CONFIGURED) for v in checks.values())
    overall_status = _STATUS_HEALTHY if all_ok else _STATUS_DEGRADED

    if not all_ok:
        logger.warning("Readiness check degraded", extra_data=checks)

    return {"status": overall_status, **checks}
