"""
Celery Tasks for Batch Finalisation and Invoicing

Tasks are thin sync wrappers that run the async domain services on a
private event loop with a fresh database session.
"""
from __future__ import annotations

import asyncio
from contextlib import contextmanager
from datetime import datetime, timedelta

from app.workers.celery_app import celery_app
from app.core.config import settings
from app.core.exceptions import AppException
from app.core.logging import get_logger, set_correlation_id, set_network_id
from app.db.database import get_task_session
from app.domain.services.invoice_service import InvoiceService
from app.domain.services.wash_session_service import WashSessionService

logger = get_logger(__name__)


@contextmanager
def get_event_loop():
    """
    Context manager for proper event loop handling in Celery tasks.
    Creates a new event loop and ensures proper cleanup to prevent resource leaks.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        yield loop
    finally:
        try:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()


def run_async(coro):
    """Helper to run async code in sync Celery task with proper cleanup"""
    # Set correlation ID for task tracking
    set_correlation_id()

    with get_event_loop() as loop:
        return loop.run_until_complete(coro)


@celery_app.task(name="app.workers.tasks.lock_completed_sessions")
def lock_completed_sessions(hours: int | None = None, network_id: int | None = None):
    """
    Lock sessions that have been COMPLETED for longer than ``hours``
    (AUTO_LOCK_AFTER_HOURS by default).
    """
    lock_after = settings.AUTO_LOCK_AFTER_HOURS if hours is None else hours

    async def _lock():
        cutoff = datetime.utcnow() - timedelta(hours=lock_after)
        async with get_task_session() as db:
            service = WashSessionService(db)
            summary = await service.lock_completed_sessions(cutoff, network_id=network_id)
        summary["cutoff"] = cutoff.isoformat()
        return summary

    return run_async(_lock())


@celery_app.task(name="app.workers.tasks.issue_partner_invoice")
def issue_partner_invoice(
    network_id: int,
    partner_account_id: int,
    period_start: str,
    period_end: str,
):
    """Invoice a partner's locked sessions; dates are ISO-8601 strings"""

    async def _issue():
        set_network_id(str(network_id))
        async with get_task_session() as db:
            service = InvoiceService(db)
            try:
                record = await service.issue_partner_invoice(
                    network_id,
                    partner_account_id,
                    datetime.fromisoformat(period_start),
                    datetime.fromisoformat(period_end),
                )
            except AppException as e:
                logger.error(
                    "Partner invoice task failed",
                    extra_data={
                        "network_id": network_id,
                        "partner_account_id": partner_account_id,
                        "error_code": e.error_code.value,
                        "error": e.message,
                    }
                )
                return {"success": False, **e.to_dict()}

            return {
                "success": True,
                "invoice_record_id": record.id,
                "reference": record.external_reference,
                "session_count": len(record.sessions),
                "total": str(record.total),
                "currency": record.currency,
            }

    return run_async(_issue())
