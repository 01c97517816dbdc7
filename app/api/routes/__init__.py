"""
API Routes
"""
from fastapi import APIRouter

from app.api.routes.wash_sessions import router as wash_sessions_router
from app.api.routes.audit import router as audit_router
from app.api.routes.invoices import router as invoices_router

router = APIRouter()

router.include_router(wash_sessions_router, prefix="/wash-sessions", tags=["wash-sessions"])
router.include_router(audit_router, prefix="/audit-logs", tags=["audit-logs"])
router.include_router(invoices_router, prefix="/invoices", tags=["invoices"])
