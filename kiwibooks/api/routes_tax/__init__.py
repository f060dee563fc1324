"""
Tax API Routes Module.

All routes are prefixed with /tax.

Sub-modules:
- calculate: line-item tax calculation
- configuration: active tax configuration and rate supersession
- returns: GST / income tax returns, validation, submission, GST summary
- compliance: compliance report
"""
from __future__ import annotations

from fastapi import APIRouter

from .calculate import router as calculate_router
from .compliance import router as compliance_router
from .configuration import router as configuration_router
from .returns import router as returns_router

# Main router with /tax prefix
router = APIRouter(prefix="/tax", tags=["tax"])

router.include_router(calculate_router)
router.include_router(configuration_router)
router.include_router(returns_router)
router.include_router(compliance_router)

__all__ = ["router"]
