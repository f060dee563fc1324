"""
Compliance Routes.

Advisory compliance report for a period.
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from kiwibooks.api.dependencies import ComplianceReporterDep, CurrentUserDep
from kiwibooks.models.tax_schemas import ComplianceReport

router = APIRouter()


@router.get("/compliance", response_model=ComplianceReport)
async def compliance_report(
    current_user_id: CurrentUserDep,
    reporter: ComplianceReporterDep,
    period_start: str = Query(..., description="ISO date"),
    period_end: str = Query(..., description="ISO date"),
):
    """
    Totals, counts and compliance flags for the period.

    Flags are advisory: overdue GST filing, invoices without a tax
    breakdown and large cash receipts.
    """
    return await reporter.generate_compliance_report(current_user_id, period_start, period_end)
