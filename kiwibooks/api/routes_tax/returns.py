"""
Tax Return Routes.

GST and income tax return generation, draft maintenance and submission.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Response, status

from kiwibooks.api.dependencies import CurrentUserDep, ReportingServiceDep
from kiwibooks.core.exceptions import TaxReturnNotFoundError
from kiwibooks.models.tax_models import ReturnType
from kiwibooks.models.tax_schemas import GSTSummary, SubmissionResult, ValidationResult
from kiwibooks.services.tax_reporting import IRDReportingService

from .schemas import PeriodIn, TaxReturnOut, TaxReturnPatch

logger = logging.getLogger(__name__)
router = APIRouter()


async def _owned_return(service: IRDReportingService, tax_return_id: int, user_id: int):
    tax_return = await service.get_tax_return_by_id(tax_return_id)
    if tax_return is None or tax_return.user_id != user_id:
        raise TaxReturnNotFoundError(tax_return_id)
    return tax_return


@router.post("/returns/gst", response_model=TaxReturnOut, status_code=status.HTTP_201_CREATED)
async def generate_gst_return(period: PeriodIn, current_user_id: CurrentUserDep, service: ReportingServiceDep):
    return await service.generate_gst_return(current_user_id, period.period_start, period.period_end)


@router.post("/returns/income", response_model=TaxReturnOut, status_code=status.HTTP_201_CREATED)
async def generate_income_return(period: PeriodIn, current_user_id: CurrentUserDep, service: ReportingServiceDep):
    return await service.generate_income_return(current_user_id, period.period_start, period.period_end)


@router.get("/returns", response_model=list[TaxReturnOut])
async def list_returns(
    current_user_id: CurrentUserDep,
    service: ReportingServiceDep,
    return_type: ReturnType | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return await service.get_tax_returns(
        current_user_id,
        return_type.value if return_type else None,
        limit=limit,
        offset=offset,
    )


@router.get("/returns/{tax_return_id}", response_model=TaxReturnOut)
async def get_return(tax_return_id: int, current_user_id: CurrentUserDep, service: ReportingServiceDep):
    return await _owned_return(service, tax_return_id, current_user_id)


@router.patch("/returns/{tax_return_id}", response_model=TaxReturnOut)
async def update_return(
    tax_return_id: int,
    patch: TaxReturnPatch,
    current_user_id: CurrentUserDep,
    service: ReportingServiceDep,
):
    await _owned_return(service, tax_return_id, current_user_id)
    return await service.update_tax_return(tax_return_id, patch.model_dump(exclude_unset=True))


@router.delete("/returns/{tax_return_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_return(tax_return_id: int, current_user_id: CurrentUserDep, service: ReportingServiceDep):
    await _owned_return(service, tax_return_id, current_user_id)
    await service.delete_tax_return(tax_return_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/returns/{tax_return_id}/validation", response_model=ValidationResult)
async def validate_return(tax_return_id: int, current_user_id: CurrentUserDep, service: ReportingServiceDep):
    tax_return = await _owned_return(service, tax_return_id, current_user_id)
    return service.validate_tax_return(tax_return)


@router.post("/returns/{tax_return_id}/submit", response_model=SubmissionResult)
async def submit_return(tax_return_id: int, current_user_id: CurrentUserDep, service: ReportingServiceDep):
    """
    Submit a draft return to IRD.

    An invalid return answers 200 with `success: false` and the errors;
    a return that is no longer a draft answers 409.
    """
    await _owned_return(service, tax_return_id, current_user_id)
    return await service.submit_tax_return(tax_return_id)


@router.get("/gst/summary", response_model=GSTSummary)
async def gst_summary(
    current_user_id: CurrentUserDep,
    service: ReportingServiceDep,
    period_start: str = Query(..., description="ISO date"),
    period_end: str = Query(..., description="ISO date"),
):
    return await service.calculate_gst_summary(current_user_id, period_start, period_end)
