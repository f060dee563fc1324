"""
Tax Calculation Routes.

Line-item GST calculation against the caller's active configuration.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter

from kiwibooks.api.dependencies import ConfigServiceDep, CurrentUserDep
from kiwibooks.metrics import tax_calculation_record
from kiwibooks.models.tax_schemas import TaxCalculationRequest, TaxCalculationResult
from kiwibooks.services.tax_calculation import calculate_tax, ensure_valid_request

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/calculate", response_model=TaxCalculationResult)
async def calculate(
    request: TaxCalculationRequest,
    current_user_id: CurrentUserDep,
    config_service: ConfigServiceDep,
):
    """
    Calculate subtotal, tax and total for line items.

    Validation problems come back as a 422 listing every error found.
    """
    ensure_valid_request(request)
    config = config_service.get_active_configuration(current_user_id)
    result = calculate_tax(request, config)
    tax_calculation_record()
    return result
