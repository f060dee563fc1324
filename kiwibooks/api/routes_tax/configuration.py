"""
Tax Configuration Routes.

Read the active configuration and supersede it with a new rate.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Query

from kiwibooks.api.dependencies import ConfigServiceDep, CurrentUserDep
from kiwibooks.core.exceptions import MissingTaxConfigurationError
from kiwibooks.metrics import tax_configuration_updated

from .schemas import TaxConfigurationIn, TaxConfigurationOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/configuration", response_model=TaxConfigurationOut)
async def get_configuration(
    current_user_id: CurrentUserDep,
    config_service: ConfigServiceDep,
    country_code: str | None = Query(None, min_length=2, max_length=2),
):
    """Active configuration today; the default is created on first use."""
    config = config_service.get_active_configuration(current_user_id, country_code)
    if config is None:
        raise MissingTaxConfigurationError("Tax", current_user_id)
    return config


@router.put("/configuration", response_model=TaxConfigurationOut)
async def update_configuration(
    data: TaxConfigurationIn,
    current_user_id: CurrentUserDep,
    config_service: ConfigServiceDep,
):
    """Supersede the current rate from `effective_from` onward."""
    config = config_service.supersede_configuration(
        current_user_id,
        tax_rate=data.tax_rate,
        effective_from=data.effective_from,
        tax_name=data.tax_name,
        tax_type=data.tax_type,
        country_code=data.country_code,
        applies_to_services=data.applies_to_services,
        applies_to_goods=data.applies_to_goods,
    )
    tax_configuration_updated()
    return config
