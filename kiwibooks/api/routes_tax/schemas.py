"""
Shared Pydantic schemas for tax-related routes.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PeriodIn(BaseModel):
    """Return period. Dates stay strings so bad input gets a period error."""

    period_start: str = Field(..., description="ISO date, e.g. 2024-01-01")
    period_end: str = Field(..., description="ISO date, e.g. 2024-03-31")


class TaxConfigurationIn(BaseModel):
    tax_rate: Decimal = Field(..., description="Rate as a fraction, e.g. 0.15")
    effective_from: date
    tax_name: str | None = Field(None, max_length=50)
    tax_type: str = "GST"
    country_code: str | None = Field(None, min_length=2, max_length=2)
    applies_to_services: bool = True
    applies_to_goods: bool = True


class TaxConfigurationOut(BaseModel):
    id: int
    user_id: int
    country_code: str
    tax_type: str
    tax_rate: Decimal
    tax_name: str
    applies_to_services: bool | None
    applies_to_goods: bool | None
    effective_from: date
    effective_to: date | None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class TaxReturnOut(BaseModel):
    id: int
    user_id: int
    period_start: date
    period_end: date
    return_type: str
    total_sales: Decimal
    total_purchases: Decimal
    gst_on_sales: Decimal
    gst_on_purchases: Decimal
    net_gst: Decimal
    status: str
    ird_reference: str | None
    submitted_at: datetime | None
    return_data: dict[str, Any] | None
    version: int
    created_at: datetime | None
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class TaxReturnPatch(BaseModel):
    """Draft edit. Totals follow return_data; any other field is rejected as unknown."""

    return_data: dict[str, Any]

    model_config = ConfigDict(extra="forbid")
