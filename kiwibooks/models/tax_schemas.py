"""
Pydantic schemas for tax calculations, IRD return documents and reports.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

ZERO = Decimal("0.00")


class LineItem(BaseModel):
    """One priced line of a calculation request.

    Deliberately unconstrained: bad quantities and prices are reported by
    `validate_tax_calculation_request` as a list instead of raising here.
    """

    description: str = ""
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = ZERO
    taxable: bool = True


class TaxCalculationRequest(BaseModel):
    items: list[LineItem] = Field(default_factory=list)
    tax_inclusive: bool = True
    additional_charges: Decimal | None = None
    discounts: Decimal | None = None


class LineItemBreakdown(BaseModel):
    description: str
    amount: Decimal
    taxable: bool
    tax_amount: Decimal


class TaxCalculationBreakdown(BaseModel):
    line_items: list[LineItemBreakdown] = Field(default_factory=list)


class TaxCalculationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    tax_rate: Decimal
    tax_name: str
    breakdown: TaxCalculationBreakdown


class TaxBreakdown(BaseModel):
    """Invoice-level tax summary stored alongside an invoice."""

    subtotal: Decimal
    tax_amount: Decimal
    tax_rate: Decimal
    tax_name: str
    tax_inclusive: bool
    total: Decimal


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# IRD return documents
# ---------------------------------------------------------------------------

class SalesDetails(BaseModel):
    standard_rated: Decimal = ZERO
    zero_rated: Decimal = ZERO
    exempt: Decimal = ZERO
    total_sales: Decimal = ZERO
    gst_on_sales: Decimal = ZERO


class PurchaseDetails(BaseModel):
    standard_rated: Decimal = ZERO
    capital_goods: Decimal = ZERO
    total_purchases: Decimal = ZERO
    gst_on_purchases: Decimal = ZERO


class GSTAdjustments(BaseModel):
    bad_debts: Decimal = ZERO
    other_adjustments: Decimal = ZERO


class GSTReturnData(BaseModel):
    sales_details: SalesDetails
    purchase_details: PurchaseDetails
    adjustments: GSTAdjustments = Field(default_factory=GSTAdjustments)


class IncomeTaxReturnData(BaseModel):
    gross_income: Decimal
    allowable_deductions: Decimal
    taxable_income: Decimal
    tax_due: Decimal
    provisional_tax: Decimal


class IRDReturnData(BaseModel):
    gst_return: GSTReturnData | None = None
    income_tax: IncomeTaxReturnData | None = None


class SubmissionResult(BaseModel):
    success: bool
    ird_reference: str | None = None
    submitted_at: datetime | None = None
    errors: list[str] = Field(default_factory=list)


class GSTSummary(BaseModel):
    total_sales: Decimal = ZERO
    total_purchases: Decimal = ZERO
    gst_on_sales: Decimal = ZERO
    gst_on_purchases: Decimal = ZERO
    net_gst_position: Decimal = ZERO


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------

class ReportPeriod(BaseModel):
    start: date
    end: date


class ComplianceSummary(BaseModel):
    total_invoiced: Decimal
    total_received: Decimal
    total_expenses: Decimal
    net_income: Decimal
    outstanding_receivables: Decimal


class TaxComplianceCheck(BaseModel):
    is_compliant: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    checked_at: datetime


class ComplianceReport(BaseModel):
    period: ReportPeriod
    summary: ComplianceSummary
    tax_compliance: TaxComplianceCheck
    invoice_count: int
    payment_count: int
    expense_count: int
    generated_at: datetime
