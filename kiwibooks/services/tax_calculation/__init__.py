"""Tax Calculation Module.

Pure line-item tax math (inclusive and exclusive conventions) plus the
cent-rounding helpers shared with the GST return aggregation.
"""
from .calculator import (
    calculate_invoice_tax_breakdown,
    calculate_tax,
    ensure_valid_request,
    format_tax_amount,
    format_tax_rate,
    resolve_tax_rate,
    validate_tax_calculation_request,
)
from .rounding import extract_inclusive_tax, round2, to_decimal

__all__ = [
    "calculate_tax",
    "validate_tax_calculation_request",
    "ensure_valid_request",
    "calculate_invoice_tax_breakdown",
    "format_tax_amount",
    "format_tax_rate",
    "resolve_tax_rate",
    "extract_inclusive_tax",
    "round2",
    "to_decimal",
]
