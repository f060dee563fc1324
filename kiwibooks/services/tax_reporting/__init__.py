"""Tax Reporting Module.

IRD GST and income tax returns plus compliance summaries.

Sub-modules:
- aggregation: fold of period records into GST sales/purchases totals
- computations: income tax brackets and GST return assembly
- period_utils: period parsing, validation and quarter boundaries
- reporting_service: IRDReportingService (generate, validate, submit)
- compliance: ComplianceReporter and compliance checks
"""
from .aggregation import (
    PeriodRecord,
    PurchaseTotals,
    SalesTotals,
    calculate_gst_return_purchases,
    calculate_gst_return_sales,
    calculate_net_gst,
)
from .compliance import ComplianceReporter, check_tax_compliance
from .computations import (
    DEFAULT_BRACKET_TABLES,
    NZ_INCOME_TAX_BRACKETS,
    IncomeTaxBracketTable,
    TaxBracket,
    build_gst_return,
    compute_income_tax,
    compute_income_tax_return,
    select_bracket_table,
)
from .period_utils import parse_period_date, quarter_end, validate_period
from .reporting_service import IRDReportingService

__all__ = [
    # Aggregation
    "PeriodRecord",
    "SalesTotals",
    "PurchaseTotals",
    "calculate_gst_return_sales",
    "calculate_gst_return_purchases",
    "calculate_net_gst",
    # Computations
    "TaxBracket",
    "IncomeTaxBracketTable",
    "NZ_INCOME_TAX_BRACKETS",
    "DEFAULT_BRACKET_TABLES",
    "select_bracket_table",
    "compute_income_tax",
    "compute_income_tax_return",
    "build_gst_return",
    # Utilities
    "parse_period_date",
    "validate_period",
    "quarter_end",
    # Services
    "IRDReportingService",
    "ComplianceReporter",
    "check_tax_compliance",
]
