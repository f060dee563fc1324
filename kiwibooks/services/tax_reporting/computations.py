"""Tax computation functions and constants.

Pure computation logic for NZ income tax and GST return assembly.
No database access: callers pass already-fetched invoice/expense records.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from kiwibooks.core.exceptions import InvalidConfigurationError
from kiwibooks.models.models import ExpenseCategory, GSTCategory, PaymentStatus
from kiwibooks.models.tax_schemas import (
    GSTAdjustments,
    GSTReturnData,
    IncomeTaxReturnData,
    PurchaseDetails,
    SalesDetails,
)
from kiwibooks.services.tax_calculation.rounding import extract_inclusive_tax, round2, to_decimal

from .aggregation import (
    PeriodRecord,
    calculate_gst_return_purchases,
    calculate_gst_return_sales,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaxBracket:
    threshold: Decimal  # income above this amount is taxed at `rate`
    rate: Decimal


@dataclass(frozen=True)
class IncomeTaxBracketTable:
    """Marginal income tax brackets in force for a date range."""
    name: str
    brackets: tuple[TaxBracket, ...]
    effective_from: date
    effective_to: Optional[date] = None

    def __post_init__(self):
        thresholds = [b.threshold for b in self.brackets]
        if not thresholds or thresholds[0] != 0 or thresholds != sorted(set(thresholds)):
            raise InvalidConfigurationError(
                f"Bracket table {self.name} must start at 0 with strictly increasing thresholds"
            )
        for bracket in self.brackets:
            if bracket.rate < 0 or bracket.rate > 1:
                raise InvalidConfigurationError(
                    f"Bracket rate must be between 0 and 1 in table {self.name}", tax_rate=bracket.rate
                )

    def covers(self, on: date) -> bool:
        return self.effective_from <= on and (self.effective_to is None or on <= self.effective_to)


def _brackets(*pairs: tuple[str, str]) -> tuple[TaxBracket, ...]:
    return tuple(TaxBracket(Decimal(t), Decimal(r)) for t, r in pairs)


# NZ individual income tax rates, 2021-04-01 to 2024-07-30
NZ_INCOME_TAX_BRACKETS = IncomeTaxBracketTable(
    name="NZ-2021",
    brackets=_brackets(
        ("0", "0.105"),          # First $14,000: 10.5%
        ("14000", "0.175"),      # $14,001-$48,000: 17.5%
        ("48000", "0.30"),       # $48,001-$70,000: 30%
        ("70000", "0.33"),       # $70,001-$180,000: 33%
        ("180000", "0.39"),      # Above $180,000: 39%
    ),
    effective_from=date(2021, 4, 1),
)

DEFAULT_BRACKET_TABLES: tuple[IncomeTaxBracketTable, ...] = (NZ_INCOME_TAX_BRACKETS,)

# Flat factor used to estimate provisional tax from the computed tax due.
# Not the IRD standard uplift method.
PROVISIONAL_TAX_FACTOR = Decimal("0.105")


def select_bracket_table(
    tables: Sequence[IncomeTaxBracketTable],
    on: date,
) -> IncomeTaxBracketTable:
    """Pick the bracket table in force on a date.

    A single table is used regardless of its dates, so tests and callers
    with a custom table need not set effective ranges.
    """
    if len(tables) == 1:
        return tables[0]
    for table in sorted(tables, key=lambda t: t.effective_from, reverse=True):
        if table.covers(on):
            return table
    raise InvalidConfigurationError(f"No income tax bracket table covers {on.isoformat()}")


def compute_income_tax(taxable_income: Any, table: IncomeTaxBracketTable = NZ_INCOME_TAX_BRACKETS) -> Decimal:
    """
    Marginal income tax, working from the top bracket down.

    Each bracket taxes only the slice of income above its threshold that
    has not already been taxed by a higher bracket.
    """
    remaining = to_decimal(taxable_income)
    tax = Decimal("0")
    for bracket in reversed(table.brackets):
        if remaining > bracket.threshold:
            tax += (remaining - bracket.threshold) * bracket.rate
            remaining = bracket.threshold
    return round2(tax)


def compute_income_tax_return(
    invoices: Iterable[Any],
    expenses: Iterable[Any],
    table: IncomeTaxBracketTable = NZ_INCOME_TAX_BRACKETS,
) -> IncomeTaxReturnData:
    """Income tax figures for a period: gross income less deductible expenses."""
    gross_income = round2(sum((to_decimal(inv.total) for inv in invoices), Decimal("0")))
    allowable_deductions = round2(sum(
        (to_decimal(exp.amount) for exp in expenses if ExpenseCategory.parse(exp.category).is_deductible),
        Decimal("0"),
    ))
    taxable_income = max(Decimal("0.00"), gross_income - allowable_deductions)
    tax_due = compute_income_tax(taxable_income, table)
    return IncomeTaxReturnData(
        gross_income=gross_income,
        allowable_deductions=allowable_deductions,
        taxable_income=round2(taxable_income),
        tax_due=tax_due,
        provisional_tax=round2(tax_due * PROVISIONAL_TAX_FACTOR),
    )


# ---------------------------------------------------------------------------
# GST return assembly
# ---------------------------------------------------------------------------

def _gst_category(invoice: Any) -> GSTCategory:
    try:
        return GSTCategory(invoice.gst_category or GSTCategory.STANDARD.value)
    except ValueError:
        return GSTCategory.STANDARD


def invoice_to_sale(invoice: Any) -> PeriodRecord:
    """Sales record for an invoice; unset `tax_inclusive` means inclusive."""
    total = to_decimal(invoice.total)
    return PeriodRecord(
        amount=total,
        tax_inclusive=True if invoice.tax_inclusive is None else bool(invoice.tax_inclusive),
        taxable=_gst_category(invoice) is GSTCategory.STANDARD and total > 0,
    )


def expense_to_purchase(expense: Any) -> PeriodRecord:
    """Purchase record for an expense; GST is claimable only for claimable categories."""
    category = ExpenseCategory.parse(expense.category)
    claimable = True if expense.is_claimable is None else bool(expense.is_claimable)
    return PeriodRecord(
        amount=to_decimal(expense.amount),
        tax_inclusive=True if expense.tax_inclusive is None else bool(expense.tax_inclusive),
        taxable=claimable and category.is_gst_claimable,
    )


def compute_capital_goods(expenses: Iterable[Any]) -> Decimal:
    """Capital purchases: expenses flagged as capital or filed in a capital category."""
    return round2(sum(
        (
            to_decimal(exp.amount)
            for exp in expenses
            if exp.is_capital_expense or ExpenseCategory.parse(exp.category).is_capital_goods
        ),
        Decimal("0"),
    ))


def compute_bad_debts(invoices: Iterable[Any], rate: Decimal) -> Decimal:
    """GST portion of invoices written off as uncollectable."""
    total = Decimal("0")
    for inv in invoices:
        if inv.payment_status != PaymentStatus.WRITTEN_OFF.value:
            continue
        if inv.tax_amount is not None:
            total += to_decimal(inv.tax_amount)
        else:
            _, gst = extract_inclusive_tax(inv.total, rate)
            total += gst
    return round2(total)


def build_gst_return(invoices: Sequence[Any], expenses: Sequence[Any], config: Any) -> GSTReturnData:
    """
    Assemble the GST return document for a period.

    Exempt invoices sit outside the GST base: they are reported in
    `sales_details.exempt` but do not enter total sales.
    """
    rate = to_decimal(config.tax_rate)

    exempt = [inv for inv in invoices if _gst_category(inv) is GSTCategory.EXEMPT]
    in_base = [inv for inv in invoices if _gst_category(inv) is not GSTCategory.EXEMPT]

    sales = calculate_gst_return_sales((invoice_to_sale(inv) for inv in in_base), config)
    purchases = calculate_gst_return_purchases((expense_to_purchase(exp) for exp in expenses), config)

    return GSTReturnData(
        sales_details=SalesDetails(
            standard_rated=sales.standard_rated,
            zero_rated=sales.zero_rated,
            exempt=round2(sum((to_decimal(inv.total) for inv in exempt), Decimal("0"))),
            total_sales=sales.total_sales,
            gst_on_sales=sales.gst_on_sales,
        ),
        purchase_details=PurchaseDetails(
            standard_rated=purchases.standard_rated,
            capital_goods=compute_capital_goods(expenses),
            total_purchases=purchases.total_purchases,
            gst_on_purchases=purchases.gst_on_purchases,
        ),
        adjustments=GSTAdjustments(
            bad_debts=compute_bad_debts(invoices, rate),
            other_adjustments=Decimal("0.00"),
        ),
    )
