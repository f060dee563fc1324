"""GST return aggregation.

Folds per-invoice / per-expense amounts into the sales and purchases boxes of
a GST return. Each fold step rounds every running sum to the cent, which keeps
accumulated error bounded and makes results reproducible record by record.
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import reduce
from typing import Any, Iterable, NamedTuple

from kiwibooks.services.tax_calculation.calculator import resolve_tax_rate
from kiwibooks.services.tax_calculation.rounding import extract_inclusive_tax, round2, to_decimal

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PeriodRecord:
    """One invoice or expense amount as seen by the GST aggregation."""
    amount: Decimal
    tax_inclusive: bool = True
    taxable: bool = True


class SalesTotals(NamedTuple):
    total_sales: Decimal = ZERO
    gst_on_sales: Decimal = ZERO
    standard_rated: Decimal = ZERO
    zero_rated: Decimal = ZERO


class PurchaseTotals(NamedTuple):
    total_purchases: Decimal = ZERO
    gst_on_purchases: Decimal = ZERO
    standard_rated: Decimal = ZERO


def _gst_component(record: PeriodRecord, rate: Decimal) -> tuple[Decimal, Decimal]:
    """Return (gst, amount to add to the running total) for a taxable record."""
    amount = to_decimal(record.amount)
    if record.tax_inclusive:
        _, gst = extract_inclusive_tax(amount, rate)
        return gst, amount
    gst = round2(amount * rate)
    return gst, amount + gst


def _fold_sale(rate: Decimal, acc: SalesTotals, record: PeriodRecord) -> SalesTotals:
    amount = to_decimal(record.amount)
    if not record.taxable:
        return acc._replace(
            total_sales=round2(acc.total_sales + amount),
            zero_rated=round2(acc.zero_rated + amount),
        )
    gst, gross = _gst_component(record, rate)
    return SalesTotals(
        total_sales=round2(acc.total_sales + gross),
        gst_on_sales=round2(acc.gst_on_sales + gst),
        standard_rated=round2(acc.standard_rated + amount),
        zero_rated=acc.zero_rated,
    )


def _fold_purchase(rate: Decimal, acc: PurchaseTotals, record: PeriodRecord) -> PurchaseTotals:
    amount = to_decimal(record.amount)
    if not record.taxable:
        # Non-claimable GST is dropped, not bucketed
        return acc._replace(total_purchases=round2(acc.total_purchases + amount))
    gst, gross = _gst_component(record, rate)
    return PurchaseTotals(
        total_purchases=round2(acc.total_purchases + gross),
        gst_on_purchases=round2(acc.gst_on_purchases + gst),
        standard_rated=round2(acc.standard_rated + amount),
    )


def calculate_gst_return_sales(records: Iterable[PeriodRecord], config: Any) -> SalesTotals:
    """
    Aggregate sales for a GST return.

    Taxable records count toward standard-rated sales; their GST is
    extracted (inclusive) or added (exclusive). Non-taxable records are
    zero-rated and still part of total sales.
    """
    rate = resolve_tax_rate(config)
    return reduce(lambda acc, rec: _fold_sale(rate, acc, rec), records, SalesTotals())


def calculate_gst_return_purchases(records: Iterable[PeriodRecord], config: Any) -> PurchaseTotals:
    """Aggregate purchases for a GST return (no zero-rated bucket)."""
    rate = resolve_tax_rate(config)
    return reduce(lambda acc, rec: _fold_purchase(rate, acc, rec), records, PurchaseTotals())


def calculate_net_gst(gst_on_sales: Any, gst_on_purchases: Any) -> Decimal:
    """GST to pay (positive) or refund due (negative)."""
    return round2(to_decimal(gst_on_sales) - to_decimal(gst_on_purchases))
