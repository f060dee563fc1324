"""Tax calculation for invoice line items.

Pure functions: no database access, no clock. Every currency value is rounded
to the cent per line before it is summed, matching how IRD-style invoices are
printed. This can differ by a cent from rounding the grand total once; that
drift is expected.
"""
import logging
from decimal import Decimal
from typing import Any, Iterable

from kiwibooks.core.exceptions import (
    InvalidConfigurationError,
    InvalidRequestError,
    MissingConfigurationError,
)
from kiwibooks.models.tax_schemas import (
    LineItem,
    LineItemBreakdown,
    TaxBreakdown,
    TaxCalculationBreakdown,
    TaxCalculationRequest,
    TaxCalculationResult,
    ValidationResult,
)

from .rounding import extract_inclusive_tax, round2, to_decimal

logger = logging.getLogger(__name__)


def resolve_tax_rate(config: Any) -> Decimal:
    """Read and check the rate of a TaxConfiguration-like object."""
    if config is None:
        raise MissingConfigurationError()
    raw = getattr(config, "tax_rate", None)
    if raw is None:
        raise InvalidConfigurationError("Tax rate is missing from the tax configuration")
    rate = to_decimal(raw)
    if rate < 0 or rate > 1:
        raise InvalidConfigurationError("Tax rate must be between 0 and 1", tax_rate=rate)
    return rate


def _split_amount(amount: Decimal, rate: Decimal, taxable: bool, tax_inclusive: bool) -> tuple[Decimal, Decimal]:
    """Return (net, tax) for one line, rounded to the cent."""
    amount = round2(amount)
    if not taxable or rate == 0:
        return amount, round2(0)
    if tax_inclusive:
        return extract_inclusive_tax(amount, rate)
    return amount, round2(amount * rate)


def calculate_tax(request: TaxCalculationRequest, config: Any) -> TaxCalculationResult:
    """
    Calculate subtotal, tax and total for a set of line items.

    Args:
        request: Items plus inclusive/exclusive convention, optional
            additional charges (always taxable) and discounts
        config: Tax configuration providing `tax_rate` (0-1) and `tax_name`

    Returns:
        TaxCalculationResult with a per-line breakdown echo

    Raises:
        MissingConfigurationError: config is None
        InvalidConfigurationError: rate missing or outside [0, 1]
    """
    rate = resolve_tax_rate(config)
    inclusive = request.tax_inclusive

    subtotal = Decimal("0")
    tax_total = Decimal("0")
    lines: list[LineItemBreakdown] = []

    for item in request.items:
        line_total = to_decimal(item.quantity) * to_decimal(item.unit_price)
        net, tax = _split_amount(line_total, rate, item.taxable, inclusive)
        subtotal += net
        tax_total += tax
        lines.append(
            LineItemBreakdown(
                description=item.description,
                amount=net,
                taxable=item.taxable,
                tax_amount=tax,
            )
        )

    charges = to_decimal(request.additional_charges)
    if charges > 0:
        net, tax = _split_amount(charges, rate, True, inclusive)
        subtotal += net
        tax_total += tax
        lines.append(
            LineItemBreakdown(description="Additional Charges", amount=net, taxable=True, tax_amount=tax)
        )

    discount = to_decimal(request.discounts)
    if discount > 0:
        if inclusive:
            # Inclusive discount carries its own GST share
            discount_net, discount_tax = extract_inclusive_tax(discount, rate)
            subtotal -= discount_net
            tax_total -= discount_tax
        else:
            # Exclusive: discount the subtotal, then recompute tax on what is left
            discount_tax = round2(discount * rate)
            subtotal -= discount
            tax_total = round2(subtotal * rate)
        lines.append(
            LineItemBreakdown(
                description="Discount",
                amount=-round2(discount),
                taxable=True,
                tax_amount=-discount_tax,
            )
        )

    subtotal = round2(subtotal)
    tax_total = round2(tax_total)

    return TaxCalculationResult(
        subtotal=subtotal,
        tax_amount=tax_total,
        total=round2(subtotal + tax_total),
        tax_rate=rate,
        tax_name=getattr(config, "tax_name", None) or "GST",
        breakdown=TaxCalculationBreakdown(line_items=lines),
    )


def validate_tax_calculation_request(request: TaxCalculationRequest) -> ValidationResult:
    """Collect every problem with a calculation request instead of failing on the first."""
    errors: list[str] = []

    if not request.items:
        errors.append("At least one item is required")

    for index, item in enumerate(request.items, start=1):
        if not item.description or not item.description.strip():
            errors.append(f"Item {index}: Description is required")
        if to_decimal(item.quantity) <= 0:
            errors.append(f"Item {index}: Quantity must be positive")
        if to_decimal(item.unit_price) < 0:
            errors.append(f"Item {index}: Unit price cannot be negative")

    if request.additional_charges is not None and to_decimal(request.additional_charges) < 0:
        errors.append("Additional charges cannot be negative")

    if request.discounts is not None and to_decimal(request.discounts) < 0:
        errors.append("Discounts cannot be negative")

    return ValidationResult(is_valid=not errors, errors=errors)


def ensure_valid_request(request: TaxCalculationRequest) -> None:
    """Raise InvalidRequestError carrying all validation errors, if any."""
    result = validate_tax_calculation_request(request)
    if not result.is_valid:
        logger.debug("Rejected tax calculation request: %s", result.errors)
        raise InvalidRequestError(result.errors)


def calculate_invoice_tax_breakdown(
    line_items: Iterable[dict],
    config: Any,
    additional_charges: Decimal | int | str = 0,
    discount: Decimal | int | str = 0,
    tax_inclusive: bool = True,
) -> TaxBreakdown:
    """
    Invoice-level tax summary where every invoice line is taxable.

    Args:
        line_items: Dicts with `description`, `quantity` and `rate` (unit price)
        config: Tax configuration
        additional_charges: Shipping/handling style charges
        discount: Invoice discount
        tax_inclusive: Whether line rates already include GST
    """
    request = TaxCalculationRequest(
        items=[
            LineItem(
                description=item.get("description", ""),
                quantity=to_decimal(item.get("quantity", 1)),
                unit_price=to_decimal(item.get("rate", 0)),
                taxable=True,
            )
            for item in line_items
        ],
        tax_inclusive=tax_inclusive,
        additional_charges=to_decimal(additional_charges),
        discounts=to_decimal(discount),
    )
    result = calculate_tax(request, config)
    return TaxBreakdown(
        subtotal=result.subtotal,
        tax_amount=result.tax_amount,
        tax_rate=result.tax_rate,
        tax_name=result.tax_name,
        tax_inclusive=tax_inclusive,
        total=result.total,
    )


_CURRENCY_SYMBOLS = {"NZD": "$", "AUD": "A$", "USD": "US$"}


def format_tax_amount(amount: Decimal | int | float, currency: str = "NZD") -> str:
    """Format an amount for display, e.g. `$1,234.50` or `-$15.00`."""
    value = round2(amount)
    symbol = _CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_tax_rate(rate: Decimal | float) -> str:
    """Render a fractional rate as a percentage with one decimal, e.g. `15.0%`."""
    percent = (to_decimal(rate) * 100).quantize(Decimal("0.1"))
    return f"{percent}%"
