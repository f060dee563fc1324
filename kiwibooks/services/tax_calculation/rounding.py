"""Currency rounding helpers.

All tax money is Decimal, rounded half-up to the cent (IRD invoice convention).
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number | None) -> Decimal:
    """Coerce stored/request numbers to Decimal without float artefacts."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Number | None) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def extract_inclusive_tax(amount: Number, rate: Number) -> tuple[Decimal, Decimal]:
    """Split a tax-inclusive amount into (net, tax), both to the cent.

    The net part is rounded first and the tax is the remainder, so the two
    always add back to the rounded amount.
    """
    gross = round2(amount)
    rate_dec = to_decimal(rate)
    if rate_dec == 0:
        return gross, round2(0)
    net = round2(gross / (Decimal("1") + rate_dec))
    return net, round2(gross - net)
