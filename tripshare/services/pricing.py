"""
Booking financials.

The platform keeps a fixed 5% commission on every booking. Prices are
carried as Decimal end to end and rounded to two places only where the
commission is split off.
"""

import re
import unicodedata
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

COMMISSION_RATE = Decimal("0.05")
_CENTS = Decimal("0.01")
_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Financials:
    unit_price: Decimal
    total_price: Decimal
    commission: Decimal
    net_to_operator: Decimal


def parse_unit_price(price_label: str | None) -> Decimal:
    """
    Extract a unit price from an operator-entered price label.

    Takes the first contiguous run of digits ("500 جنيه" -> 500). Arabic-Indic
    digits are normalized first. Returns 0 when the label carries no digits.
    """
    if not price_label:
        return Decimal(0)
    match = _DIGITS.search(_normalize_digits(price_label))
    return Decimal(match.group(0)) if match else Decimal(0)


def _normalize_digits(text: str) -> str:
    return "".join(str(unicodedata.decimal(ch)) if ch.isdecimal() else ch for ch in text)


def compute_financials(unit_price: Decimal, seat_count: int) -> Financials:
    unit_price = Decimal(unit_price)
    total = (unit_price * seat_count).quantize(_CENTS, rounding=ROUND_HALF_UP)
    commission = (total * COMMISSION_RATE).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return Financials(
        unit_price=unit_price.quantize(_CENTS, rounding=ROUND_HALF_UP),
        total_price=total,
        commission=commission,
        net_to_operator=total - commission,
    )
