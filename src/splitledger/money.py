"""Exact minor-unit money helpers.

Authoritative amounts are plain ``int`` minor units (e.g. paise or cents).
Anything coming from user text or major-unit values goes through Decimal
before it becomes an integer.
"""

import logging
import math
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal

from .exceptions import InvalidAmountInputError

logger = logging.getLogger(__name__)

InputPolicy = Literal["zero", "reject"]


def to_minor_units(amount: Decimal, minor_units_per_major: int = 100) -> int:
    """
    Convert a Decimal major-unit amount to integer minor units.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Major-unit amount as Decimal
        minor_units_per_major: Scale of the currency (100 for cents)

    Returns:
        Amount in minor units (integer)
    """
    minor = amount * minor_units_per_major
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_half_ceiling(value: Decimal) -> int:
    """
    Round a Decimal to the nearest integer, halves toward positive infinity.

    2.5 -> 3 but -2.5 -> -2, the behaviour of JavaScript's Math.round.
    """
    return int((value + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def parse_amount_input(raw_value: str | None, policy: InputPolicy = "zero") -> Decimal:
    """
    Parse partially-typed amount text into a Decimal.

    Under the "zero" policy anything that does not parse to a finite number
    (empty text, "abc", "1.2.3", "nan") is treated as zero. Under "reject"
    the same inputs raise InvalidAmountInputError; empty text is still zero.

    Args:
        raw_value: Text as typed by the user
        policy: What to do with unparseable text

    Returns:
        Parsed value as Decimal
    """
    text = (raw_value or "").strip()
    if not text:
        return Decimal("0")

    try:
        value = Decimal(text)
    except InvalidOperation:
        value = None

    if value is None or not value.is_finite():
        if policy == "reject":
            raise InvalidAmountInputError(text)
        logger.debug(f"Treating unparseable amount input {text!r} as zero")
        return Decimal("0")

    return value


def parse_percentage_input(raw_value: str | None, policy: InputPolicy = "zero") -> float:
    """Parse percentage text; same leniency rules as parse_amount_input."""
    return float(parse_amount_input(raw_value, policy))


def is_finite_amount(amount: int | float) -> bool:
    """True when the amount is a real, finite number."""
    if isinstance(amount, bool):
        return False
    if isinstance(amount, int):
        return True
    return isinstance(amount, float) and math.isfinite(amount)


def format_minor_units(
    amount: int, symbol: str = "₹", minor_units_per_major: int = 100
) -> str:
    """
    Format minor units for display, e.g. 123456 -> "₹1,234.56".

    Negative amounts are prefixed with a minus sign: -500 -> "-₹5.00".
    """
    major = Decimal(abs(amount)) / minor_units_per_major
    places = len(str(minor_units_per_major)) - 1
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{major:,.{places}f}"
