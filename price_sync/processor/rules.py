"""
Business rules for deciding when a channel price must be corrected.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional


# Rule constants
PRICE_DIFF_THRESHOLD = Decimal("0.01")
CENTS = Decimal("0.01")


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a price coming from an API into a Decimal.

    Args:
        value: Price as string, int, float or Decimal (e.g., "29.99")

    Returns:
        Decimal price, or None if missing or not a finite number
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None

    try:
        # str() keeps floats from leaking binary noise into the Decimal
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None

    if not price.is_finite():
        return None
    return price


def price_difference(current_price: Any, target_price: Any) -> Optional[Decimal]:
    """
    Absolute difference between two prices.

    Returns:
        |current - target|, or None if either side cannot be parsed
    """
    current = parse_price(current_price)
    target = parse_price(target_price)
    if current is None or target is None:
        return None
    return abs(current - target)


def needs_reprice(current_price: Any, target_price: Any) -> bool:
    """
    Determine if a channel price must be pushed.

    A missing or unparseable channel price always needs a push. Otherwise the
    difference must exceed PRICE_DIFF_THRESHOLD.

    Args:
        current_price: Price currently on the channel (usually a string)
        target_price: Authoritative price

    Returns:
        True if an update is needed, False otherwise
    """
    if parse_price(target_price) is None:
        return False

    diff = price_difference(current_price, target_price)
    if diff is None:
        return True
    return diff > PRICE_DIFF_THRESHOLD


def format_price(value: Any) -> Optional[str]:
    """
    Format a price to the channel wire format (2 decimal places).

    Args:
        value: Price as Decimal, number or string

    Returns:
        Formatted price or None
    """
    price = parse_price(value)
    if price is None:
        return None
    return str(price.quantize(CENTS, rounding=ROUND_HALF_UP))


def normalize_sku(sku: Optional[str]) -> str:
    """Match key for a SKU: trimmed and case-insensitive."""
    if not sku:
        return ""
    return str(sku).strip().casefold()
