"""Token amount formatting."""

from decimal import Decimal

NATIVE_DECIMALS = 18


def format_units(raw: int, decimals: int) -> Decimal:
    """
    Convert an integer base-unit amount into an exact decimal token amount.

    ``format_units(1_500_000, 6) == Decimal("1.5")``
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    return Decimal(raw).scaleb(-decimals)


def format_native(raw: int) -> Decimal:
    """Convert a wei-denominated native balance into ether units."""
    return format_units(raw, NATIVE_DECIMALS)


def display_amount(amount: Decimal) -> str:
    """Render an amount in plain notation without trailing zeros."""
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
