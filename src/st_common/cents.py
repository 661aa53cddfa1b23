"""Integer arithmetic utilities for cents-based wallet balances.

All amounts and balances are int (cents). Rates arrive as Decimal and are
applied with an explicit rounding mode; float never touches money.
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal


def validate_amount(amount: int) -> None:
    """Validate that a monetary amount is a positive integer number of cents."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer number of cents, got {amount!r}")
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def decimal_to_cents(amount: Decimal) -> int:
    """Convert a major-unit Decimal (e.g. Decimal('12.345')) to cents, half-up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def calculate_platform_fee(product_amount: int, fee_rate: Decimal) -> int:
    """Platform fee on the product amount, rounded up (platform never loses).

    fee = ceil(product_amount * fee_rate)
    """
    if not (Decimal("0") <= fee_rate <= Decimal("1")):
        raise ValueError(f"Platform fee rate must be between 0 and 1, got {fee_rate}")
    if product_amount == 0 or fee_rate == 0:
        return 0
    return int((Decimal(product_amount) * fee_rate).to_integral_value(rounding=ROUND_CEILING))
