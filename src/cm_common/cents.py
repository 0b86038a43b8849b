"""Integer money utilities.

All prices, amounts, fees and balances are int in the currency's minor unit
(kobo, cents). No float, no Decimal.
"""

from config.settings import settings

BPS_DENOMINATOR = 10_000


def validate_amount(amount: int) -> None:
    """Validate that a money amount is a positive integer."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Amount must be a positive integer, got {amount!r}")


def minor_to_display(amount: int, symbol: str | None = None) -> str:
    """Convert minor units to a display string: 650000 -> '₦6,500.00', -1200 -> '-₦12.00'."""
    sym = settings.CURRENCY_SYMBOL if symbol is None else symbol
    if amount < 0:
        abs_amount = -amount
        return f"-{sym}{abs_amount // 100:,}.{abs_amount % 100:02d}"
    return f"{sym}{amount // 100:,}.{amount % 100:02d}"


def bps_of_ceil(amount: int, bps: int) -> int:
    """Ceiling share of ``amount`` at ``bps`` basis points (platform never loses).

    ceil(amount * bps / 10000) using integer ceiling: (a + b - 1) // b
    """
    if amount == 0 or bps == 0:
        return 0
    return (amount * bps + BPS_DENOMINATOR - 1) // BPS_DENOMINATOR


def bps_of_floor(amount: int, bps: int) -> int:
    """Floor share of ``amount`` at ``bps`` basis points."""
    return (amount * bps) // BPS_DENOMINATOR
