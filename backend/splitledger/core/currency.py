"""
Currency precision helpers.
"""
from decimal import Decimal, ROUND_HALF_UP

# Currencies whose ISO 4217 minor unit is 0; everything else settles to cents.
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND", "CLP", "ISK"}

# Balances whose rounded magnitude is below this are treated as settled.
SETTLED_EPSILON = Decimal("0.01")


def minor_unit_places(currency: str) -> int:
    """Number of decimal places used by a currency's minor unit."""
    if currency and currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return 0
    return 2


def minor_unit(currency: str) -> Decimal:
    """Smallest representable amount of a currency (1 or 0.01)."""
    return Decimal(1).scaleb(-minor_unit_places(currency))


def round_to_minor_unit(amount: Decimal, currency: str) -> Decimal:
    """
    Round an amount to the currency's precision.
    Decimal's ROUND_HALF_UP rounds ties away from zero for negative values too.
    """
    return amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def is_settled(amount: Decimal) -> bool:
    """True when a rounded balance is too small to report."""
    return abs(amount) < SETTLED_EPSILON
