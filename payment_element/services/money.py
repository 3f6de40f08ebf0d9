"""
Amount helpers: currency exponents, installment splits and calendar months.
"""
import calendar
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Union

# https://docs.stripe.com/currencies#zero-decimal
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})

# https://docs.stripe.com/currencies#three-decimal
THREE_DECIMAL_CURRENCIES = frozenset({"bhd", "jod", "kwd", "omr", "tnd"})


def currency_exponent(currency: str) -> int:
    """Number of minor-unit digits Stripe uses for ``currency``."""
    code = currency.lower()
    if code in ZERO_DECIMAL_CURRENCIES:
        return 0
    if code in THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def to_minor_units(amount: Union[Decimal, int, float, str], currency: str) -> int:
    """
    Convert a major-unit amount (e.g. ``19.99``) to Stripe minor units (``1999``).

    The scale follows the currency exponent, so ``500 jpy`` stays ``500`` and
    ``1.234 kwd`` becomes ``1234``. Amounts that are not positive, or that carry
    more precision than the currency allows, raise ValueError.
    """
    try:
        # str() keeps floats like 19.99 from picking up binary noise
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {amount!r}")

    if not value.is_finite() or value <= 0:
        raise ValueError(f"Amount must be positive, got {amount!r}")

    exponent = currency_exponent(currency)
    scaled = value.scaleb(exponent)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Amount {amount} has more than {exponent} decimal places for {currency.upper()}"
        )
    return int(scaled)


def split_installments(amount: int, parts: int = 3) -> List[int]:
    """
    Split ``amount`` into ``parts`` equal installments rounded up.

    Every installment is ``ceil(amount / parts)``; the total may exceed
    ``amount`` by at most ``parts - 1`` minor units.
    """
    if parts < 1:
        raise ValueError("parts must be at least 1")
    installment = -(-amount // parts)
    return [installment] * parts


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
