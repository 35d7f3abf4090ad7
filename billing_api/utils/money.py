"""Money codec: integer cents in storage, two-decimal strings on the wire."""

from decimal import Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")

MoneyInput = Union[str, int, Decimal]


class MoneyFormatError(ValueError):
    pass


def to_cents(value: MoneyInput) -> int:
    """Convert a decimal amount ("500.00", Decimal, int units) to integer cents.

    Amounts with more than two fractional digits are rejected rather than
    rounded, so no caller can lose a fraction of a cent silently.
    """
    if isinstance(value, (bool, float)):
        raise MoneyFormatError("Amounts must be decimal strings, not floats")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise MoneyFormatError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise MoneyFormatError(f"Invalid amount: {value!r}")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise MoneyFormatError(f"Amount out of range: {value!r}") from None
    if amount != quantized:
        raise MoneyFormatError(f"Amount has more than two decimals: {value!r}")
    return int(amount * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def format_cents(cents: int) -> str:
    """Integer cents to "1234.50"."""
    return str(from_cents(cents))
