"""Currency arithmetic helpers.

All budget arithmetic is done in integer cents. Amounts enter as ``Decimal``,
``int`` or ``str`` (floats are accepted but go through ``str()`` first, so
``33.33`` becomes exactly 3333 cents) and leave as two-place ``Decimal``.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")

Amount = Decimal | int | float | str


def to_decimal(amount: Amount) -> Decimal:
    """Convert an amount to a two-place Decimal, rounding half-up.

    Raises:
        ValueError: If the amount is not a finite number.
    """
    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a valid currency amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Not a valid currency amount: {amount!r}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Amount) -> int:
    """Convert an amount to integer cents."""
    return int(to_decimal(amount) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a two-place Decimal."""
    return Decimal(cents).scaleb(-2).quantize(CENT)


def format_currency(amount: Amount, symbol: str = "$") -> str:
    """Render an amount as a currency string, e.g. ``$1,234.56`` or ``-$10.00``."""
    value = to_decimal(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
