# backend/tabby/domain/money.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


class MoneyError(ValueError):
    """Raised when currency/money conversion or formatting fails."""


_MAX_ADJUSTED_EXPONENT = 15


@dataclass(frozen=True)
class Money:
    """
    Simple money value object using integer cents (USD by default).
    No floats anywhere.
    """
    cents: int
    currency: str = "USD"

    def __post_init__(self) -> None:
        if not isinstance(self.cents, int) or isinstance(self.cents, bool):
            raise MoneyError("Money.cents must be an int")
        if not isinstance(self.currency, str) or not self.currency.strip():
            raise MoneyError("Money.currency must be a non-empty string")

    def format(self, symbol: str = "$") -> str:
        """
        Format cents as a string like "$12.34" (or "-$0.50").
        """
        sign = "-" if self.cents < 0 else ""
        abs_cents = abs(self.cents)
        dollars = abs_cents // 100
        cents = abs_cents % 100
        return f"{sign}{symbol}{dollars}.{cents:02d}"


def to_decimal(value: object) -> Decimal:
    """
    Coerce an int/str/float/Decimal into a finite Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not the binary
    expansion. Booleans are rejected even though they are ints.
    """
    if isinstance(value, bool):
        raise MoneyError(f"invalid decimal value: {value!r}")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float, str)):
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise MoneyError(f"invalid decimal value: {value!r}") from e
    else:
        raise MoneyError(f"invalid decimal value: {value!r}")

    if not d.is_finite():
        raise MoneyError(f"decimal value must be finite: {value!r}")
    return d


def decimal_to_cents(
    value: object,
    *,
    rounding=ROUND_HALF_UP,
    allow_negative: bool = True,
    max_abs_cents: int = 10_000_000_00,  # $10,000,000.00 safety bound
) -> int:
    """
    Convert a major-unit amount to cents with explicit rounding.

    Examples:
      "12.34" -> 1234
      "12.345" -> 1235 (half-up)
      4 -> 400
    """
    d = to_decimal(value)

    # Keep quantize inside the context precision
    if d.adjusted() > _MAX_ADJUSTED_EXPONENT:
        raise MoneyError("amount exceeds safety limit")

    try:
        cents_decimal = (d * Decimal(100)).quantize(Decimal("1"), rounding=rounding)
    except InvalidOperation as e:
        raise MoneyError(f"cannot convert to cents: {value!r}") from e
    cents = int(cents_decimal)

    if cents < 0 and not allow_negative:
        raise MoneyError("negative amounts are not allowed")
    if abs(cents) > max_abs_cents:
        raise MoneyError("amount exceeds safety limit")

    return cents


def cents_to_str(cents: int, *, symbol: str = "$") -> str:
    """
    Convert integer cents to a display string like "$12.34".
    """
    if not isinstance(cents, int):
        raise MoneyError("cents must be an int")
    return Money(cents=cents).format(symbol=symbol)
