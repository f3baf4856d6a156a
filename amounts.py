from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # go through repr so 0.1 stays 0.1 instead of its binary expansion
        value = repr(value)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc


def round_half_up(value: Decimal, places: Decimal = CENT) -> Decimal:
    return value.quantize(places, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    amount = to_decimal(value)
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    return int(round_half_up(amount * 100, Decimal("1")))


def from_cents(cents: int) -> Decimal:
    return round_half_up(Decimal(int(cents or 0)) / 100)


def percentage_of(part_cents: int, whole_cents: int) -> Decimal:
    """part * 100 / whole, two places, half-up; zero when whole is zero."""
    if not whole_cents:
        return Decimal("0.00")
    return round_half_up(Decimal(part_cents) * 100 / Decimal(whole_cents))


def format_percent(value: Decimal) -> str:
    return str(round_half_up(value, Decimal("1")))
