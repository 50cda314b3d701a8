"""Proportional split of a day budget across ordered weighted items."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

Number = int | float | Decimal

PERCENT_BASIS = Decimal("100")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def allocate_days(weights: Sequence[Number], total_days: int, basis: Number | None = None) -> list[int]:
    """Split ``total_days`` by weight; the last item absorbs the rounding remainder.

    ``basis`` is the denominator applied to each weight (100 for phase
    percentages). When omitted the sum of the weights is used. Every item
    gets at least one day.
    """

    if not weights:
        return []

    values = [to_decimal(weight) for weight in weights]
    denominator = to_decimal(basis) if basis is not None else sum(values, Decimal("0"))
    total = Decimal(total_days)

    allocations: list[int] = []
    allocated = 0
    for value in values[:-1]:
        if denominator > 0:
            days = max(1, round_half_up(total * value / denominator))
        else:
            days = 1
        allocations.append(days)
        allocated += days

    allocations.append(max(1, total_days - allocated))
    return allocations
