"""Numeric helpers shared by the grading, aggregation and progression modules."""

import math
from decimal import Decimal, ROUND_HALF_UP
from numbers import Number


def to_float(value) -> float:
    """Coerce a database value (int, float, Decimal or NULL) to float. NULL counts as 0."""
    if value is None:
        return 0.0
    return float(value)


def is_number(value) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def round_half_up(value: float, decimals: int = 2) -> float:
    """
    Rounds the exact binary value of `value` to `decimals` places, ties away from zero.

    Unlike the builtin round(), 0.125 -> 0.13. A float such as 0.5650000000000001
    is already above the tie and rounds to 0.57 either way. Infinities and NaN
    pass through unchanged.
    """
    if not math.isfinite(value):
        return float(value)
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_up_to_increment(weight: float, increment: float) -> float:
    return math.ceil(weight / increment) * increment


def round_down_to_increment(weight: float, increment: float) -> float:
    return math.floor(weight / increment) * increment
