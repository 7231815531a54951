"""Decimal half-up rounding shared by scoring and ranking."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, digits: int = 0) -> float:
    """Round ``value`` half away from zero at ``digits`` decimal places.

    The float is converted through ``repr`` so that ``0.5`` and ``22.5`` round up the
    way a reader expects, rather than following banker's rounding.
    """

    if digits < 0:
        raise ValueError("digits must be >= 0")
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_half_up_int(value: float) -> int:
    return int(round_half_up(value, 0))


def clamp_score(value: float) -> int:
    """Round half-up and clamp into the closed range ``[0, 100]``."""
    return max(0, min(100, round_half_up_int(value)))


__all__ = ["clamp_score", "round_half_up", "round_half_up_int"]
