"""Half-up rounding and score clamping."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from readiness_orchestrator.utils.rounding import clamp_score, round_half_up, round_half_up_int


@pytest.mark.parametrize(
    ("value", "digits", "expected"),
    [
        (0.5, 0, 1.0),
        (22.5, 0, 23.0),
        (2.675, 2, 2.68),
        (34.25, 1, 34.3),
        (-0.5, 0, -1.0),
        (7.0, 1, 7.0),
    ],
)
def test_round_half_up(value: float, digits: int, expected: float) -> None:
    assert round_half_up(value, digits) == expected


def test_round_half_up_rejects_negative_digits() -> None:
    with pytest.raises(ValueError):
        round_half_up(1.0, -1)


def test_round_half_up_int_returns_int() -> None:
    result = round_half_up_int(96.5)

    assert result == 97
    assert isinstance(result, int)


@pytest.mark.parametrize(("value", "expected"), [(-12.0, 0), (0.4, 0), (99.5, 100), (250.0, 100)])
def test_clamp_score(value: float, expected: int) -> None:
    assert clamp_score(value) == expected


@given(st.floats(min_value=-1e6, max_value=1e6, allow_nan=False))
def test_clamp_score_is_always_in_range(value: float) -> None:
    assert 0 <= clamp_score(value) <= 100
