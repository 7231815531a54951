"""ROI computation and stable priority ordering."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from readiness_orchestrator.domain.models import DiagnosticItem, Severity
from readiness_orchestrator.engine.ranking import ROIRanker, compute_roi

_items = st.lists(
    st.tuples(st.sampled_from(list(Severity)), st.integers(min_value=0, max_value=240)),
    max_size=25,
)


def _item(index: int, severity: Severity, minutes: int) -> DiagnosticItem:
    return DiagnosticItem(
        id=f"diag-{index:04d}",
        area="Tests",
        severity=severity,
        symptom=f"item {index}",
        likely_cause="",
        suggested_fix="",
        estimated_minutes=minutes,
        phase=6,
        rule=f"rule_{index}",
    )


@pytest.mark.parametrize(
    ("severity", "minutes", "expected"),
    [
        (Severity.CRITICAL, 8, 45.0),
        (Severity.CRITICAL, 12, 30.0),
        (Severity.MEDIUM, 5, 24.0),
        (Severity.LOW, 10, 12.0),
        (Severity.HIGH, 45, 5.3),
        (Severity.INFO, 0, 24.0),
        (Severity.HIGH, 7, 34.3),
        (Severity.MEDIUM, 16, 7.5),
    ],
)
def test_compute_roi(severity: Severity, minutes: int, expected: float) -> None:
    assert compute_roi(severity, minutes) == expected


@settings(max_examples=80, deadline=None)
@given(raw=_items)
def test_priorities_form_a_permutation_and_roi_never_increases(
    raw: list[tuple[Severity, int]],
) -> None:
    items = [_item(index, severity, minutes) for index, (severity, minutes) in enumerate(raw)]

    ranked = ROIRanker().rank(items)

    assert [item.priority for item in ranked] == list(range(1, len(items) + 1))
    rois = [item.roi for item in ranked]
    assert all(left >= right for left, right in zip(rois, rois[1:], strict=False))
    assert sorted(item.id for item in ranked) == sorted(item.id for item in items)

    # Equal ROI keeps input order.
    for left, right in zip(ranked, ranked[1:], strict=False):
        if left.roi == right.roi:
            assert left.id < right.id


def test_rank_of_nothing_is_empty() -> None:
    assert ROIRanker().rank([]) == ()


def test_ranked_items_carry_original_fields() -> None:
    (ranked,) = ROIRanker().rank([_item(1, Severity.HIGH, 30)])

    assert ranked.rule == "rule_1"
    assert ranked.estimated_minutes == 30
    assert ranked.roi == 8.0
    assert ranked.priority == 1
