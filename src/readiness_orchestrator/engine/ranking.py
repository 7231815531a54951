"""ROI ranking: severity-to-effort ratio and a stable priority order."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from readiness_orchestrator.constants import ROI_MIN_MINUTES, ROI_TIME_SCALE_MINUTES
from readiness_orchestrator.domain.models import RankedDiagnosticItem, Severity
from readiness_orchestrator.utils.rounding import round_half_up

if TYPE_CHECKING:
    from collections.abc import Iterable

    from readiness_orchestrator.domain.models import DiagnosticItem

SEVERITY_WEIGHTS: Final[dict[Severity, int]] = {
    Severity.CRITICAL: 3,
    Severity.HIGH: 2,
    Severity.MEDIUM: 1,
    Severity.LOW: 1,
    Severity.INFO: 1,
}


def severity_weight(severity: Severity) -> int:
    return SEVERITY_WEIGHTS[severity]


def compute_roi(severity: Severity, estimated_minutes: int) -> float:
    """``round(weight * 120 / max(5, minutes), 1)`` with half-up rounding."""

    minutes = max(ROI_MIN_MINUTES, estimated_minutes)
    return round_half_up(severity_weight(severity) * ROI_TIME_SCALE_MINUTES / minutes, 1)


class ROIRanker:
    """Rank diagnostics by ROI descending; ties keep emission order."""

    def rank(self, items: Iterable[DiagnosticItem]) -> tuple[RankedDiagnosticItem, ...]:
        scored = [(compute_roi(item.severity, item.estimated_minutes), item) for item in items]
        # sorted() is stable, so equal ROI keeps the engine's severity/phase order.
        ordered = sorted(scored, key=lambda pair: pair[0], reverse=True)
        return tuple(
            RankedDiagnosticItem.from_item(item, roi=roi, priority=index)
            for index, (roi, item) in enumerate(ordered, start=1)
        )


__all__ = ["ROIRanker", "SEVERITY_WEIGHTS", "compute_roi", "severity_weight"]
