"""Pure readiness engine: scoring, virtual tests, diagnostics, ranking and patch planning."""

from readiness_orchestrator.engine.diagnostics import DiagnosticsEngine
from readiness_orchestrator.engine.patch_planner import PatchPlan, PatchPlanner
from readiness_orchestrator.engine.ranking import ROIRanker, compute_roi
from readiness_orchestrator.engine.scoring import ReadinessScore, ScoreCalculator
from readiness_orchestrator.engine.skeletons import SkeletonRenderer, SkeletonTemplateError
from readiness_orchestrator.engine.virtual_tests import VirtualTestEngine, summarize_plan

__all__ = [
    "DiagnosticsEngine",
    "PatchPlan",
    "PatchPlanner",
    "ROIRanker",
    "ReadinessScore",
    "ScoreCalculator",
    "SkeletonRenderer",
    "SkeletonTemplateError",
    "VirtualTestEngine",
    "compute_roi",
    "summarize_plan",
]
