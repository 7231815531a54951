"""
Autofix orchestration: diagnose -> patch -> test -> diagnose -> lock as one unit.

The orchestrator walks a fixed step machine over a local working copy of the project.
The step state belongs to one invocation only and is separate from the record's
long-lived `ProjectStatus`. Either every step completes and one consistent working copy
is returned with exactly one new locked fix, or an exception escapes and the caller's
record is untouched.

Before/after evidence is captured exactly twice: the "before" top diagnostic and test
score at `start`, the "after" values at `write_lock`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

import structlog

from readiness_orchestrator.domain.errors import FrozenProjectError, NoDiagnosticsError
from readiness_orchestrator.domain.lifecycle import ProjectStatus, transition
from readiness_orchestrator.domain.models import (
    ArtifactSnapshot,
    CanonicalModel,
    LockProof,
    PatchSource,
    RefinementSource,
    utc_now,
)
from readiness_orchestrator.engine.diagnostics import DiagnosticsEngine
from readiness_orchestrator.engine.patch_planner import PatchPlanner
from readiness_orchestrator.engine.virtual_tests import VirtualTestEngine, summarize_plan
from readiness_orchestrator.knowledge_plane.patch_ledger import PatchLedger

if TYPE_CHECKING:
    from readiness_orchestrator.domain.models import (
        Clock,
        DiagnosticHeadline,
        LockedFix,
        PatchEntry,
        ProjectRecord,
        RankedDiagnosticItem,
        Refinement,
    )

LOCK_RULE: Final[str] = (
    "If the top diagnostic resurfaces, rerun autofix and convert it into a permanent "
    "guardrail test."
)
AUTOFIX_PLAN_STEPS: Final[tuple[str, ...]] = (
    "patch: fill missing artifacts safely",
    "tests: run virtual tests",
    "diagnostics: re-rank issues and confirm improvement",
    "lock: write a truth ledger entry to prevent regressions",
)


class AutofixStep(StrEnum):
    START = "start"
    ENSURE_DIAGNOSTICS = "ensure_diagnostics"
    SELECT_TOP = "select_top"
    PLAN_PATCH = "plan_patch"
    APPLY_PATCH = "apply_patch"
    RUN_TESTS = "run_tests"
    RUN_DIAGNOSTICS = "run_diagnostics"
    WRITE_LOCK = "write_lock"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class AutofixResult(CanonicalModel):
    project: ProjectRecord
    refinement: Refinement
    patch: PatchEntry
    locked_fix: LockedFix
    before_top: DiagnosticHeadline | None
    after_top: DiagnosticHeadline | None
    before_test_score: int
    after_test_score: int
    steps: tuple[AutofixStep, ...]

    @property
    def improved(self) -> bool:
        """True when the top diagnostic changed or the test score went up."""
        return self.before_top != self.after_top or self.after_test_score > self.before_test_score


def autofix_prompt(top: RankedDiagnosticItem) -> str:
    return (
        "AUTOFIX TARGET:\n"
        f"Area: {top.area}\n"
        f"Symptom: {top.symptom}\n"
        f"Likely cause: {top.likely_cause}\n\n"
        "Goal:\nFix this issue with minimal edits. After the fix, rerun the virtual tests "
        "and diagnostics and confirm its priority drops.\n\n"
        f"Suggested fix:\n{top.suggested_fix}\n"
    )


class AutofixOrchestrator:
    """Run the autofix step machine against a working copy of one project."""

    def __init__(
        self,
        *,
        diagnostics: DiagnosticsEngine | None = None,
        tests: VirtualTestEngine | None = None,
        planner: PatchPlanner | None = None,
        ledger: PatchLedger | None = None,
        clock: Clock | None = None,
        logger: Any | None = None,
    ) -> None:
        self._diagnostics = diagnostics if diagnostics is not None else DiagnosticsEngine()
        self._tests = tests if tests is not None else VirtualTestEngine()
        self._planner = planner if planner is not None else PatchPlanner()
        self._ledger = ledger if ledger is not None else PatchLedger()
        self._clock = clock if clock is not None else utc_now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def run(self, project: ProjectRecord) -> AutofixResult:
        steps: list[AutofixStep] = []

        def enter(step: AutofixStep) -> None:
            steps.append(step)
            self._logger.info("autofix_step", project_id=project.id, step=step.value)

        enter(AutofixStep.START)
        if project.frozen:
            raise FrozenProjectError(project.id, project.frozen_reason)
        initial_report = self._diagnostics.report(project)
        initial_top = initial_report.top
        before_top = None if initial_top is None else initial_top.headline()
        before_test_score = (
            0 if project.test_plan is None else summarize_plan(project.test_plan).score
        )

        enter(AutofixStep.ENSURE_DIAGNOSTICS)
        working = replace(project, diagnostics=initial_report)

        enter(AutofixStep.SELECT_TOP)
        top = initial_report.top
        if top is None:
            raise NoDiagnosticsError(project.id)

        enter(AutofixStep.PLAN_PATCH)
        refinement = self._ledger.new_refinement(
            prompt=autofix_prompt(top),
            source=RefinementSource.AUTOFIX,
            steps=AUTOFIX_PLAN_STEPS,
            target=top.headline(),
        )
        patch_plan = self._planner.plan(working, refinement.prompt)

        enter(AutofixStep.APPLY_PATCH)
        before_artifacts = ArtifactSnapshot.of(working)
        working = self._planner.apply(working, patch_plan)
        working = self._ledger.add_refinement(working, refinement)
        working, patch = self._ledger.record_patch(
            working,
            before=before_artifacts,
            after=ArtifactSnapshot.of(working),
            actions=patch_plan.actions,
            source=PatchSource.AUTOFIX,
            refine_id=refinement.id,
        )
        working = replace(working, status=transition(working.status, ProjectStatus.PATCHED))

        enter(AutofixStep.RUN_TESTS)
        test_plan = self._tests.run(working)
        working = replace(
            working,
            test_plan=test_plan,
            status=transition(working.status, ProjectStatus.TESTED),
        )

        enter(AutofixStep.RUN_DIAGNOSTICS)
        final_report = self._diagnostics.report(working)
        working = replace(
            working,
            diagnostics=final_report,
            status=transition(working.status, ProjectStatus.DIAGNOSED),
        )

        enter(AutofixStep.WRITE_LOCK)
        final_top = final_report.top
        after_top = None if final_top is None else final_top.headline()
        after_test_score = summarize_plan(test_plan).score
        working, locked = self._ledger.lock_fix(
            working,
            title=f"Locked autofix for top diagnostic: {top.area}",
            proof=LockProof(
                before_top=before_top,
                after_top=after_top,
                before_test_score=before_test_score,
                after_test_score=after_test_score,
                actions=patch_plan.actions,
            ),
            rule=LOCK_RULE,
        )
        working = replace(
            working,
            status=transition(working.status, ProjectStatus.LOCKED),
            updated_at=self._clock(),
        )

        enter(AutofixStep.DONE)
        self._logger.info(
            "autofix_locked",
            project_id=project.id,
            locked_fix_id=locked.id,
            patch_id=patch.id,
            before_rule=None if before_top is None else before_top.rule,
            after_rule=None if after_top is None else after_top.rule,
            before_test_score=before_test_score,
            after_test_score=after_test_score,
        )
        return AutofixResult(
            project=working,
            refinement=refinement,
            patch=patch,
            locked_fix=locked,
            before_top=before_top,
            after_top=after_top,
            before_test_score=before_test_score,
            after_test_score=after_test_score,
            steps=tuple(steps),
        )


__all__ = [
    "AUTOFIX_PLAN_STEPS",
    "AutofixOrchestrator",
    "AutofixResult",
    "AutofixStep",
    "LOCK_RULE",
    "autofix_prompt",
]
