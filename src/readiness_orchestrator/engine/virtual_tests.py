"""
Virtual test engine: catalogue generation and deterministic structural grading.

A virtual test never executes generated software. It is an early completeness signal:
each case is graded by matching its own title against what the architecture document
declares, so grading the same plan against the same architecture always yields the
same statuses.

It integrates with:
- `IdGenerator` for case ids (never ambient randomness)
- an injected clock for `lastRunAt`
- `ScoreCalculator` and `DiagnosticsEngine`, which read the graded plan
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any, Final

import structlog

from readiness_orchestrator.constants import MAX_ACCEPTANCE_CASES, MAX_FLOW_CASES
from readiness_orchestrator.domain.documents import ArchitectureFacts, IntentFacts
from readiness_orchestrator.domain.ids import TEST_CASE_ID_PREFIX, UlidIdGenerator
from readiness_orchestrator.domain.models import (
    TestArea,
    TestCase,
    TestPlan,
    TestRisk,
    TestStatus,
    TestSummary,
    utc_now,
)
from readiness_orchestrator.utils.rounding import round_half_up_int

if TYPE_CHECKING:
    from datetime import datetime

    from readiness_orchestrator.domain.ids import IdGenerator
    from readiness_orchestrator.domain.models import Clock, Document, ProjectRecord

PLAN_SUMMARY: Final[str] = (
    "Virtual test plan: early reliability signal and gap detection before a real test runner."
)
BASE_COVERAGE_AREAS: Final[tuple[str, ...]] = (
    "primary_flows",
    "screens",
    "auth",
    "data_model",
    "apis",
    "infra",
    "performance",
)
AGENT_COVERAGE_AREA: Final[str] = "agents"

NOTE_NO_ARCHITECTURE: Final[str] = (
    "No architecture document available. Generate and save the architecture first."
)
NOTE_UNVERIFIABLE: Final[str] = (
    "High-risk failure path needs real auth/validation wiring to confirm."
)
NOTE_PASS: Final[str] = "Virtual pass."


def summarize_plan(plan: TestPlan) -> TestSummary:
    """Count statuses; ``score = round(100 * (pass + 0.5 * notRun) / total)``."""

    total = len(plan.cases)
    passed = sum(1 for case in plan.cases if case.status is TestStatus.VIRTUAL_PASS)
    failed = sum(1 for case in plan.cases if case.status is TestStatus.VIRTUAL_FAIL)
    not_run = sum(1 for case in plan.cases if case.status is TestStatus.NOT_RUN)
    score = 0 if total == 0 else round_half_up_int(100 * (passed + 0.5 * not_run) / total)
    return TestSummary(total=total, passed=passed, failed=failed, not_run=not_run, score=score)


def grade_case(case: TestCase, facts: ArchitectureFacts) -> tuple[TestStatus, str]:
    """Grade one case; rules are evaluated in order and the first match wins."""

    if not facts.present:
        return TestStatus.VIRTUAL_FAIL, NOTE_NO_ARCHITECTURE

    title = case.title.lower()
    if "screen" in title:
        if facts.screens > 0:
            return TestStatus.VIRTUAL_PASS, "Screens exist; virtual pass."
        return TestStatus.VIRTUAL_FAIL, "No screens defined."
    if "entity" in title or "data model" in title:
        if facts.entities > 0:
            return TestStatus.VIRTUAL_PASS, "Entities exist; virtual pass."
        return TestStatus.VIRTUAL_FAIL, "No entities defined."
    if "api" in title:
        if facts.apis > 0:
            return TestStatus.VIRTUAL_PASS, "APIs exist; virtual pass."
        return TestStatus.VIRTUAL_FAIL, "No APIs defined."
    if case.area is TestArea.FAILURE and case.risk is TestRisk.HIGH:
        return TestStatus.VIRTUAL_FAIL, NOTE_UNVERIFIABLE
    return TestStatus.VIRTUAL_PASS, NOTE_PASS


class VirtualTestEngine:
    """Generate, grade and summarize virtual test plans."""

    def __init__(
        self,
        *,
        ids: IdGenerator | None = None,
        clock: Clock | None = None,
        logger: Any | None = None,
    ) -> None:
        self._ids = ids if ids is not None else UlidIdGenerator()
        self._clock = clock if clock is not None else utc_now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def generate(self, project: ProjectRecord) -> TestPlan:
        intent = IntentFacts.of(project.intent)
        arch = ArchitectureFacts.of(project.architecture)
        cases: list[TestCase] = []

        def add(title: str, description: str, area: TestArea, risk: TestRisk) -> None:
            cases.append(
                TestCase(
                    id=self._ids.new_id(TEST_CASE_ID_PREFIX),
                    title=title,
                    description=description,
                    area=area,
                    risk=risk,
                )
            )

        if intent.has_problem:
            add(
                "Core outcome is achievable",
                "Verify the product can deliver the core outcome described in the founder "
                "lens with no missing dependencies.",
                TestArea.HAPPY_PATH,
                TestRisk.HIGH,
            )

        for index, flow in enumerate(intent.core_flows[:MAX_FLOW_CASES]):
            add(
                f"Primary flow works: {flow}",
                "Walk through this flow end-to-end (UI, validation, persistence, result). "
                "Confirm no dead ends.",
                TestArea.HAPPY_PATH,
                TestRisk.HIGH if index == 0 else TestRisk.MEDIUM,
            )

        for statement in intent.acceptance_tests[:MAX_ACCEPTANCE_CASES]:
            add(
                f"Acceptance: {statement}",
                "From the QA lens. Behavior must match exactly and not regress after a refine.",
                TestArea.HAPPY_PATH,
                TestRisk.MEDIUM,
            )

        add(
            "Screens render without runtime errors",
            "Open each defined screen; ensure no crashes, missing assumptions or blocking "
            "exceptions.",
            TestArea.HAPPY_PATH,
            TestRisk.HIGH,
        )
        if arch.screens == 0:
            add(
                "At least one screen is defined",
                "Architecture map has no screens. Add screens so tests can bind to UI flows.",
                TestArea.FAILURE,
                TestRisk.HIGH,
            )

        if arch.entities == 0:
            add(
                "Core data model exists",
                "No entities defined. Add at least a user and one domain entity to enable "
                "persistence and flows.",
                TestArea.FAILURE,
                TestRisk.HIGH,
            )
        else:
            add(
                "Entity validation rules work",
                "Attempt create/update with missing required fields; confirm validation "
                "blocks invalid writes.",
                TestArea.EDGE_CASE,
                TestRisk.MEDIUM,
            )

        add(
            "Auth blocks unauthorized access",
            "Protected pages and APIs reject unauthenticated users; tenant-scoped reads "
            "prevent cross-user access.",
            TestArea.FAILURE,
            TestRisk.HIGH,
        )

        if arch.apis == 0:
            add(
                "APIs exist for core flows (or explicitly UI-only)",
                "No APIs defined in the architecture map. Add endpoints for primary flows "
                "or mark the build as UI-only.",
                TestArea.FAILURE,
                TestRisk.HIGH,
            )
        else:
            add(
                "API happy path returns 2xx",
                "Call each API with a valid payload; confirm 2xx responses and state "
                "transitions.",
                TestArea.HAPPY_PATH,
                TestRisk.HIGH,
            )
            add(
                "API rejects invalid payloads (4xx)",
                "Call each API with invalid payloads; confirm safe 4xx messages and no "
                "leaked stack traces.",
                TestArea.FAILURE,
                TestRisk.HIGH,
            )

        add(
            "Infra selection is coherent",
            "Database, hosting and auth selections are consistent and realistic for "
            "production.",
            TestArea.EDGE_CASE,
            TestRisk.MEDIUM,
        )
        if arch.billing_provider:
            add(
                "Billing webhooks are safe",
                "Verify signature validation, idempotency and replay protection for billing "
                "webhooks.",
                TestArea.FAILURE,
                TestRisk.HIGH,
            )
        add(
            "Baseline performance smoke",
            "Key screens load fast enough; API latency stays stable under light usage.",
            TestArea.PERFORMANCE,
            TestRisk.MEDIUM,
        )
        if intent.agents > 0:
            add(
                "Agent escalation and limits are safe",
                "Agents must respect escalation rules and risk limits and stay inside "
                "their allowed scope.",
                TestArea.FAILURE,
                TestRisk.HIGH,
            )

        coverage = BASE_COVERAGE_AREAS + ((AGENT_COVERAGE_AREA,) if intent.agents > 0 else ())
        return TestPlan(summary=PLAN_SUMMARY, coverage_areas=coverage, cases=tuple(cases))

    def grade(self, plan: TestPlan, architecture: Document | None) -> TestPlan:
        """Grade every ``not_run`` case; cases that already ran keep their result."""

        facts = ArchitectureFacts.of(architecture)
        run_at: datetime = self._clock()
        graded: list[TestCase] = []
        for case in plan.cases:
            if case.has_run:
                graded.append(case)
                continue
            status, notes = grade_case(case, facts)
            graded.append(case.graded(status, notes=notes, run_at=run_at))
        return replace(plan, cases=tuple(graded))

    def summarize(self, plan: TestPlan) -> TestSummary:
        return summarize_plan(plan)

    def run(self, project: ProjectRecord) -> TestPlan:
        """Generate a fresh catalogue for ``project`` and grade it."""

        plan = self.grade(self.generate(project), project.architecture)
        summary = summarize_plan(plan)
        self._logger.info(
            "virtual_tests_graded",
            project_id=project.id,
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            score=summary.score,
        )
        return plan


__all__ = [
    "BASE_COVERAGE_AREAS",
    "NOTE_NO_ARCHITECTURE",
    "PLAN_SUMMARY",
    "VirtualTestEngine",
    "grade_case",
    "summarize_plan",
]
