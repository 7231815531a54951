"""
Readiness scoring across the four pillars.

Each pillar starts at 100 and loses a fixed deduction for every missing or thin
attribute. The calculator is pure: it never mutates the record and has no clock,
randomness or I/O, so identical records always produce identical scores.

It integrates with:
- `IntentFacts` / `ArchitectureFacts` for lenient document reads
- `VirtualTestEngine.summarize` for the tests pillar
- `ReadinessService.score` and the `score` CLI command
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from readiness_orchestrator.constants import (
    AMBER_THRESHOLD,
    GREEN_THRESHOLD,
    MAX_NEXT_ACTIONS,
    PILLAR_WEIGHTS,
)
from readiness_orchestrator.domain.documents import ArchitectureFacts, IntentFacts
from readiness_orchestrator.domain.models import Badge, CanonicalModel, TestSummary
from readiness_orchestrator.engine.virtual_tests import summarize_plan
from readiness_orchestrator.utils.rounding import clamp_score

if TYPE_CHECKING:
    from readiness_orchestrator.domain.models import ProjectRecord

# Intent pillar deductions.
INTENT_PROBLEM_MISSING: Final[int] = 20
INTENT_USERS_MISSING: Final[int] = 10
INTENT_FLOWS_MISSING: Final[int] = 15
INTENT_FLOWS_THIN: Final[int] = 6
INTENT_ACCEPTANCE_MISSING: Final[int] = 20
INTENT_ACCEPTANCE_THIN: Final[int] = 8
INTENT_WHAT_YOU_GET_MISSING: Final[int] = 8
INTENT_ROI_NARRATIVE_MISSING: Final[int] = 5
INTENT_AGENTS_MISSING: Final[int] = 12

ACCEPTANCE_THIN_BELOW: Final[int] = 3
FLOWS_THIN_BELOW: Final[int] = 2

# Architecture pillar deductions.
ARCH_SCREENS_MISSING: Final[int] = 25
ARCH_ENTITIES_MISSING: Final[int] = 20
ARCH_APIS_MISSING: Final[int] = 10
ARCH_AUTH_MISSING: Final[int] = 15
ARCH_DATABASE_MISSING: Final[int] = 10
ARCH_HOSTING_MISSING: Final[int] = 8

ACTION_GENERATE_ARCHITECTURE: Final[str] = "Generate Architecture Map"
ACTION_FILL_INTENT: Final[str] = "Fill intent gaps"
ACTION_FIX_ARCHITECTURE: Final[str] = "Fix architecture gaps"
ACTION_RUN_TESTS: Final[str] = "Run the virtual test engine"
ACTION_RUN_SCAN: Final[str] = "Run a scan"
ACTION_RESOLVE_TESTS: Final[str] = "Resolve failing virtual tests"
ACTION_ADDRESS_SCAN: Final[str] = "Address scan issues"


@dataclass(frozen=True, slots=True)
class PillarScore(CanonicalModel):
    """One scored readiness dimension and the labels of what it is missing."""

    score: int
    missing: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ArchitectureCounts(CanonicalModel):
    screens: int
    entities: int
    apis: int


@dataclass(frozen=True, slots=True)
class ReadinessScore(CanonicalModel):
    project_id: str
    intent: PillarScore
    architecture: PillarScore
    tests: PillarScore
    scan: PillarScore
    counts: ArchitectureCounts
    test_summary: TestSummary
    scan_issues: int
    overall: int
    badge: Badge
    next_actions: tuple[str, ...]

    def pillars(self) -> dict[str, int]:
        return {
            "intent": self.intent.score,
            "architecture": self.architecture.score,
            "tests": self.tests.score,
            "scan": self.scan.score,
        }


def badge_for(score: int) -> Badge:
    if score >= GREEN_THRESHOLD:
        return Badge.GREEN
    if score >= AMBER_THRESHOLD:
        return Badge.AMBER
    return Badge.RED


class ScoreCalculator:
    """Compute pillar scores, the weighted overall score and next best actions."""

    def score(self, project: ProjectRecord) -> ReadinessScore:
        intent_facts = IntentFacts.of(project.intent)
        arch_facts = ArchitectureFacts.of(project.architecture)

        intent = self.intent_pillar(project, intent_facts)
        architecture = self.architecture_pillar(arch_facts)

        if project.test_plan is None:
            summary = TestSummary(total=0, passed=0, failed=0, not_run=0, score=0)
            tests = PillarScore(score=0, missing=("No test plan",))
        else:
            summary = summarize_plan(project.test_plan)
            tests_missing = (
                (f"{summary.failed} failing virtual tests",) if summary.failed > 0 else ()
            )
            tests = PillarScore(score=summary.score, missing=tests_missing)

        if project.scan_report is None:
            scan = PillarScore(score=0, missing=("No scan report",))
            scan_issues = 0
        else:
            scan = PillarScore(score=clamp_score(project.scan_report.score))
            scan_issues = len(project.scan_report.issues)

        overall = clamp_score(
            intent.score * PILLAR_WEIGHTS["intent"]
            + architecture.score * PILLAR_WEIGHTS["architecture"]
            + tests.score * PILLAR_WEIGHTS["tests"]
            + scan.score * PILLAR_WEIGHTS["scan"]
        )

        actions: list[str] = []
        if not arch_facts.present:
            actions.append(ACTION_GENERATE_ARCHITECTURE)
        if intent.missing:
            actions.append(ACTION_FILL_INTENT)
        if architecture.missing:
            actions.append(ACTION_FIX_ARCHITECTURE)
        if project.test_plan is None:
            actions.append(ACTION_RUN_TESTS)
        if project.scan_report is None:
            actions.append(ACTION_RUN_SCAN)
        if summary.failed > 0:
            actions.append(ACTION_RESOLVE_TESTS)
        if scan_issues > 0:
            actions.append(ACTION_ADDRESS_SCAN)

        return ReadinessScore(
            project_id=project.id,
            intent=intent,
            architecture=architecture,
            tests=tests,
            scan=scan,
            counts=ArchitectureCounts(
                screens=arch_facts.screens,
                entities=arch_facts.entities,
                apis=arch_facts.apis,
            ),
            test_summary=summary,
            scan_issues=scan_issues,
            overall=overall,
            badge=badge_for(overall),
            next_actions=tuple(dict.fromkeys(actions))[:MAX_NEXT_ACTIONS],
        )

    def intent_pillar(self, project: ProjectRecord, facts: IntentFacts) -> PillarScore:
        score = 100
        missing: list[str] = []

        if not facts.has_problem:
            score -= INTENT_PROBLEM_MISSING
            missing.append("Founder lens: problem statement")
        if facts.users == 0:
            score -= INTENT_USERS_MISSING
            missing.append("Founder lens: target users")

        flows = len(facts.core_flows)
        if flows == 0:
            score -= INTENT_FLOWS_MISSING
            missing.append("Founder lens: core flows")
        elif flows < FLOWS_THIN_BELOW:
            score -= INTENT_FLOWS_THIN
            missing.append("Founder lens: add 1-2 more core flows")

        acceptance = len(facts.acceptance_tests)
        if acceptance == 0:
            score -= INTENT_ACCEPTANCE_MISSING
            missing.append("QA lens: acceptance tests (3-10)")
        elif acceptance < ACCEPTANCE_THIN_BELOW:
            score -= INTENT_ACCEPTANCE_THIN
            missing.append("QA lens: acceptance tests are thin (<3)")

        if facts.what_you_get == 0:
            score -= INTENT_WHAT_YOU_GET_MISSING
            missing.append("Client lens: what you get")
        if not facts.roi_narrative:
            score -= INTENT_ROI_NARRATIVE_MISSING
            missing.append("Client lens: ROI narrative")

        is_agent = project.build_kind == "agent" or facts.agents > 0
        if is_agent and facts.agents == 0:
            score -= INTENT_AGENTS_MISSING
            missing.append("Agent lens: define at least 1 agent")

        return PillarScore(score=clamp_score(score), missing=tuple(missing))

    def architecture_pillar(self, facts: ArchitectureFacts) -> PillarScore:
        if not facts.present:
            return PillarScore(score=0, missing=("Architecture map missing",))

        score = 100
        missing: list[str] = []
        if facts.screens == 0:
            score -= ARCH_SCREENS_MISSING
            missing.append("Architecture: screens")
        if facts.entities == 0:
            score -= ARCH_ENTITIES_MISSING
            missing.append("Architecture: entities (data model)")
        if facts.apis == 0:
            score -= ARCH_APIS_MISSING
            missing.append("Architecture: APIs (if not UI-only)")
        if not facts.has_auth:
            score -= ARCH_AUTH_MISSING
            missing.append("Infra: auth provider")
        if not facts.database:
            score -= ARCH_DATABASE_MISSING
            missing.append("Infra: database")
        if not facts.hosting:
            score -= ARCH_HOSTING_MISSING
            missing.append("Infra: hosting target")

        return PillarScore(score=clamp_score(score), missing=tuple(missing))


__all__ = [
    "ACTION_ADDRESS_SCAN",
    "ACTION_FILL_INTENT",
    "ACTION_FIX_ARCHITECTURE",
    "ACTION_GENERATE_ARCHITECTURE",
    "ACTION_RESOLVE_TESTS",
    "ACTION_RUN_SCAN",
    "ACTION_RUN_TESTS",
    "ArchitectureCounts",
    "PillarScore",
    "ReadinessScore",
    "ScoreCalculator",
    "badge_for",
]
