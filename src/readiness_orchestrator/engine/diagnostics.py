"""
Diagnostics engine: a fixed, ordered rule list evaluated against a project record.

Each satisfied rule emits exactly one `DiagnosticItem`, except the per-failing-case rule
which emits one item per failing virtual test (capped). Rules are not mutually
exclusive. When nothing fires a single informational `all_clear` item is emitted so
consumers always have something to render.

Canonical emission order is severity rank, then phase ascending (stable). Callers see
the ROI order produced by `ROIRanker` through `DiagnosticsEngine.report`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from readiness_orchestrator.constants import (
    AGENT_BUILD_TYPES,
    MAX_FAILING_CASE_DIAGNOSTICS,
    SCAN_THIN_THRESHOLD,
)
from readiness_orchestrator.domain.documents import ArchitectureFacts, IntentFacts
from readiness_orchestrator.domain.ids import DIAGNOSTIC_ID_PREFIX, UlidIdGenerator
from readiness_orchestrator.domain.models import (
    ALL_CLEAR_RULE,
    DiagnosticItem,
    DiagnosticsReport,
    Severity,
    TestStatus,
    utc_now,
)
from readiness_orchestrator.engine.ranking import ROIRanker

if TYPE_CHECKING:
    from readiness_orchestrator.domain.ids import IdGenerator
    from readiness_orchestrator.domain.models import Clock, ProjectRecord, TestCase

PHASE_INTENT: Final[int] = 1
PHASE_ARCHITECTURE: Final[int] = 2
PHASE_TESTS: Final[int] = 6
PHASE_SCAN: Final[int] = 7
PHASE_DOCS: Final[int] = 9
PHASE_NEXT: Final[int] = 10

TESTS_FAILING_HIGH_AT: Final[int] = 3

_INTENT_TITLE_KEYWORDS: Final[tuple[str, ...]] = ("flow", "acceptance", "outcome")
_ARCHITECTURE_TITLE_KEYWORDS: Final[tuple[str, ...]] = ("screen", "entity", "data model", "api")


@dataclass(frozen=True, slots=True)
class _Finding:
    rule: str
    area: str
    severity: Severity
    symptom: str
    likely_cause: str
    suggested_fix: str
    minutes: int
    phase: int


def phase_for_case_title(title: str) -> int:
    lowered = title.lower()
    if any(keyword in lowered for keyword in _INTENT_TITLE_KEYWORDS):
        return PHASE_INTENT
    if any(keyword in lowered for keyword in _ARCHITECTURE_TITLE_KEYWORDS):
        return PHASE_ARCHITECTURE
    return PHASE_TESTS


def _intent_findings(project: ProjectRecord) -> list[_Finding]:
    if project.intent is None:
        return [
            _Finding(
                rule="intent_missing",
                area="Intent",
                severity=Severity.CRITICAL,
                symptom="Intent document missing",
                likely_cause="Phase 1 not completed.",
                suggested_fix="Complete the intent lenses and save.",
                minutes=8,
                phase=PHASE_INTENT,
            )
        ]

    facts = IntentFacts.of(project.intent)
    findings: list[_Finding] = []
    if not facts.has_problem:
        findings.append(
            _Finding(
                rule="intent_problem",
                area="Intent",
                severity=Severity.HIGH,
                symptom="Problem statement missing",
                likely_cause="Founder lens was left incomplete.",
                suggested_fix="Write a short problem statement in the founder lens.",
                minutes=10,
                phase=PHASE_INTENT,
            )
        )
    if len(facts.core_flows) < 2:
        findings.append(
            _Finding(
                rule="intent_flows",
                area="Intent",
                severity=Severity.MEDIUM,
                symptom=f"Only {len(facts.core_flows)} core flow(s) declared",
                likely_cause="Core flows were not enumerated.",
                suggested_fix="Add at least two end-to-end core flows.",
                minutes=15,
                phase=PHASE_INTENT,
            )
        )
    if len(facts.acceptance_tests) < 3:
        findings.append(
            _Finding(
                rule="intent_acceptance",
                area="Intent",
                severity=Severity.HIGH,
                symptom=f"Only {len(facts.acceptance_tests)} acceptance test(s) declared",
                likely_cause="QA lens acceptance tests are thin.",
                suggested_fix="Write three to ten concrete acceptance tests.",
                minutes=15,
                phase=PHASE_INTENT,
            )
        )
    if project.build_kind in AGENT_BUILD_TYPES and facts.agents == 0:
        findings.append(
            _Finding(
                rule="intent_agents",
                area="Intent",
                severity=Severity.HIGH,
                symptom=f"{project.build_kind.title()} build declares no agents",
                likely_cause="Agent lens was left empty.",
                suggested_fix="Define at least one agent with a mission and handoffs.",
                minutes=20,
                phase=PHASE_INTENT,
            )
        )
    return findings


def _architecture_findings(project: ProjectRecord) -> list[_Finding]:
    if project.architecture is None:
        return [
            _Finding(
                rule="architecture_missing",
                area="Architecture",
                severity=Severity.CRITICAL,
                symptom="Architecture document missing",
                likely_cause="Phase 2 not completed.",
                suggested_fix="Define entities and infra and save.",
                minutes=12,
                phase=PHASE_ARCHITECTURE,
            )
        ]

    facts = ArchitectureFacts.of(project.architecture)
    findings: list[_Finding] = []
    if not facts.has_auth:
        findings.append(
            _Finding(
                rule="architecture_auth",
                area="Architecture",
                severity=Severity.CRITICAL,
                symptom="No auth provider selected",
                likely_cause="Infra auth provider is missing or set to none.",
                suggested_fix="Pick an auth provider and scope reads per user.",
                minutes=20,
                phase=PHASE_ARCHITECTURE,
            )
        )
    if facts.entities == 0:
        findings.append(
            _Finding(
                rule="architecture_entities",
                area="Architecture",
                severity=Severity.HIGH,
                symptom="No entities defined",
                likely_cause="Data model was not mapped.",
                suggested_fix="Add a user entity and at least one domain entity.",
                minutes=25,
                phase=PHASE_ARCHITECTURE,
            )
        )
    if facts.screens == 0:
        findings.append(
            _Finding(
                rule="architecture_screens",
                area="Architecture",
                severity=Severity.HIGH,
                symptom="No screens defined",
                likely_cause="UI surface was not mapped.",
                suggested_fix="Add the screens the core flows pass through.",
                minutes=20,
                phase=PHASE_ARCHITECTURE,
            )
        )
    return findings


def _test_findings(project: ProjectRecord) -> list[_Finding]:
    plan = project.test_plan
    if plan is None:
        return [
            _Finding(
                rule="tests_missing",
                area="Tests",
                severity=Severity.MEDIUM,
                symptom="No test plan",
                likely_cause="Virtual test engine not run.",
                suggested_fix="Run the virtual test engine.",
                minutes=5,
                phase=PHASE_TESTS,
            )
        ]

    failing: list[TestCase] = [
        case for case in plan.cases if case.status is TestStatus.VIRTUAL_FAIL
    ]
    if not failing:
        return []

    findings = [
        _Finding(
            rule="tests_failing",
            area="Tests",
            severity=Severity.HIGH if len(failing) >= TESTS_FAILING_HIGH_AT else Severity.MEDIUM,
            symptom=f"{len(failing)} virtual test(s) failing out of {len(plan.cases)}",
            likely_cause="Prerequisite artifacts are missing or inconsistent.",
            suggested_fix="Open the failing cases and fill the artifacts they depend on.",
            minutes=30,
            phase=PHASE_TESTS,
        )
    ]
    for case in failing[:MAX_FAILING_CASE_DIAGNOSTICS]:
        findings.append(
            _Finding(
                rule="test_case_failing",
                area="Tests",
                severity=Severity.HIGH,
                symptom=f"Virtual test failing: {case.title}",
                likely_cause="Prerequisite artifact missing or inconsistent.",
                suggested_fix=case.notes or "Follow the note on the failing test.",
                minutes=10,
                phase=phase_for_case_title(case.title),
            )
        )
    return findings


def _scan_findings(project: ProjectRecord) -> list[_Finding]:
    report = project.scan_report
    if report is None:
        return [
            _Finding(
                rule="scan_missing",
                area="Scan",
                severity=Severity.MEDIUM,
                symptom="No scan report",
                likely_cause="Scan not run.",
                suggested_fix="Run a scan.",
                minutes=5,
                phase=PHASE_SCAN,
            )
        ]

    findings: list[_Finding] = []
    if report.score < SCAN_THIN_THRESHOLD:
        findings.append(
            _Finding(
                rule="scan_thin",
                area="Scan",
                severity=Severity.MEDIUM,
                symptom=f"Scan score {report.score} is below {SCAN_THIN_THRESHOLD}",
                likely_cause="Quality scan found thin coverage across areas.",
                suggested_fix="Turn the top scan recommendation into a concrete change.",
                minutes=30,
                phase=PHASE_SCAN,
            )
        )
    critical = report.count(Severity.CRITICAL)
    high = report.count(Severity.HIGH)
    if critical or high:
        findings.append(
            _Finding(
                rule="scan_issues",
                area="Scan",
                severity=Severity.CRITICAL if critical else Severity.HIGH,
                symptom=f"{critical} critical and {high} high scan issue(s)",
                likely_cause="Scan flagged structural or security risks.",
                suggested_fix="Resolve critical issues first, then high, and rescan.",
                minutes=45,
                phase=PHASE_SCAN,
            )
        )
    return findings


def _docs_findings(project: ProjectRecord) -> list[_Finding]:
    if project.docs_pack is not None:
        return []
    return [
        _Finding(
            rule="docs_missing",
            area="Docs",
            severity=Severity.LOW,
            symptom="Docs pack not generated",
            likely_cause="Docs phase not run.",
            suggested_fix="Generate the docs pack.",
            minutes=10,
            phase=PHASE_DOCS,
        )
    ]


_ALL_CLEAR: Final[_Finding] = _Finding(
    rule=ALL_CLEAR_RULE,
    area="System",
    severity=Severity.INFO,
    symptom="No obvious structural risks detected.",
    likely_cause="Core artifacts present.",
    suggested_fix="Ship to a small cohort and convert incidents into tests.",
    minutes=5,
    phase=PHASE_NEXT,
)

RULE_GROUPS: Final = (
    _intent_findings,
    _architecture_findings,
    _test_findings,
    _scan_findings,
    _docs_findings,
)


class DiagnosticsEngine:
    """Evaluate the rule list and produce ranked diagnostics reports."""

    def __init__(
        self,
        *,
        ids: IdGenerator | None = None,
        clock: Clock | None = None,
        ranker: ROIRanker | None = None,
        logger: Any | None = None,
    ) -> None:
        self._ids = ids if ids is not None else UlidIdGenerator()
        self._clock = clock if clock is not None else utc_now
        self._ranker = ranker if ranker is not None else ROIRanker()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def evaluate(self, project: ProjectRecord) -> tuple[DiagnosticItem, ...]:
        findings = [finding for group in RULE_GROUPS for finding in group(project)]
        if not findings:
            findings = [_ALL_CLEAR]
        findings.sort(key=lambda finding: (finding.severity.rank, finding.phase))
        return tuple(
            DiagnosticItem(
                id=self._ids.new_id(DIAGNOSTIC_ID_PREFIX),
                area=finding.area,
                severity=finding.severity,
                symptom=finding.symptom,
                likely_cause=finding.likely_cause,
                suggested_fix=finding.suggested_fix,
                estimated_minutes=finding.minutes,
                phase=finding.phase,
                rule=finding.rule,
            )
            for finding in findings
        )

    def report(self, project: ProjectRecord) -> DiagnosticsReport:
        ranked = self._ranker.rank(self.evaluate(project))
        report = DiagnosticsReport(
            summary=f"Diagnostics ranked {len(ranked)} fix(es) by ROI (severity / time).",
            items=ranked,
            generated_at=self._clock(),
        )
        top = report.top
        self._logger.info(
            "diagnostics_evaluated",
            project_id=project.id,
            items=len(ranked),
            top_rule=None if top is None else top.rule,
        )
        return report


__all__ = [
    "DiagnosticsEngine",
    "PHASE_ARCHITECTURE",
    "PHASE_DOCS",
    "PHASE_INTENT",
    "PHASE_NEXT",
    "PHASE_SCAN",
    "PHASE_TESTS",
    "phase_for_case_title",
]
