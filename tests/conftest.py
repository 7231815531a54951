"""Shared fixtures: deterministic ids and clock, a recording logger, and project builders."""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from readiness_orchestrator.control_plane import ReadinessService
from readiness_orchestrator.domain.ids import SequentialIdGenerator
from readiness_orchestrator.domain.models import (
    ProjectRecord,
    ScanReport,
    TestArea,
    TestCase,
    TestPlan,
    TestRisk,
    TestStatus,
)
from readiness_orchestrator.persistence import InMemoryProjectStore

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)


@dataclass(slots=True)
class RecordedEvent:
    level: str
    event: str
    fields: dict[str, Any]


@dataclass(slots=True)
class RecordingLogger:
    """Captures structlog-style ``logger.info("event", key=value)`` calls."""

    records: list[RecordedEvent] = field(default_factory=list)

    def _record(self, level: str, event: str, **fields: Any) -> None:
        self.records.append(RecordedEvent(level=level, event=event, fields=dict(fields)))

    def debug(self, event: str, **fields: Any) -> None:
        self._record("debug", event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._record("info", event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._record("warning", event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._record("error", event, **fields)

    def events(self, name: str | None = None) -> list[RecordedEvent]:
        if name is None:
            return list(self.records)
        return [record for record in self.records if record.event == name]

    def names(self) -> list[str]:
        return [record.event for record in self.records]


@dataclass(slots=True)
class SteppingClock:
    """Returns ``start`` and then advances one second per call."""

    start: datetime = FIXED_NOW
    calls: int = 0

    def __call__(self) -> datetime:
        value = self.start + timedelta(seconds=self.calls)
        self.calls += 1
        return value


COMPLETE_INTENT: dict[str, Any] = {
    "founderLens": {
        "problem": "Small clinics lose bookings to phone tag.",
        "users": ["clinic owners", "patients"],
        "coreFlows": ["Patient books a slot", "Owner confirms a booking"],
    },
    "qaLens": {
        "acceptanceTests": [
            "Booking appears on the owner dashboard",
            "Double booking is rejected",
            "Cancelled slot becomes free again",
        ]
    },
    "clientLens": {
        "whatYouGet": ["Booking page", "Owner dashboard"],
        "roiNarrative": "Fewer missed appointments pay for the tool in a month.",
    },
    "agentLens": {"agents": []},
}

COMPLETE_ARCHITECTURE: dict[str, Any] = {
    "infra": {
        "authProvider": "supabase",
        "database": "postgres",
        "hosting": "vercel",
    },
    "screens": [{"id": "booking", "name": "Booking"}],
    "entities": [{"id": "user", "name": "User"}, {"id": "slot", "name": "Slot"}],
    "apis": [{"id": "create_booking", "method": "POST", "path": "/bookings"}],
}


def all_pass_plan() -> TestPlan:
    """Hand-made plan where every case already passed."""

    cases = tuple(
        TestCase(
            id=f"tc-pass-{index}",
            title=title,
            description="graded earlier",
            area=TestArea.HAPPY_PATH,
            risk=TestRisk.MEDIUM,
            status=TestStatus.VIRTUAL_PASS,
            notes="Virtual pass.",
            last_run_at=FIXED_NOW,
        )
        for index, title in enumerate(
            ("Screens render without runtime errors", "API happy path returns 2xx"), start=1
        )
    )
    return TestPlan(summary="hand graded", coverage_areas=("happy_path",), cases=cases)


def build_project(project_id: str = "proj-1", **overrides: Any) -> ProjectRecord:
    return ProjectRecord(id=project_id, **overrides)


def build_clean_project(project_id: str = "proj-clean", **overrides: Any) -> ProjectRecord:
    values: dict[str, Any] = {
        "title": "Clinic booking",
        "intent": COMPLETE_INTENT,
        "architecture": COMPLETE_ARCHITECTURE,
        "test_plan": all_pass_plan(),
        "scan_report": ScanReport(score=88),
        "docs_pack": {"readme": "How to run the clinic booking app."},
    }
    values.update(overrides)
    return ProjectRecord(id=project_id, **values)


@pytest.fixture
def ids() -> SequentialIdGenerator:
    return SequentialIdGenerator()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def make_project() -> Callable[..., ProjectRecord]:
    return build_project


@pytest.fixture
def make_clean_project() -> Callable[..., ProjectRecord]:
    return build_clean_project


@pytest.fixture
def store(clock: SteppingClock, recording_logger: RecordingLogger) -> InMemoryProjectStore:
    return InMemoryProjectStore(clock=clock, logger=recording_logger)


@pytest.fixture
def service(
    store: InMemoryProjectStore,
    ids: SequentialIdGenerator,
    clock: SteppingClock,
    recording_logger: RecordingLogger,
) -> ReadinessService:
    return ReadinessService(store, ids=ids, clock=clock, logger=recording_logger)


@pytest.fixture
def complete_intent() -> dict[str, Any]:
    return copy.deepcopy(COMPLETE_INTENT)


@pytest.fixture
def complete_architecture() -> dict[str, Any]:
    return copy.deepcopy(COMPLETE_ARCHITECTURE)


@pytest.fixture
def passing_plan() -> TestPlan:
    return all_pass_plan()
