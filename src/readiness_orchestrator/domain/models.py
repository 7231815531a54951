"""Dataclass domain models with strict validation and canonical serialization.

Every record except :class:`ProjectRecord` is created fresh by an engine operation and
never mutated afterwards. ``ProjectRecord`` itself is frozen as well; operations derive
new versions with :func:`dataclasses.replace`, so a caller's copy is never touched.

Free-form documents (intent, architecture, deployment plan, docs pack) are deep-frozen
on construction: objects become read-only mappings and arrays become tuples. Snapshots
taken before a patch can therefore never alias values written after it.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import UTC, datetime
from enum import Enum, StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, ClassVar, Final, NoReturn, TypeVar, cast

from readiness_orchestrator.domain.ids import PROJECT_ID_MAX_LENGTH
from readiness_orchestrator.domain.lifecycle import ProjectStatus, parse_status
from readiness_orchestrator.utils.rounding import clamp_score

if TYPE_CHECKING:
    from collections.abc import Iterable

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
FrozenJSON = JSONScalar | tuple["FrozenJSON", ...] | Mapping[str, "FrozenJSON"]
Document = Mapping[str, FrozenJSON]

Clock = Callable[[], datetime]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

_MAX_JSON_DEPTH: Final[int] = 24

ALL_CLEAR_RULE: Final[str] = "all_clear"


class Severity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank; lower is more severe."""
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: object) -> Severity:
        """Parse canonical labels and the legacy ``error/warning/info`` vocabulary."""
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            raise ValueError(f"severity must be a string, got {type(value).__name__}")
        label = value.strip().lower()
        legacy = LEGACY_SEVERITY_MAP.get(label)
        if legacy is not None:
            return legacy
        try:
            return cls(label)
        except ValueError:
            allowed = ", ".join(item.value for item in cls)
            raise ValueError(
                f"invalid severity {value!r}; expected one of: {allowed} (or error/warning)"
            ) from None


_SEVERITY_RANK: Final[dict[Severity, int]] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}

LEGACY_SEVERITY_MAP: Final[dict[str, Severity]] = {
    "error": Severity.CRITICAL,
    "warning": Severity.HIGH,
    "warn": Severity.HIGH,
}


class TestArea(StrEnum):
    __test__ = False

    HAPPY_PATH = "happy_path"
    EDGE_CASE = "edge_case"
    FAILURE = "failure"
    PERFORMANCE = "performance"


class TestRisk(StrEnum):
    __test__ = False

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TestStatus(StrEnum):
    __test__ = False

    NOT_RUN = "not_run"
    VIRTUAL_PASS = "virtual_pass"
    VIRTUAL_FAIL = "virtual_fail"


class Badge(StrEnum):
    RED = "red"
    AMBER = "amber"
    GREEN = "green"


class RefinementSource(StrEnum):
    AUTOFIX = "autofix"
    USER = "user"


class PatchSource(StrEnum):
    AUTOFIX = "autofix"
    REFINEMENT = "refinement"
    MANUAL = "manual"
    ROLLBACK = "rollback"


# ---------------------------------------------------------------------------
# Canonical serialization
# ---------------------------------------------------------------------------


class CanonicalModel:
    """Mixin for canonical dict/json serialization with camelCase wire keys."""

    _WIRE_ALIASES: ClassVar[Mapping[str, str]] = {}

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self, self.__class__.__name__)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        if not isinstance(raw, str):
            _fail(cls.__name__, f"expected JSON string, got {type(raw).__name__}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


def canonical_json(value: object) -> str:
    """Deterministic JSON text (sorted keys, compact separators)."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def freeze_json(value: object, path: str = "document", *, depth: int = 0) -> FrozenJSON:
    """Return a deep read-only copy: mappings become proxies, lists become tuples."""

    if depth > _MAX_JSON_DEPTH:
        _fail(path, f"JSON nesting exceeds max depth {_MAX_JSON_DEPTH}")
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, Mapping):
        frozen: dict[str, FrozenJSON] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, f"object key must be string, got {type(key).__name__}")
            frozen[key] = freeze_json(item, f"{path}.{key}", depth=depth + 1)
        return MappingProxyType(frozen)
    if isinstance(value, (list, tuple)):
        return tuple(
            freeze_json(item, f"{path}[{index}]", depth=depth + 1)
            for index, item in enumerate(value)
        )
    _fail(path, f"value is not JSON-serializable ({type(value).__name__})")


def thaw_json(value: object) -> JSONValue:
    """Return a plain mutable ``dict``/``list`` copy of a frozen JSON value."""

    if isinstance(value, Mapping):
        return {str(key): thaw_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw_json(item) for item in value]
    return cast("JSONValue", value)


def freeze_document(value: object, path: str) -> Document | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        _fail(path, f"expected JSON object, got {type(value).__name__}")
    return cast("Document", freeze_json(value, path))


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _wire_key(owner: object, name: str) -> str:
    aliases = getattr(type(owner), "_WIRE_ALIASES", {})
    alias = aliases.get(name)
    if alias is not None:
        return alias
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _serialize_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, bool):
        return cast("JSONValue", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, Enum):
        raw = value.value
        if not isinstance(raw, str):
            _fail(path, "enum value must be string")
        return raw
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return datetime_to_iso8601z(value)
    if isinstance(value, (tuple, list)):
        return [_serialize_value(item, f"{path}[]") for item in value]
    if isinstance(value, Mapping):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, "dict keys must be strings")
            out[key] = _serialize_value(item, f"{path}.{key}")
        return out
    if is_dataclass(value) and not isinstance(value, type):
        out_obj: dict[str, JSONValue] = {}
        for dataclass_field in fields(value):
            out_obj[_wire_key(value, dataclass_field.name)] = _serialize_value(
                getattr(value, dataclass_field.name),
                f"{path}.{dataclass_field.name}",
            )
        return out_obj

    _fail(path, f"cannot serialize value of type {type(value).__name__}")


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    allowed = required | (optional or set())
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(
    value: object,
    path: str,
    *,
    min_len: int = 1,
    max_len: int | None = None,
) -> str:
    """Check a string without rewriting it; blank text counts as empty."""
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if len(value.strip()) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    if max_len is not None and len(value) > max_len:
        _fail(path, f"must be <= {max_len} characters")
    return value


def _as_text(value: object, path: str) -> str:
    return _as_str(value, path, min_len=0)


def _as_optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    return _as_str(value, path)


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_score(value: object, path: str) -> int:
    parsed = _as_int(value, path, minimum=0)
    if parsed > 100:
        _fail(path, "must be <= 100")
    return parsed


def _as_float(value: object, path: str, *, minimum: float | None = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        _fail(path, "must be finite")
    if minimum is not None and parsed < minimum:
        _fail(path, f"must be >= {minimum}")
    return parsed


def _as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        _fail(path, "datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def _as_optional_datetime(value: object, path: str) -> datetime | None:
    if value is None:
        return None
    return _as_datetime(value, path)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def datetime_to_iso8601z(value: datetime) -> str:
    normalized = _as_datetime(value, "datetime")
    return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(str(item.value) for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_severity(value: object, path: str) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError as exc:
        _fail(path, str(exc))


def _as_sequence(value: object, path: str) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    _fail(path, f"expected array, got {type(value).__name__}")


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    return tuple(
        _as_str(item, f"{path}[{index}]")
        for index, item in enumerate(_as_sequence(value, path))
    )


def _parse_list(
    value: object,
    path: str,
    parser: type[TModel],
) -> tuple[TModel, ...]:
    return tuple(
        parser.from_dict(_as_mapping(item, f"{path}[{index}]"))
        for index, item in enumerate(_as_sequence(value, path))
    )


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return cast("Mapping[str, object]", value)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DiagnosticHeadline(CanonicalModel):
    """Compact identity of a diagnostic used in ledger proofs and refinements."""

    rule: str
    area: str
    symptom: str
    severity: Severity

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DiagnosticHeadline:
        parsed = _expect_object(
            data,
            "DiagnosticHeadline",
            required={"area", "symptom", "severity"},
            optional={"rule"},
        )
        return cls(
            rule=_as_text(parsed.get("rule", ""), "DiagnosticHeadline.rule"),
            area=_as_str(parsed["area"], "DiagnosticHeadline.area"),
            symptom=_as_str(parsed["symptom"], "DiagnosticHeadline.symptom"),
            severity=_as_severity(parsed["severity"], "DiagnosticHeadline.severity"),
        )


_DIAGNOSTIC_FIELDS: Final[set[str]] = {
    "id",
    "area",
    "severity",
    "symptom",
    "likelyCause",
    "suggestedFix",
    "estimatedMinutes",
    "phase",
}


@dataclass(frozen=True, slots=True)
class DiagnosticItem(CanonicalModel):
    id: str
    area: str
    severity: Severity
    symptom: str
    likely_cause: str
    suggested_fix: str
    estimated_minutes: int
    phase: int
    rule: str

    def __post_init__(self) -> None:
        _as_str(self.id, "DiagnosticItem.id")
        _as_int(self.estimated_minutes, "DiagnosticItem.estimated_minutes", minimum=0)
        _as_int(self.phase, "DiagnosticItem.phase", minimum=0)
        if not isinstance(self.severity, Severity):
            _fail("DiagnosticItem.severity", "expected Severity")

    @property
    def is_actionable(self) -> bool:
        return self.rule != ALL_CLEAR_RULE

    def headline(self) -> DiagnosticHeadline:
        return DiagnosticHeadline(
            rule=self.rule, area=self.area, symptom=self.symptom, severity=self.severity
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DiagnosticItem:
        parsed = _expect_object(
            data, "DiagnosticItem", required=_DIAGNOSTIC_FIELDS, optional={"rule"}
        )
        return cls(**_diagnostic_kwargs(parsed, "DiagnosticItem"))


@dataclass(frozen=True, slots=True)
class RankedDiagnosticItem(DiagnosticItem):
    roi: float
    priority: int

    def __post_init__(self) -> None:
        DiagnosticItem.__post_init__(self)
        _as_float(self.roi, "RankedDiagnosticItem.roi", minimum=0.0)
        _as_int(self.priority, "RankedDiagnosticItem.priority", minimum=1)

    @classmethod
    def from_item(cls, item: DiagnosticItem, *, roi: float, priority: int) -> RankedDiagnosticItem:
        return cls(
            id=item.id,
            area=item.area,
            severity=item.severity,
            symptom=item.symptom,
            likely_cause=item.likely_cause,
            suggested_fix=item.suggested_fix,
            estimated_minutes=item.estimated_minutes,
            phase=item.phase,
            rule=item.rule,
            roi=roi,
            priority=priority,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RankedDiagnosticItem:
        parsed = _expect_object(
            data,
            "RankedDiagnosticItem",
            required=_DIAGNOSTIC_FIELDS | {"roi", "priority"},
            optional={"rule"},
        )
        return cls(
            **_diagnostic_kwargs(parsed, "RankedDiagnosticItem"),
            roi=_as_float(parsed["roi"], "RankedDiagnosticItem.roi", minimum=0.0),
            priority=_as_int(parsed["priority"], "RankedDiagnosticItem.priority", minimum=1),
        )


def _diagnostic_kwargs(parsed: Mapping[str, object], path: str) -> dict[str, object]:
    return {
        "id": _as_str(parsed["id"], f"{path}.id"),
        "area": _as_str(parsed["area"], f"{path}.area"),
        "severity": _as_severity(parsed["severity"], f"{path}.severity"),
        "symptom": _as_str(parsed["symptom"], f"{path}.symptom"),
        "likely_cause": _as_text(parsed["likelyCause"], f"{path}.likelyCause"),
        "suggested_fix": _as_text(parsed["suggestedFix"], f"{path}.suggestedFix"),
        "estimated_minutes": _as_int(
            parsed["estimatedMinutes"], f"{path}.estimatedMinutes", minimum=0
        ),
        "phase": _as_int(parsed["phase"], f"{path}.phase", minimum=0),
        "rule": _as_text(parsed.get("rule", ""), f"{path}.rule"),
    }


@dataclass(frozen=True, slots=True)
class DiagnosticsReport(CanonicalModel):
    summary: str
    items: tuple[RankedDiagnosticItem, ...] = ()
    generated_at: datetime | None = None

    @property
    def top(self) -> RankedDiagnosticItem | None:
        """First actionable ranked item, or ``None`` when nothing needs fixing."""
        return next((item for item in self.items if item.is_actionable), None)

    @property
    def actionable(self) -> tuple[RankedDiagnosticItem, ...]:
        return tuple(item for item in self.items if item.is_actionable)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DiagnosticsReport:
        parsed = _expect_object(
            data,
            "DiagnosticsReport",
            required={"summary"},
            optional={"items", "generatedAt"},
        )
        return cls(
            summary=_as_text(parsed["summary"], "DiagnosticsReport.summary"),
            items=_parse_list(
                parsed.get("items", ()), "DiagnosticsReport.items", RankedDiagnosticItem
            ),
            generated_at=_as_optional_datetime(
                parsed.get("generatedAt"), "DiagnosticsReport.generatedAt"
            ),
        )


# ---------------------------------------------------------------------------
# Virtual tests
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TestCase(CanonicalModel):
    __test__: ClassVar[bool] = False

    id: str
    title: str
    description: str
    area: TestArea
    risk: TestRisk
    status: TestStatus = TestStatus.NOT_RUN
    notes: str = ""
    last_run_at: datetime | None = None

    def __post_init__(self) -> None:
        _as_str(self.id, "TestCase.id")
        _as_str(self.title, "TestCase.title")

    @property
    def has_run(self) -> bool:
        return self.status is not TestStatus.NOT_RUN

    def graded(self, status: TestStatus, *, notes: str, run_at: datetime) -> TestCase:
        """Return this case with a run result; a case that already ran never reverts."""
        if self.has_run:
            _fail("TestCase.status", f"case {self.id} already graded as {self.status.value}")
        if status is TestStatus.NOT_RUN:
            _fail("TestCase.status", "grading must produce a run status")
        return TestCase(
            id=self.id,
            title=self.title,
            description=self.description,
            area=self.area,
            risk=self.risk,
            status=status,
            notes=notes,
            last_run_at=run_at,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TestCase:
        parsed = _expect_object(
            data,
            "TestCase",
            required={"id", "title", "area", "risk"},
            optional={"description", "status", "notes", "lastRunAt"},
        )
        return cls(
            id=_as_str(parsed["id"], "TestCase.id"),
            title=_as_str(parsed["title"], "TestCase.title"),
            description=_as_text(parsed.get("description", ""), "TestCase.description"),
            area=_as_enum(TestArea, parsed["area"], "TestCase.area"),
            risk=_as_enum(TestRisk, parsed["risk"], "TestCase.risk"),
            status=_as_enum(
                TestStatus, parsed.get("status", TestStatus.NOT_RUN.value), "TestCase.status"
            ),
            notes=_as_text(parsed.get("notes", ""), "TestCase.notes"),
            last_run_at=_as_optional_datetime(parsed.get("lastRunAt"), "TestCase.lastRunAt"),
        )


@dataclass(frozen=True, slots=True)
class TestPlan(CanonicalModel):
    __test__: ClassVar[bool] = False

    summary: str
    coverage_areas: tuple[str, ...] = ()
    cases: tuple[TestCase, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TestPlan:
        parsed = _expect_object(
            data,
            "TestPlan",
            required={"summary"},
            optional={"coverageAreas", "cases"},
        )
        return cls(
            summary=_as_text(parsed["summary"], "TestPlan.summary"),
            coverage_areas=_as_str_tuple(
                parsed.get("coverageAreas", ()), "TestPlan.coverageAreas"
            ),
            cases=_parse_list(parsed.get("cases", ()), "TestPlan.cases", TestCase),
        )


@dataclass(frozen=True, slots=True)
class TestSummary(CanonicalModel):
    __test__: ClassVar[bool] = False
    _WIRE_ALIASES: ClassVar[Mapping[str, str]] = {"passed": "pass", "failed": "fail"}

    total: int
    passed: int
    failed: int
    not_run: int
    score: int


# ---------------------------------------------------------------------------
# Scan report
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScanIssue(CanonicalModel):
    severity: Severity
    title: str = ""
    detail: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ScanIssue:
        parsed = _expect_object(
            data,
            "ScanIssue",
            required={"severity"},
            optional={"title", "detail"},
        )
        return cls(
            severity=_as_severity(parsed["severity"], "ScanIssue.severity"),
            title=_as_text(parsed.get("title", ""), "ScanIssue.title"),
            detail=_as_text(parsed.get("detail", ""), "ScanIssue.detail"),
        )


@dataclass(frozen=True, slots=True)
class ScanReport(CanonicalModel):
    score: int
    issues: tuple[ScanIssue, ...] = ()

    def count(self, severity: Severity) -> int:
        return sum(1 for issue in self.issues if issue.severity is severity)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ScanReport:
        parsed = _expect_object(data, "ScanReport", required={"score"}, optional={"issues"})
        raw_score = _as_float(parsed["score"], "ScanReport.score")
        return cls(
            score=clamp_score(raw_score),
            issues=_parse_list(parsed.get("issues", ()), "ScanReport.issues", ScanIssue),
        )


# ---------------------------------------------------------------------------
# Patch history and truth ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ArtifactSnapshot(CanonicalModel):
    """Frozen copy of only the fields a patch may touch."""

    intent: Document | None = None
    architecture: Document | None = None
    deployment_plan: Document | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "intent", freeze_document(self.intent, "ArtifactSnapshot.intent")
        )
        object.__setattr__(
            self,
            "architecture",
            freeze_document(self.architecture, "ArtifactSnapshot.architecture"),
        )
        object.__setattr__(
            self,
            "deployment_plan",
            freeze_document(self.deployment_plan, "ArtifactSnapshot.deployment_plan"),
        )

    @property
    def is_empty(self) -> bool:
        return self.intent is None and self.architecture is None and self.deployment_plan is None

    @classmethod
    def of(cls, project: ProjectRecord) -> ArtifactSnapshot:
        return cls(
            intent=project.intent,
            architecture=project.architecture,
            deployment_plan=project.deployment_plan,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ArtifactSnapshot:
        parsed = _expect_object(
            data,
            "ArtifactSnapshot",
            required=set(),
            optional={"intent", "architecture", "deploymentPlan"},
        )
        return cls(
            intent=freeze_document(parsed.get("intent"), "ArtifactSnapshot.intent"),
            architecture=freeze_document(
                parsed.get("architecture"), "ArtifactSnapshot.architecture"
            ),
            deployment_plan=freeze_document(
                parsed.get("deploymentPlan"), "ArtifactSnapshot.deploymentPlan"
            ),
        )


@dataclass(frozen=True, slots=True)
class Refinement(CanonicalModel):
    id: str
    created_at: datetime
    source: RefinementSource
    prompt: str
    steps: tuple[str, ...] = ()
    rollback: str = ""
    target: DiagnosticHeadline | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Refinement:
        parsed = _expect_object(
            data,
            "Refinement",
            required={"id", "createdAt", "source", "prompt"},
            optional={"steps", "rollback", "target"},
        )
        target_raw = parsed.get("target")
        return cls(
            id=_as_str(parsed["id"], "Refinement.id"),
            created_at=_as_datetime(parsed["createdAt"], "Refinement.createdAt"),
            source=_as_enum(RefinementSource, parsed["source"], "Refinement.source"),
            prompt=_as_str(parsed["prompt"], "Refinement.prompt"),
            steps=_as_str_tuple(parsed.get("steps", ()), "Refinement.steps"),
            rollback=_as_text(parsed.get("rollback", ""), "Refinement.rollback"),
            target=(
                DiagnosticHeadline.from_dict(_as_mapping(target_raw, "Refinement.target"))
                if target_raw is not None
                else None
            ),
        )


@dataclass(frozen=True, slots=True)
class PatchEntry(CanonicalModel):
    id: str
    created_at: datetime
    source: PatchSource
    actions: tuple[str, ...]
    before: ArtifactSnapshot
    after: ArtifactSnapshot
    refine_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PatchEntry:
        parsed = _expect_object(
            data,
            "PatchEntry",
            required={"id", "createdAt", "source", "actions", "before", "after"},
            optional={"refineId"},
        )
        return cls(
            id=_as_str(parsed["id"], "PatchEntry.id"),
            created_at=_as_datetime(parsed["createdAt"], "PatchEntry.createdAt"),
            source=_as_enum(PatchSource, parsed["source"], "PatchEntry.source"),
            actions=_as_str_tuple(parsed["actions"], "PatchEntry.actions"),
            before=ArtifactSnapshot.from_dict(_as_mapping(parsed["before"], "PatchEntry.before")),
            after=ArtifactSnapshot.from_dict(_as_mapping(parsed["after"], "PatchEntry.after")),
            refine_id=_as_optional_str(parsed.get("refineId"), "PatchEntry.refineId"),
        )


@dataclass(frozen=True, slots=True)
class LockProof(CanonicalModel):
    before_top: DiagnosticHeadline | None
    after_top: DiagnosticHeadline | None
    before_test_score: int
    after_test_score: int
    actions: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> LockProof:
        parsed = _expect_object(
            data,
            "LockProof",
            required={"beforeTop", "afterTop", "beforeTestScore", "afterTestScore"},
            optional={"actions"},
        )
        return cls(
            before_top=_optional_headline(parsed["beforeTop"], "LockProof.beforeTop"),
            after_top=_optional_headline(parsed["afterTop"], "LockProof.afterTop"),
            before_test_score=_as_score(parsed["beforeTestScore"], "LockProof.beforeTestScore"),
            after_test_score=_as_score(parsed["afterTestScore"], "LockProof.afterTestScore"),
            actions=_as_str_tuple(parsed.get("actions", ()), "LockProof.actions"),
        )


def _optional_headline(value: object, path: str) -> DiagnosticHeadline | None:
    if value is None:
        return None
    return DiagnosticHeadline.from_dict(_as_mapping(value, path))


@dataclass(frozen=True, slots=True)
class LockedFix(CanonicalModel):
    id: str
    created_at: datetime
    title: str
    proof: LockProof
    rule: str

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> LockedFix:
        parsed = _expect_object(
            data,
            "LockedFix",
            required={"id", "createdAt", "title", "proof", "rule"},
        )
        return cls(
            id=_as_str(parsed["id"], "LockedFix.id"),
            created_at=_as_datetime(parsed["createdAt"], "LockedFix.createdAt"),
            title=_as_str(parsed["title"], "LockedFix.title"),
            proof=LockProof.from_dict(_as_mapping(parsed["proof"], "LockedFix.proof")),
            rule=_as_str(parsed["rule"], "LockedFix.rule"),
        )


@dataclass(frozen=True, slots=True)
class ExportPlan(CanonicalModel):
    refinements: tuple[Refinement, ...] = ()
    patches: tuple[PatchEntry, ...] = ()
    locked_fixes: tuple[LockedFix, ...] = ()

    def find_patch(self, patch_id: str) -> PatchEntry | None:
        return next((entry for entry in self.patches if entry.id == patch_id), None)

    def find_refinement(self, refine_id: str) -> Refinement | None:
        return next((entry for entry in self.refinements if entry.id == refine_id), None)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ExportPlan:
        parsed = _expect_object(
            data,
            "ExportPlan",
            required=set(),
            optional={"refinements", "patches", "lockedFixes"},
        )
        return cls(
            refinements=_parse_list(
                parsed.get("refinements", ()), "ExportPlan.refinements", Refinement
            ),
            patches=_parse_list(parsed.get("patches", ()), "ExportPlan.patches", PatchEntry),
            locked_fixes=_parse_list(
                parsed.get("lockedFixes", ()), "ExportPlan.lockedFixes", LockedFix
            ),
        )


# ---------------------------------------------------------------------------
# Project record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProjectRecord(CanonicalModel):
    """The long-lived subject of every readiness operation."""

    _WIRE_ALIASES: ClassVar[Mapping[str, str]] = {
        "intent": "intentDocument",
        "architecture": "architectureDocument",
        "diagnostics": "diagnosticsReport",
    }

    id: str
    title: str = ""
    build_type: str = "app"
    status: ProjectStatus = ProjectStatus.DRAFT
    intent: Document | None = None
    architecture: Document | None = None
    deployment_plan: Document | None = None
    docs_pack: Document | None = None
    test_plan: TestPlan | None = None
    scan_report: ScanReport | None = None
    diagnostics: DiagnosticsReport | None = None
    export_plan: ExportPlan = field(default_factory=ExportPlan)
    frozen: bool = False
    frozen_reason: str | None = None
    version: int = 0
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        _as_str(self.id, "ProjectRecord.id", max_len=PROJECT_ID_MAX_LENGTH)
        _as_int(self.version, "ProjectRecord.version", minimum=0)
        object.__setattr__(self, "status", parse_status(self.status))
        for name in ("intent", "architecture", "deployment_plan", "docs_pack"):
            object.__setattr__(
                self, name, freeze_document(getattr(self, name), f"ProjectRecord.{name}")
            )

    @property
    def build_kind(self) -> str:
        return self.build_type.strip().lower()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ProjectRecord:
        parsed = _expect_object(
            data,
            "ProjectRecord",
            required={"id"},
            optional={
                "title",
                "buildType",
                "status",
                "intentDocument",
                "architectureDocument",
                "deploymentPlan",
                "docsPack",
                "testPlan",
                "scanReport",
                "diagnosticsReport",
                "exportPlan",
                "frozen",
                "frozenReason",
                "version",
                "updatedAt",
            },
        )
        return cls(
            id=_as_str(parsed["id"], "ProjectRecord.id", max_len=PROJECT_ID_MAX_LENGTH),
            title=_as_text(parsed.get("title") or "", "ProjectRecord.title"),
            build_type=_as_str(parsed.get("buildType") or "app", "ProjectRecord.buildType"),
            status=parse_status(parsed.get("status")),
            intent=freeze_document(parsed.get("intentDocument"), "ProjectRecord.intentDocument"),
            architecture=freeze_document(
                parsed.get("architectureDocument"), "ProjectRecord.architectureDocument"
            ),
            deployment_plan=freeze_document(
                parsed.get("deploymentPlan"), "ProjectRecord.deploymentPlan"
            ),
            docs_pack=freeze_document(parsed.get("docsPack"), "ProjectRecord.docsPack"),
            test_plan=_optional_model(parsed.get("testPlan"), "ProjectRecord.testPlan", TestPlan),
            scan_report=_optional_model(
                parsed.get("scanReport"), "ProjectRecord.scanReport", ScanReport
            ),
            diagnostics=_optional_model(
                parsed.get("diagnosticsReport"),
                "ProjectRecord.diagnosticsReport",
                DiagnosticsReport,
            ),
            export_plan=_optional_model(
                parsed.get("exportPlan"), "ProjectRecord.exportPlan", ExportPlan
            )
            or ExportPlan(),
            frozen=_as_bool(parsed.get("frozen", False), "ProjectRecord.frozen"),
            frozen_reason=_as_optional_str(parsed.get("frozenReason"), "ProjectRecord.frozenReason"),
            version=_as_int(parsed.get("version", 0), "ProjectRecord.version", minimum=0),
            updated_at=_as_optional_datetime(parsed.get("updatedAt"), "ProjectRecord.updatedAt"),
        )


def _optional_model(value: object, path: str, model: type[TModel]) -> TModel | None:
    if value is None:
        return None
    return model.from_dict(_as_mapping(value, path))


def headlines(items: Iterable[DiagnosticItem]) -> tuple[DiagnosticHeadline, ...]:
    return tuple(item.headline() for item in items)


def as_text_list(value: object) -> tuple[str, ...]:
    """Read a document array of strings (or ``{description}`` objects) leniently."""

    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return ()
    out: list[str] = []
    for item in value:
        if isinstance(item, str):
            text = item.strip()
        elif isinstance(item, Mapping):
            raw = item.get("description") or item.get("title") or item.get("name")
            text = raw.strip() if isinstance(raw, str) else ""
        else:
            text = ""
        if text:
            out.append(text)
    return tuple(out)


__all__ = [
    "ALL_CLEAR_RULE",
    "ArtifactSnapshot",
    "Badge",
    "CanonicalModel",
    "Clock",
    "DiagnosticHeadline",
    "DiagnosticItem",
    "DiagnosticsReport",
    "Document",
    "ExportPlan",
    "FrozenJSON",
    "JSONValue",
    "LEGACY_SEVERITY_MAP",
    "LockProof",
    "LockedFix",
    "PatchEntry",
    "PatchSource",
    "ProjectRecord",
    "RankedDiagnosticItem",
    "Refinement",
    "RefinementSource",
    "ScanIssue",
    "ScanReport",
    "Severity",
    "TestArea",
    "TestCase",
    "TestPlan",
    "TestRisk",
    "TestStatus",
    "TestSummary",
    "as_text_list",
    "canonical_json",
    "datetime_to_iso8601z",
    "freeze_document",
    "freeze_json",
    "headlines",
    "thaw_json",
    "utc_now",
]
