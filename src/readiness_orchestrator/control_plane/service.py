"""
readiness-orchestrator — readiness service (orchestration boundary).

File: src/readiness_orchestrator/control_plane/service.py
Last updated: 2026-10-19

Purpose
- The single entry point the CLI (and any embedding) uses to read and change projects.

What should be included in this file
- Load -> compute -> save for every operation, with the engine kept free of I/O.
- Per-project serialization of mutating operations via `KeyedLock`, plus the store's
  optimistic version check on every save.
- Correlation scopes so every log line carries the project id.

Functional requirements
- Identifier validation and not-found errors happen before any computation.
- A failed save discards the in-memory result; nothing is retried here.
- Frozen projects reject patch, apply-refinement, autofix and rollback.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Final, TypeVar

import structlog

from readiness_orchestrator.constants import DEFAULT_DEPLOY_KEYWORDS
from readiness_orchestrator.control_plane.autofix import AutofixOrchestrator, AutofixResult
from readiness_orchestrator.domain.errors import (
    FrozenProjectError,
    NotFoundError,
    ValidationError,
)
from readiness_orchestrator.domain.ids import UlidIdGenerator, validate_project_id
from readiness_orchestrator.domain.lifecycle import (
    ProjectStatus,
    can_transition,
    parse_status,
    transition,
)
from readiness_orchestrator.domain.models import (
    ArtifactSnapshot,
    CanonicalModel,
    PatchSource,
    ProjectRecord,
    RefinementSource,
    utc_now,
)
from readiness_orchestrator.engine.diagnostics import DiagnosticsEngine
from readiness_orchestrator.engine.patch_planner import PatchPlan, PatchPlanner
from readiness_orchestrator.engine.scoring import ScoreCalculator
from readiness_orchestrator.engine.virtual_tests import VirtualTestEngine
from readiness_orchestrator.knowledge_plane.patch_ledger import PatchLedger
from readiness_orchestrator.observability.logging import correlation_scope
from readiness_orchestrator.utils.concurrency import KeyedLock

if TYPE_CHECKING:
    from readiness_orchestrator.domain.ids import IdGenerator
    from readiness_orchestrator.domain.models import (
        Clock,
        DiagnosticsReport,
        ExportPlan,
        LockedFix,
        PatchEntry,
        Refinement,
        TestPlan,
    )
    from readiness_orchestrator.engine.scoring import ReadinessScore
    from readiness_orchestrator.persistence.repositories import ProjectStore

T = TypeVar("T")

NO_CHANGES_ACTION: Final[str] = "No structural changes were required."


@dataclass(frozen=True, slots=True)
class PatchOutcome(CanonicalModel):
    """Result of a manual patch; ``patch`` is ``None`` for dry runs and no-op plans."""

    project: ProjectRecord
    plan: PatchPlan
    patch: PatchEntry | None
    dry_run: bool

    @property
    def applied(self) -> bool:
        return self.patch is not None


@dataclass(frozen=True, slots=True)
class RefinementOutcome(CanonicalModel):
    project: ProjectRecord
    refinement: Refinement
    patch: PatchEntry


@dataclass(frozen=True, slots=True)
class RollbackOutcome(CanonicalModel):
    project: ProjectRecord
    patch: PatchEntry
    rolled_back: str


class ReadinessService:
    """Load, compute and persist readiness operations for one store."""

    def __init__(
        self,
        store: ProjectStore,
        *,
        ids: IdGenerator | None = None,
        clock: Clock | None = None,
        deploy_keywords: Iterable[str] = DEFAULT_DEPLOY_KEYWORDS,
        locks: KeyedLock | None = None,
        lock_timeout: float | None = None,
        logger: Any | None = None,
    ) -> None:
        self._store = store
        self._ids = ids if ids is not None else UlidIdGenerator()
        self._clock = clock if clock is not None else utc_now
        self._locks = locks if locks is not None else KeyedLock()
        self._lock_timeout = lock_timeout
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

        self._scores = ScoreCalculator()
        self._tests = VirtualTestEngine(ids=self._ids, clock=self._clock, logger=logger)
        self._diagnostics = DiagnosticsEngine(ids=self._ids, clock=self._clock, logger=logger)
        self._planner = PatchPlanner(deploy_keywords=deploy_keywords, logger=logger)
        self._ledger = PatchLedger(ids=self._ids, clock=self._clock, logger=logger)
        self._autofix = AutofixOrchestrator(
            diagnostics=self._diagnostics,
            tests=self._tests,
            planner=self._planner,
            ledger=self._ledger,
            clock=self._clock,
            logger=logger,
        )

    @property
    def store(self) -> ProjectStore:
        return self._store

    # ------------------------------------------------------------------ reads

    def get(self, project_id: str) -> ProjectRecord:
        clean_id = _clean_id(project_id)
        with correlation_scope(project_id=clean_id):
            return self._store.load(clean_id)

    def export(self, project_id: str) -> ProjectRecord:
        return self.get(project_id)

    def list_projects(self, *, limit: int = 100, offset: int = 0) -> list[ProjectRecord]:
        return self._store.list(limit=limit, offset=offset)

    def score(self, project_id: str) -> ReadinessScore:
        return self._read(project_id, self._scores.score)

    def history(self, project_id: str) -> ExportPlan:
        return self._read(project_id, lambda project: project.export_plan)

    def regressions(self, project_id: str) -> tuple[LockedFix, ...]:
        def check(project: ProjectRecord) -> tuple[LockedFix, ...]:
            report = self._diagnostics.report(project)
            resurfaced = self._ledger.regressions(project, report.items)
            self._logger.info(
                "regressions_checked",
                project_id=project.id,
                locked_fixes=len(project.export_plan.locked_fixes),
                resurfaced=len(resurfaced),
            )
            return resurfaced

        return self._read(project_id, check)

    # ----------------------------------------------------- reads with optional save

    def diagnose(self, project_id: str, *, save: bool = False) -> DiagnosticsReport:
        if not save:
            return self._read(project_id, self._diagnostics.report)

        def attach(project: ProjectRecord) -> tuple[ProjectRecord, DiagnosticsReport]:
            report = self._diagnostics.report(project)
            updated = replace(
                project,
                diagnostics=report,
                status=_soft_transition(project.status, ProjectStatus.DIAGNOSED),
            )
            return updated, report

        _, report = self._mutate(project_id, attach)
        return report

    def run_tests(self, project_id: str, *, save: bool = False) -> TestPlan:
        if not save:
            return self._read(project_id, self._tests.run)

        def attach(project: ProjectRecord) -> tuple[ProjectRecord, TestPlan]:
            plan = self._tests.run(project)
            updated = replace(
                project,
                test_plan=plan,
                status=_soft_transition(project.status, ProjectStatus.TESTED),
            )
            return updated, plan

        _, plan = self._mutate(project_id, attach)
        return plan

    # ---------------------------------------------------------------- mutations

    def import_project(self, document: Mapping[str, object] | ProjectRecord) -> ProjectRecord:
        """Upsert a wire document; the stored version, not the document's, wins."""

        if isinstance(document, ProjectRecord):
            record = document
        else:
            try:
                record = ProjectRecord.from_dict(document)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
        clean_id = _clean_id(record.id)
        with self._locks.hold(clean_id, timeout=self._lock_timeout), correlation_scope(
            project_id=clean_id
        ):
            saved = self._store.save(clean_id, replace(record, id=clean_id))
            self._logger.info("project_imported", project_id=clean_id, version=saved.version)
            return saved

    def patch(
        self,
        project_id: str,
        intent_text: str = "",
        *,
        dry_run: bool = False,
    ) -> PatchOutcome:
        if dry_run:
            def preview(project: ProjectRecord) -> PatchOutcome:
                plan = self._planner.plan(project, intent_text)
                return PatchOutcome(project=project, plan=plan, patch=None, dry_run=True)

            return self._read(project_id, preview)

        def apply(
            project: ProjectRecord,
        ) -> tuple[ProjectRecord, tuple[PatchPlan, PatchEntry | None]]:
            _guard_frozen(project)
            plan = self._planner.plan(project, intent_text)
            if plan.is_empty:
                return project, (plan, None)
            before = ArtifactSnapshot.of(project)
            working = self._planner.apply(project, plan)
            working, entry = self._ledger.record_patch(
                working,
                before=before,
                after=ArtifactSnapshot.of(working),
                actions=plan.actions,
                source=PatchSource.MANUAL,
            )
            working = replace(working, status=transition(working.status, ProjectStatus.PATCHED))
            return working, (plan, entry)

        saved, (plan, entry) = self._mutate(
            project_id,
            apply,
            skip_save=lambda result: result[1] is None,
        )
        if entry is not None:
            self._logger.info("project_patched", project_id=saved.id, patch_id=entry.id)
        return PatchOutcome(project=saved, plan=plan, patch=entry, dry_run=False)

    def apply_refinement(self, project_id: str, refine_id: str | None = None) -> RefinementOutcome:
        """Apply the patch for a stored autofix refinement (newest by default)."""

        def apply(project: ProjectRecord) -> tuple[ProjectRecord, tuple[Refinement, PatchEntry]]:
            _guard_frozen(project)
            refinement = _select_refinement(project, refine_id)
            if refinement.source is not RefinementSource.AUTOFIX:
                raise ValidationError(
                    f"refinement {refinement.id!r} has source {refinement.source.value!r}; "
                    "only autofix refinements can be applied"
                )
            plan = self._planner.plan(project, refinement.prompt)
            before = ArtifactSnapshot.of(project)
            working = self._planner.apply(project, plan)
            working, entry = self._ledger.record_patch(
                working,
                before=before,
                after=ArtifactSnapshot.of(working),
                actions=plan.actions or (NO_CHANGES_ACTION,),
                source=PatchSource.REFINEMENT,
                refine_id=refinement.id,
            )
            working = replace(working, status=transition(working.status, ProjectStatus.PATCHED))
            return working, (refinement, entry)

        saved, (refinement, entry) = self._mutate(project_id, apply)
        self._logger.info(
            "refinement_applied",
            project_id=saved.id,
            refine_id=refinement.id,
            patch_id=entry.id,
        )
        return RefinementOutcome(project=saved, refinement=refinement, patch=entry)

    def autofix(self, project_id: str) -> AutofixResult:
        saved, result = self._mutate(project_id, self._run_autofix)
        return replace(result, project=saved)

    def rollback(self, project_id: str, patch_id: str) -> RollbackOutcome:
        if not isinstance(patch_id, str) or not patch_id.strip():
            raise ValidationError("patch_id must be a non-empty string")

        def apply(project: ProjectRecord) -> tuple[ProjectRecord, PatchEntry]:
            return self._ledger.rollback(project, patch_id.strip())

        saved, entry = self._mutate(project_id, apply)
        return RollbackOutcome(project=saved, patch=entry, rolled_back=patch_id.strip())

    def set_status(self, project_id: str, status: ProjectStatus | str) -> ProjectRecord:
        target = parse_status(status)

        def apply(project: ProjectRecord) -> tuple[ProjectRecord, ProjectStatus]:
            return replace(project, status=transition(project.status, target)), project.status

        saved, previous = self._mutate(project_id, apply)
        self._logger.info(
            "status_changed",
            project_id=saved.id,
            previous=previous.value,
            status=saved.status.value,
        )
        return saved

    def freeze(self, project_id: str, reason: str | None = None) -> ProjectRecord:
        clean_reason = reason.strip() if isinstance(reason, str) and reason.strip() else None
        saved, _ = self._mutate(
            project_id,
            lambda project: (replace(project, frozen=True, frozen_reason=clean_reason), None),
        )
        self._logger.info("project_frozen", project_id=saved.id, reason=clean_reason)
        return saved

    def unfreeze(self, project_id: str) -> ProjectRecord:
        saved, _ = self._mutate(
            project_id,
            lambda project: (replace(project, frozen=False, frozen_reason=None), None),
        )
        self._logger.info("project_unfrozen", project_id=saved.id)
        return saved

    # ------------------------------------------------------------------ internals

    def _run_autofix(self, project: ProjectRecord) -> tuple[ProjectRecord, AutofixResult]:
        result = self._autofix.run(project)
        return result.project, result

    def _read(self, project_id: str, compute: Callable[[ProjectRecord], T]) -> T:
        clean_id = _clean_id(project_id)
        with correlation_scope(project_id=clean_id):
            return compute(self._store.load(clean_id))

    def _mutate(
        self,
        project_id: str,
        compute: Callable[[ProjectRecord], tuple[ProjectRecord, T]],
        *,
        skip_save: Callable[[T], bool] | None = None,
    ) -> tuple[ProjectRecord, T]:
        """Load, compute and save under the project lock with a version check."""

        clean_id = _clean_id(project_id)
        with self._locks.hold(clean_id, timeout=self._lock_timeout), correlation_scope(
            project_id=clean_id
        ):
            project = self._store.load(clean_id)
            updated, extra = compute(project)
            if skip_save is not None and skip_save(extra):
                return project, extra
            saved = self._store.save(clean_id, updated, expected_version=project.version)
            return saved, extra


def _clean_id(project_id: object) -> str:
    try:
        return validate_project_id(project_id)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _guard_frozen(project: ProjectRecord) -> None:
    if project.frozen:
        raise FrozenProjectError(project.id, project.frozen_reason)


def _soft_transition(current: ProjectStatus, target: ProjectStatus) -> ProjectStatus:
    # Saving a report never fails on lifecycle grounds; the status only moves when allowed.
    return target if can_transition(current, target) else current


def _select_refinement(project: ProjectRecord, refine_id: str | None) -> Refinement:
    refinements = project.export_plan.refinements
    if refine_id is None:
        if not refinements:
            raise NotFoundError(f"project {project.id!r} has no stored refinements")
        return refinements[0]
    found = project.export_plan.find_refinement(refine_id)
    if found is None:
        raise NotFoundError(f"refinement {refine_id!r} not found on project {project.id!r}")
    return found


__all__ = [
    "NO_CHANGES_ACTION",
    "PatchOutcome",
    "ReadinessService",
    "RefinementOutcome",
    "RollbackOutcome",
]
