"""
readiness-orchestrator — patch history and truth ledger.

File: src/readiness_orchestrator/knowledge_plane/patch_ledger.py
Last updated: 2026-10-19

Purpose
- Append-only, bounded audit history on a project's export plan: refinements (fix
  plans), patch entries with before/after artifact snapshots, and locked fixes.

What this module includes
- Bounded prepend (newest first) for every history list; the oldest entries drop off.
- Point-in-time rollback that restores a patch's `before` snapshot and records the
  rollback itself as a new patch entry.
- Advisory regression check: locked fixes whose top diagnostic has resurfaced.

Functional requirements
- Entries are created once and never mutated.
- Every operation returns a new `ProjectRecord`; the input record is never touched.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any, Final, TypeVar

import structlog

from readiness_orchestrator.constants import MAX_LOCKED_FIXES, MAX_PATCHES, MAX_REFINEMENTS
from readiness_orchestrator.domain.errors import FrozenProjectError, NotFoundError
from readiness_orchestrator.domain.ids import (
    LOCKED_FIX_ID_PREFIX,
    PATCH_ID_PREFIX,
    REFINEMENT_ID_PREFIX,
    UlidIdGenerator,
)
from readiness_orchestrator.domain.models import (
    ArtifactSnapshot,
    LockedFix,
    PatchEntry,
    PatchSource,
    Refinement,
    RefinementSource,
    utc_now,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from readiness_orchestrator.domain.ids import IdGenerator
    from readiness_orchestrator.domain.models import (
        Clock,
        DiagnosticHeadline,
        DiagnosticItem,
        LockProof,
        ProjectRecord,
    )

T = TypeVar("T")

ROLLBACK_RECIPE: Final[str] = "Revert intent, architecture and deployment plan to the previous snapshot."


def prepend_bounded(items: tuple[T, ...], item: T, cap: int) -> tuple[T, ...]:
    """Return ``(item, *items)`` truncated to ``cap`` entries."""

    if cap <= 0:
        raise ValueError("cap must be > 0")
    return (item, *items)[:cap]


class PatchLedger:
    """Record refinements, patches and locked fixes on a project's export plan."""

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

    def new_refinement(
        self,
        *,
        prompt: str,
        source: RefinementSource = RefinementSource.USER,
        steps: Iterable[str] = (),
        rollback: str = ROLLBACK_RECIPE,
        target: DiagnosticHeadline | None = None,
    ) -> Refinement:
        return Refinement(
            id=self._ids.new_id(REFINEMENT_ID_PREFIX),
            created_at=self._clock(),
            source=source,
            prompt=prompt,
            steps=tuple(steps),
            rollback=rollback,
            target=target,
        )

    def add_refinement(self, project: ProjectRecord, refinement: Refinement) -> ProjectRecord:
        plan = project.export_plan
        return replace(
            project,
            export_plan=replace(
                plan,
                refinements=prepend_bounded(plan.refinements, refinement, MAX_REFINEMENTS),
            ),
        )

    def record_patch(
        self,
        project: ProjectRecord,
        *,
        before: ArtifactSnapshot,
        after: ArtifactSnapshot,
        actions: Iterable[str],
        source: PatchSource,
        refine_id: str | None = None,
    ) -> tuple[ProjectRecord, PatchEntry]:
        entry = PatchEntry(
            id=self._ids.new_id(PATCH_ID_PREFIX),
            created_at=self._clock(),
            source=source,
            actions=tuple(actions),
            before=before,
            after=after,
            refine_id=refine_id,
        )
        plan = project.export_plan
        updated = replace(
            project,
            export_plan=replace(plan, patches=prepend_bounded(plan.patches, entry, MAX_PATCHES)),
        )
        return updated, entry

    def lock_fix(
        self,
        project: ProjectRecord,
        *,
        title: str,
        proof: LockProof,
        rule: str,
    ) -> tuple[ProjectRecord, LockedFix]:
        locked = LockedFix(
            id=self._ids.new_id(LOCKED_FIX_ID_PREFIX),
            created_at=self._clock(),
            title=title,
            proof=proof,
            rule=rule,
        )
        plan = project.export_plan
        updated = replace(
            project,
            export_plan=replace(
                plan,
                locked_fixes=prepend_bounded(plan.locked_fixes, locked, MAX_LOCKED_FIXES),
            ),
        )
        return updated, locked

    def rollback(self, project: ProjectRecord, patch_id: str) -> tuple[ProjectRecord, PatchEntry]:
        """Restore the ``before`` snapshot of ``patch_id`` and record the rollback."""

        if project.frozen:
            raise FrozenProjectError(project.id, project.frozen_reason)
        target = project.export_plan.find_patch(patch_id)
        if target is None:
            raise NotFoundError(f"patch {patch_id!r} not found on project {project.id!r}")

        current = ArtifactSnapshot.of(project)
        restored = replace(
            project,
            intent=target.before.intent,
            architecture=target.before.architecture,
            deployment_plan=target.before.deployment_plan,
        )
        updated, entry = self.record_patch(
            restored,
            before=current,
            after=target.before,
            actions=(f"Rolled back patch {patch_id}.",),
            source=PatchSource.ROLLBACK,
            refine_id=target.refine_id,
        )
        self._logger.info(
            "ledger_rollback",
            project_id=project.id,
            patch_id=patch_id,
            rollback_patch_id=entry.id,
        )
        return updated, entry

    def regressions(
        self,
        project: ProjectRecord,
        ranked_items: Iterable[DiagnosticItem],
    ) -> tuple[LockedFix, ...]:
        """Locked fixes whose ``beforeTop`` rule and area reappear among ``ranked_items``."""

        current = {(item.rule, item.area) for item in ranked_items if item.is_actionable}
        return tuple(
            locked
            for locked in project.export_plan.locked_fixes
            if locked.proof.before_top is not None
            and (locked.proof.before_top.rule, locked.proof.before_top.area) in current
        )


__all__ = ["PatchLedger", "ROLLBACK_RECIPE", "prepend_bounded"]
