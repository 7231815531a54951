"""
Patch planner: the minimal safe structural fill for absent artifacts.

The planner only ever fills intent, architecture and deployment plan when they are
absent. It never edits an existing document, so applying a plan and planning again
always yields an empty plan.

It integrates with:
- `SkeletonRenderer` for fixed Jinja2/YAML skeletons
- `AutofixOrchestrator` and `ReadinessService.apply_refinement`
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Final

import structlog

from readiness_orchestrator.constants import DEFAULT_DEPLOY_KEYWORDS
from readiness_orchestrator.domain.models import ArtifactSnapshot, CanonicalModel
from readiness_orchestrator.engine.skeletons import SkeletonRenderer

if TYPE_CHECKING:
    from collections.abc import Iterable

    from readiness_orchestrator.domain.models import ProjectRecord

ACTION_FILL_INTENT: Final[str] = "Filled intent document with minimal safe skeleton."
ACTION_FILL_ARCHITECTURE: Final[str] = "Filled architecture document with minimal safe skeleton."
ACTION_FILL_DEPLOYMENT: Final[str] = (
    "Generated minimal deployment plan (intent text indicated deploy)."
)


@dataclass(frozen=True, slots=True)
class PatchPlan(CanonicalModel):
    """Proposed changes; ``None`` in ``changes`` means the field is left alone."""

    changes: ArtifactSnapshot = field(default_factory=ArtifactSnapshot)
    actions: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.actions


class PatchPlanner:
    """Compute and apply idempotent structural patches."""

    def __init__(
        self,
        *,
        renderer: SkeletonRenderer | None = None,
        deploy_keywords: Iterable[str] = DEFAULT_DEPLOY_KEYWORDS,
        logger: Any | None = None,
    ) -> None:
        keywords = tuple(keyword.strip().lower() for keyword in deploy_keywords)
        if not keywords or any(not keyword for keyword in keywords):
            raise ValueError("deploy_keywords must be non-empty strings")
        self._renderer = renderer if renderer is not None else SkeletonRenderer()
        self._deploy_keywords = keywords
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def deploy_keywords(self) -> tuple[str, ...]:
        return self._deploy_keywords

    def wants_deployment(self, intent_text: str) -> bool:
        lowered = intent_text.lower()
        return any(keyword in lowered for keyword in self._deploy_keywords)

    def plan(self, project: ProjectRecord, intent_text: str = "") -> PatchPlan:
        intent = None
        architecture = None
        deployment_plan = None
        actions: list[str] = []

        if project.intent is None:
            intent = self._renderer.intent(project.build_type)
            actions.append(ACTION_FILL_INTENT)
        if project.architecture is None:
            architecture = self._renderer.architecture(project.build_type)
            actions.append(ACTION_FILL_ARCHITECTURE)
        if project.deployment_plan is None and self.wants_deployment(intent_text):
            deployment_plan = self._renderer.deployment_plan(project.title)
            actions.append(ACTION_FILL_DEPLOYMENT)

        plan = PatchPlan(
            changes=ArtifactSnapshot(
                intent=intent,
                architecture=architecture,
                deployment_plan=deployment_plan,
            ),
            actions=tuple(actions),
        )
        self._logger.info("patch_planned", project_id=project.id, actions=len(plan.actions))
        return plan

    def apply(self, project: ProjectRecord, plan: PatchPlan) -> ProjectRecord:
        """Return a copy of ``project`` with absent artifacts filled from ``plan``."""

        changes = plan.changes
        return replace(
            project,
            intent=project.intent if project.intent is not None else changes.intent,
            architecture=(
                project.architecture
                if project.architecture is not None
                else changes.architecture
            ),
            deployment_plan=(
                project.deployment_plan
                if project.deployment_plan is not None
                else changes.deployment_plan
            ),
        )


__all__ = [
    "ACTION_FILL_ARCHITECTURE",
    "ACTION_FILL_DEPLOYMENT",
    "ACTION_FILL_INTENT",
    "PatchPlan",
    "PatchPlanner",
]
