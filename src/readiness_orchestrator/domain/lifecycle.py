"""Project lifecycle status as a tagged state with an explicit transition table.

This is the long-lived status of a project record. It is deliberately separate from
the step state of a single autofix invocation (see ``control_plane.autofix``).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

from readiness_orchestrator.domain.errors import InvalidTransitionError, ValidationError


class ProjectStatus(StrEnum):
    DRAFT = "draft"
    STRUCTURED = "structured"
    ARCHITECTED = "architected"
    TESTED = "tested"
    DIAGNOSED = "diagnosed"
    PATCHED = "patched"
    LOCKED = "locked"


TRANSITIONS: Final[dict[ProjectStatus, frozenset[ProjectStatus]]] = {
    ProjectStatus.DRAFT: frozenset(
        {ProjectStatus.STRUCTURED, ProjectStatus.ARCHITECTED, ProjectStatus.PATCHED}
    ),
    ProjectStatus.STRUCTURED: frozenset(
        {ProjectStatus.ARCHITECTED, ProjectStatus.TESTED, ProjectStatus.PATCHED}
    ),
    ProjectStatus.ARCHITECTED: frozenset(
        {ProjectStatus.TESTED, ProjectStatus.DIAGNOSED, ProjectStatus.PATCHED}
    ),
    ProjectStatus.TESTED: frozenset({ProjectStatus.DIAGNOSED, ProjectStatus.PATCHED}),
    ProjectStatus.DIAGNOSED: frozenset(
        {ProjectStatus.PATCHED, ProjectStatus.TESTED, ProjectStatus.LOCKED}
    ),
    ProjectStatus.PATCHED: frozenset({ProjectStatus.TESTED}),
    ProjectStatus.LOCKED: frozenset(
        {ProjectStatus.PATCHED, ProjectStatus.TESTED, ProjectStatus.DIAGNOSED}
    ),
}


def parse_status(value: object) -> ProjectStatus:
    """Parse a stored status label; ``None`` and blank labels mean ``draft``."""

    if isinstance(value, ProjectStatus):
        return value
    if value is None:
        return ProjectStatus.DRAFT
    if not isinstance(value, str):
        raise ValidationError(f"status must be a string, got {type(value).__name__}")
    label = value.strip().lower()
    if not label:
        return ProjectStatus.DRAFT
    try:
        return ProjectStatus(label)
    except ValueError:
        allowed = ", ".join(item.value for item in ProjectStatus)
        raise ValidationError(f"unknown status {value!r}; expected one of: {allowed}") from None


def can_transition(current: ProjectStatus, target: ProjectStatus) -> bool:
    if current is target:
        return True
    return target in TRANSITIONS[current]


def transition(current: ProjectStatus | str | None, target: ProjectStatus | str) -> ProjectStatus:
    """Return ``target`` when the move is allowed, else raise ``InvalidTransitionError``."""

    source = parse_status(current)
    destination = parse_status(target)
    if not can_transition(source, destination):
        raise InvalidTransitionError(source.value, destination.value)
    return destination


def advance(current: ProjectStatus, *path: ProjectStatus) -> ProjectStatus:
    """Walk ``path`` one transition at a time and return the final status."""

    status = current
    for step in path:
        status = transition(status, step)
    return status


__all__ = [
    "ProjectStatus",
    "TRANSITIONS",
    "advance",
    "can_transition",
    "parse_status",
    "transition",
]
