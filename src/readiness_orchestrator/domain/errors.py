"""Error taxonomy shared by the engine, the orchestration boundary, and persistence."""

from __future__ import annotations


class ReadinessError(Exception):
    """Base class for every error raised by readiness operations."""


class ValidationError(ReadinessError, ValueError):
    """Missing or malformed identifier/input; raised before any computation."""


class FrozenProjectError(ValidationError):
    """A mutating operation was attempted on a frozen project."""

    def __init__(self, project_id: str, reason: str | None = None) -> None:
        self.project_id = project_id
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"project {project_id!r} is frozen{detail}; unfreeze it to modify artifacts")


class InvalidTransitionError(ValidationError):
    """A lifecycle status change is not allowed by the transition table."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"status transition {current!r} -> {target!r} is not allowed")


class NotFoundError(ReadinessError, LookupError):
    """A referenced project, patch, or refinement does not exist."""


class NoDiagnosticsError(ReadinessError):
    """Autofix was invoked but no actionable diagnostic is ranked."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"project {project_id!r} has no diagnostic items to fix")


class PersistenceError(ReadinessError, RuntimeError):
    """The persistence collaborator failed to read or write a record."""


class ConcurrentModificationError(PersistenceError):
    """Optimistic version check failed because another writer saved first."""

    def __init__(self, project_id: str, *, expected: int, actual: int | None) -> None:
        self.project_id = project_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"project {project_id!r} version mismatch: expected {expected}, found {actual}"
        )


__all__ = [
    "ConcurrentModificationError",
    "FrozenProjectError",
    "InvalidTransitionError",
    "NoDiagnosticsError",
    "NotFoundError",
    "PersistenceError",
    "ReadinessError",
    "ValidationError",
]
