"""
readiness-orchestrator — control plane

File: src/readiness_orchestrator/control_plane/__init__.py
Last updated: 2026-10-19

Purpose
- Control plane: the autofix step machine and the readiness service boundary.
"""

from readiness_orchestrator.control_plane.autofix import (
    AutofixOrchestrator,
    AutofixResult,
    AutofixStep,
)
from readiness_orchestrator.control_plane.service import (
    PatchOutcome,
    ReadinessService,
    RefinementOutcome,
    RollbackOutcome,
)

__all__ = [
    "AutofixOrchestrator",
    "AutofixResult",
    "AutofixStep",
    "PatchOutcome",
    "ReadinessService",
    "RefinementOutcome",
    "RollbackOutcome",
]
