"""
readiness-orchestrator — domain layer

File: src/readiness_orchestrator/domain/__init__.py
Last updated: 2026-10-19

Purpose
- Domain types shared across planes: ProjectRecord, diagnostics, test plans, ledger entries.

What should be included in this file
- Re-export of core domain entities for convenience.
- Keep domain layer free of IO side effects.

Functional requirements
- Domain objects must be serializable and versioned.

Non-functional requirements
- Domain layer should have minimal dependencies.
"""

from __future__ import annotations

from readiness_orchestrator.domain.errors import (
    ConcurrentModificationError,
    FrozenProjectError,
    InvalidTransitionError,
    NoDiagnosticsError,
    NotFoundError,
    PersistenceError,
    ReadinessError,
    ValidationError,
)
from readiness_orchestrator.domain.lifecycle import ProjectStatus
from readiness_orchestrator.domain.models import (
    ArtifactSnapshot,
    Badge,
    DiagnosticHeadline,
    DiagnosticItem,
    DiagnosticsReport,
    ExportPlan,
    LockedFix,
    LockProof,
    PatchEntry,
    PatchSource,
    ProjectRecord,
    RankedDiagnosticItem,
    Refinement,
    RefinementSource,
    ScanIssue,
    ScanReport,
    Severity,
    TestArea,
    TestCase,
    TestPlan,
    TestRisk,
    TestStatus,
    TestSummary,
)

__all__ = [
    "ArtifactSnapshot",
    "Badge",
    "ConcurrentModificationError",
    "DiagnosticHeadline",
    "DiagnosticItem",
    "DiagnosticsReport",
    "ExportPlan",
    "FrozenProjectError",
    "InvalidTransitionError",
    "LockProof",
    "LockedFix",
    "NoDiagnosticsError",
    "NotFoundError",
    "PatchEntry",
    "PatchSource",
    "PersistenceError",
    "ProjectRecord",
    "ProjectStatus",
    "RankedDiagnosticItem",
    "ReadinessError",
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
    "ValidationError",
]
