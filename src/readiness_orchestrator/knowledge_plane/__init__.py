"""
readiness-orchestrator — knowledge plane

File: src/readiness_orchestrator/knowledge_plane/__init__.py
Last updated: 2026-10-19

Purpose
- Knowledge plane: the patch history and truth ledger kept on each project.

Functional requirements
- Must serve the autofix orchestrator, rollback and regression checks.
"""

from readiness_orchestrator.knowledge_plane.patch_ledger import (
    ROLLBACK_RECIPE,
    PatchLedger,
    prepend_bounded,
)

__all__ = ["PatchLedger", "ROLLBACK_RECIPE", "prepend_bounded"]
