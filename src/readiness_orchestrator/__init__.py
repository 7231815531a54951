"""
readiness-orchestrator — package root

File: src/readiness_orchestrator/__init__.py
Last updated: 2026-10-19

Purpose
- Scores build plans for launch readiness, diagnoses gaps and applies guarded autofixes.

Notes
- Importing the package only exposes ``__version__``; config, logging and storage are
  set up by the CLI when a command runs.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
