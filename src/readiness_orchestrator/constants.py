"""Stable constants shared across the engine, control plane, and persistence."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
STATE_DB_SCHEMA_VERSION: Final[int] = 1
PROJECT_DOCUMENT_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the working directory unless overridden by config).
STATE_DIR: Final[PurePosixPath] = PurePosixPath("state")
DEFAULT_DB_PATH: Final[PurePosixPath] = STATE_DIR / "readiness.sqlite"
LOG_DIR: Final[PurePosixPath] = PurePosixPath("logs")

# Bounded history lists on the export plan; newest entry first.
MAX_REFINEMENTS: Final[int] = 20
MAX_PATCHES: Final[int] = 30
MAX_LOCKED_FIXES: Final[int] = 50

# Readiness pillar weights for the overall score.
PILLAR_WEIGHTS: Final[dict[str, float]] = {
    "intent": 0.25,
    "architecture": 0.30,
    "tests": 0.20,
    "scan": 0.25,
}

# Badge thresholds: red < AMBER_THRESHOLD <= amber < GREEN_THRESHOLD <= green.
AMBER_THRESHOLD: Final[int] = 60
GREEN_THRESHOLD: Final[int] = 80
MAX_NEXT_ACTIONS: Final[int] = 6

# ROI ranking.
ROI_TIME_SCALE_MINUTES: Final[int] = 120
ROI_MIN_MINUTES: Final[int] = 5

# Virtual test generation caps.
MAX_FLOW_CASES: Final[int] = 8
MAX_ACCEPTANCE_CASES: Final[int] = 20
MAX_FAILING_CASE_DIAGNOSTICS: Final[int] = 6

# Scan score below this threshold is reported as a thin scan.
SCAN_THIN_THRESHOLD: Final[int] = 60

# Free-text keywords that unlock deployment-plan synthesis.
DEFAULT_DEPLOY_KEYWORDS: Final[tuple[str, ...]] = ("deploy", "vercel")

AGENT_BUILD_TYPES: Final[frozenset[str]] = frozenset({"agent", "workflow"})

__all__ = [
    "AGENT_BUILD_TYPES",
    "AMBER_THRESHOLD",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_DB_PATH",
    "DEFAULT_DEPLOY_KEYWORDS",
    "GREEN_THRESHOLD",
    "LOG_DIR",
    "MAX_ACCEPTANCE_CASES",
    "MAX_FAILING_CASE_DIAGNOSTICS",
    "MAX_FLOW_CASES",
    "MAX_LOCKED_FIXES",
    "MAX_NEXT_ACTIONS",
    "MAX_PATCHES",
    "MAX_REFINEMENTS",
    "PILLAR_WEIGHTS",
    "PROJECT_DOCUMENT_SCHEMA_VERSION",
    "ROI_MIN_MINUTES",
    "ROI_TIME_SCALE_MINUTES",
    "SCAN_THIN_THRESHOLD",
    "STATE_DB_SCHEMA_VERSION",
    "STATE_DIR",
]
