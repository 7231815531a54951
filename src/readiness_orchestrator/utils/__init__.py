"""Utility exports for concurrency and rounding helpers."""

from readiness_orchestrator.utils.concurrency import KeyedLock
from readiness_orchestrator.utils.rounding import clamp_score, round_half_up, round_half_up_int

__all__ = [
    "KeyedLock",
    "clamp_score",
    "round_half_up",
    "round_half_up_int",
]
