"""LCA calculation engine and its step implementations."""

from .engine import STEP_DEFINITIONS, LCACalculationEngine
from .sessions import CompletedOlderThan, EvictionPolicy, FinishedOlderThan, SessionStore

__all__ = [
    "CompletedOlderThan",
    "EvictionPolicy",
    "FinishedOlderThan",
    "LCACalculationEngine",
    "STEP_DEFINITIONS",
    "SessionStore",
]
