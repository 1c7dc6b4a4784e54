"""Utility modules for the Industrial Safety Auditor."""

from auditor.utils.timing import Timer, LoopScheduler

__all__ = [
    "Timer",
    "LoopScheduler",
]
