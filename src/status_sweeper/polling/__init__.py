"""
Scheduling core for the status sweeper.

This package contains the credential admission controller, the result
cache, the resumable background sweep and the demand scheduler.
"""

from .cache import ResultCache
from .demand import DemandResult, DemandScheduler
from .rate_limiter import AdmissionController
from .state_tracker import SweepCheckpoint, SweepStateTracker
from .sweep import SweepPoller, SweepState

__all__ = [
    "AdmissionController",
    "DemandResult",
    "DemandScheduler",
    "ResultCache",
    "SweepCheckpoint",
    "SweepPoller",
    "SweepState",
    "SweepStateTracker",
]
