"""
Status Sweeper

Quota-aware polling of a rate-limited status API: a resumable background
sweep over every tracked entity plus on-demand fetches for visible ones.
"""

__version__ = "0.1.0"

from .config import Settings
from .directory import EntityDirectory, EntityRecord, StoreEntityDirectory
from .exceptions import StatusSweeperError
from .polling import AdmissionController, DemandScheduler, ResultCache, SweepPoller
from .status_client import StatusClient

__all__ = [
    "Settings",
    "AdmissionController",
    "DemandScheduler",
    "EntityDirectory",
    "EntityRecord",
    "ResultCache",
    "StatusClient",
    "StatusSweeperError",
    "StoreEntityDirectory",
    "SweepPoller",
]
