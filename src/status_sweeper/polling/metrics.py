"""
Metrics collection for the background sweep.

This module keeps per-cycle counters and a bounded history of completed
cycles for monitoring.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class SweepCycleMetrics:
    """Metrics for a single pass over the entity list."""

    cycle_number: int
    entity_count: int
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    started_monotonic: float = field(default_factory=time.monotonic)
    duration: float | None = None
    processed: int = 0
    errors: int = 0
    quota_waits: int = 0
    last_error: str | None = None

    @property
    def duration_seconds(self) -> float:
        """Get cycle duration in seconds (so far, if still running)."""
        if self.duration is not None:
            return self.duration
        return time.monotonic() - self.started_monotonic

    @property
    def error_rate(self) -> float:
        """Get error rate as percentage of attempted fetches."""
        attempted = self.processed + self.errors
        return (self.errors / attempted * 100) if attempted > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_number": self.cycle_number,
            "entity_count": self.entity_count,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "processed": self.processed,
            "errors": self.errors,
            "quota_waits": self.quota_waits,
            "error_rate_percent": round(self.error_rate, 2),
            "last_error": self.last_error,
        }


class SweepMetrics:
    """Tracks the current sweep cycle and recent completed cycles."""

    def __init__(self, max_history: int = 20):
        self.max_history = max_history
        self.history: deque[SweepCycleMetrics] = deque(maxlen=max_history)
        self.current: SweepCycleMetrics | None = None
        self.cycles_completed = 0
        self._cycle_counter = 0

    def start_cycle(self, entity_count: int) -> SweepCycleMetrics:
        """Begin tracking a new cycle."""
        self._cycle_counter += 1
        self.current = SweepCycleMetrics(
            cycle_number=self._cycle_counter, entity_count=entity_count
        )
        return self.current

    def complete_cycle(self) -> SweepCycleMetrics | None:
        """Close the current cycle and move it into history."""
        cycle = self.current
        if cycle is None:
            return None

        cycle.end_time = datetime.now(UTC)
        cycle.duration = time.monotonic() - cycle.started_monotonic
        self.history.append(cycle)
        self.cycles_completed += 1
        self.current = None

        logger.info(
            "Sweep cycle metrics",
            cycle_number=cycle.cycle_number,
            duration_seconds=round(cycle.duration_seconds, 3),
            processed=cycle.processed,
            errors=cycle.errors,
            quota_waits=cycle.quota_waits,
        )
        return cycle

    def record_success(self, cycle: SweepCycleMetrics | None = None) -> None:
        """Count a fetch against the given cycle, or the current one."""
        cycle = cycle or self.current
        if cycle:
            cycle.processed += 1

    def record_error(self, error: str, cycle: SweepCycleMetrics | None = None) -> None:
        cycle = cycle or self.current
        if cycle:
            cycle.errors += 1
            cycle.last_error = error

    def record_quota_wait(self) -> None:
        if self.current:
            self.current.quota_waits += 1

    def get_summary(self) -> dict[str, Any]:
        """Get a monitoring summary of recent cycles."""
        completed = list(self.history)
        durations = [cycle.duration_seconds for cycle in completed]

        return {
            "cycles_completed": self.cycles_completed,
            "current_cycle": self.current.to_dict() if self.current else None,
            "last_cycle": completed[-1].to_dict() if completed else None,
            "avg_cycle_seconds": (
                round(sum(durations) / len(durations), 3) if durations else 0.0
            ),
        }
