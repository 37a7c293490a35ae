"""
Demand scheduler for the status sweeper.

Fetches status for the entities an observer is currently looking at,
ahead of the background sweep, and serves repeat requests from the
result cache while it is fresh.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from ..config import DemandConfig
from ..status_client import StatusClient
from .cache import ResultCache
from .rate_limiter import AdmissionController
from .timer import PeriodicTimer

logger = structlog.get_logger(__name__)


@dataclass
class DemandResult:
    """Outcome delivered to the observer for one entity."""

    entity_id: str
    snapshot: dict[str, Any] | None = None
    error: str | None = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


DemandObserver = Callable[[DemandResult], None]


class DemandScheduler:
    """
    Visibility-driven fetch queue.

    The queue is an insertion-ordered set: an entity is queued at most
    once and is removed as soon as it stops being visible. The drain
    timer pops one entity per tick; the re-scan timer re-queues visible
    entities whose cached snapshot has gone stale.
    """

    def __init__(
        self,
        admission: AdmissionController,
        cache: ResultCache,
        status_client: StatusClient,
        config: DemandConfig | None = None,
        observer: DemandObserver | None = None,
    ):
        self.admission = admission
        self.cache = cache
        self.status_client = status_client
        self.config = config or DemandConfig()
        self.observer = observer

        self.visible: set[str] = set()
        self._queue: dict[str, None] = {}
        self._running = False
        self._drain_timer = PeriodicTimer("demand-drain", self.tick)
        self._rescan_timer = PeriodicTimer("demand-rescan", self.rescan)

    @property
    def pending(self) -> list[str]:
        """Queued entity ids in drain order."""
        return list(self._queue)

    def is_running(self) -> bool:
        return self._running

    async def init(self) -> None:
        """Start the drain and re-scan timers."""
        if self._running:
            return

        self._running = True
        self.admission.add_listener(self._on_pool_changed)
        self._drain_timer.start(self._interval_seconds())
        self._rescan_timer.start(self.config.rescan_seconds, fire_immediately=False)
        logger.info(
            "Demand scheduler started",
            interval_ms=self.admission.effective_interval_ms(),
            rescan_seconds=self.config.rescan_seconds,
        )

    async def destroy(self) -> None:
        """Stop both timers and drop pending work; the cache is kept."""
        self.admission.remove_listener(self._on_pool_changed)
        await self._drain_timer.stop()
        await self._rescan_timer.stop()
        self._queue.clear()
        self._running = False
        logger.info("Demand scheduler stopped")

    def become_visible(self, entity_id: str | int) -> None:
        """Mark an entity as in view and queue it if it needs a fetch."""
        entity_id = str(entity_id)
        self.visible.add(entity_id)
        self.enqueue_if_due(entity_id)

    def become_hidden(self, entity_id: str | int) -> None:
        """Mark an entity as out of view and drop any pending fetch for it."""
        entity_id = str(entity_id)
        self.visible.discard(entity_id)
        self._queue.pop(entity_id, None)

    def enqueue_if_due(self, entity_id: str) -> bool:
        """
        Queue an entity unless it is hidden, cached or already queued.

        A fresh cached snapshot is delivered to the observer instead.

        Returns:
            True if the entity was appended to the queue
        """
        if entity_id not in self.visible:
            return False

        cached = self.cache.get(entity_id)
        if cached is not None:
            self._notify(DemandResult(entity_id, snapshot=cached, from_cache=True))
            return False

        if entity_id in self._queue:
            return False

        self._queue[entity_id] = None
        return True

    async def rescan(self) -> None:
        """Re-evaluate every visible entity so on-screen data stays fresh."""
        queued = sum(1 for entity_id in list(self.visible) if self.enqueue_if_due(entity_id))
        if queued:
            logger.debug("Demand re-scan queued entities", queued=queued)

    async def tick(self) -> None:
        """Fetch the entity at the head of the queue."""
        if not self._queue:
            return

        entity_id = next(iter(self._queue))
        del self._queue[entity_id]

        if entity_id not in self.visible:
            logger.debug("Dropping hidden entity from demand queue", entity_id=entity_id)
            return

        credential = self.admission.reserve()
        if credential is None:
            # Not re-queued here; the next re-scan picks it up again
            logger.debug("Quota exhausted, deferring demand fetch", entity_id=entity_id)
            return

        try:
            snapshot = await self.status_client.fetch_status(entity_id, credential)
        except Exception as e:
            logger.warning("Demand fetch failed", entity_id=entity_id, error=str(e))
            self._notify(DemandResult(entity_id, error=str(e)))
            return

        self.cache.put(entity_id, snapshot)
        self._notify(DemandResult(entity_id, snapshot=snapshot))

    def _notify(self, result: DemandResult) -> None:
        if self.observer is None:
            return
        try:
            self.observer(result)
        except Exception as e:
            logger.error(
                "Demand observer failed", entity_id=result.entity_id, error=str(e)
            )

    def _interval_seconds(self) -> float:
        return self.admission.effective_interval_ms() / 1000

    def _on_pool_changed(self) -> None:
        self._drain_timer.restart(self._interval_seconds())

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "running": self._running,
            "visible_count": len(self.visible),
            "pending_count": len(self._queue),
            "interval_ms": self.admission.effective_interval_ms(),
            "cache": self.cache.get_stats(),
        }
