"""
Background sweep poller for the status sweeper.

This module re-polls every entity in the directory, one entity per tick,
forever. Progress is checkpointed after every tick that spent a
credential so a restarted process resumes at the same position.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog

from ..config import SweepConfig
from ..directory import EntityDirectory
from ..exceptions import DirectoryEmptyError
from ..state.manager import DocumentStore
from ..status_client import StatusClient
from .metrics import SweepMetrics
from .rate_limiter import AdmissionController
from .state_tracker import SweepCheckpoint, SweepStateTracker
from .timer import PeriodicTimer

logger = structlog.get_logger(__name__)

StatusListener = Callable[[str], None]


class SweepState(str, Enum):
    """Lifecycle of the sweep poller."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    RUNNING = "running"
    HALTED = "halted"


class SweepPoller:
    """
    Resumable full sweep over the entity directory.

    The entity list is captured once when the sweep loads; directory
    changes are picked up on the next init(). A checkpoint is only
    resumed if it was written against a directory of the same size.
    """

    def __init__(
        self,
        admission: AdmissionController,
        directory: EntityDirectory,
        status_client: StatusClient,
        store: DocumentStore,
        config: SweepConfig | None = None,
        on_status: StatusListener | None = None,
        metrics: SweepMetrics | None = None,
    ):
        """
        Initialize the sweep poller.

        Args:
            admission: Shared credential admission controller
            directory: Source of the ordered entity list
            status_client: Remote status API client
            store: Durable store for entity records and the checkpoint
            config: Collection and document names
            on_status: Optional callback receiving human-readable status lines
            metrics: Optional metrics collector
        """
        self.admission = admission
        self.directory = directory
        self.status_client = status_client
        self.store = store
        self.config = config or SweepConfig()
        self.on_status = on_status
        self.metrics = metrics or SweepMetrics()
        self.state_tracker = SweepStateTracker(
            store,
            collection=self.config.checkpoint_collection,
            document_id=self.config.checkpoint_document,
        )

        self.state = SweepState.UNINITIALIZED
        self.entity_ids: list[str] = []
        self.cursor_index = 0
        self.total_processed = 0
        self.total_errors = 0
        self.started_at: float | None = None
        self.last_status = ""

        self._timer = PeriodicTimer("sweep", self.tick)

    @property
    def entity_count(self) -> int:
        return len(self.entity_ids)

    def is_running(self) -> bool:
        return self.state is SweepState.RUNNING

    async def init(self) -> None:
        """Load the directory and checkpoint, then start ticking."""
        if self.state is not SweepState.UNINITIALIZED:
            logger.debug("Sweep already initialized", state=self.state.value)
            return

        self.state = SweepState.LOADING
        self.started_at = time.monotonic()
        self._report("Initializing... loading entity directory.")

        try:
            entity_ids = await self._load_entities()
        except DirectoryEmptyError as e:
            self.state = SweepState.HALTED
            self._report(str(e))
            return
        except Exception as e:
            self.state = SweepState.HALTED
            logger.error("Failed to load entity directory", error=str(e))
            self._report(f"Error loading entities: {e}")
            return

        checkpoint = await self.state_tracker.load()

        # destroy() may have run while we were awaiting the store
        if self.state is not SweepState.LOADING:
            return

        self.entity_ids = entity_ids
        self._resume_from(checkpoint)
        self.metrics.start_cycle(self.entity_count)

        self.state = SweepState.RUNNING
        self.admission.add_listener(self._on_pool_changed)
        self._timer.start(self._interval_seconds())

    async def destroy(self) -> None:
        """Stop ticking. Persisted progress is left untouched."""
        self.admission.remove_listener(self._on_pool_changed)
        await self._timer.stop()
        self.state = SweepState.UNINITIALIZED
        logger.info(
            "Sweep stopped",
            cursor_index=self.cursor_index,
            entity_count=self.entity_count,
        )

    async def _load_entities(self) -> list[str]:
        entity_ids = await self.directory.list_entity_ids()
        if not entity_ids:
            raise DirectoryEmptyError("No entities found in directory. Nothing to do.")
        return entity_ids

    def _resume_from(self, checkpoint: SweepCheckpoint | None) -> None:
        entity_count = self.entity_count

        if checkpoint is None:
            self._reset_progress()
            self._report(
                f"Loaded {entity_count} entities. Starting update cycle...",
                entity_count=entity_count,
            )
            return

        if not checkpoint.is_valid_for(entity_count):
            logger.info(
                "Discarding sweep checkpoint",
                checkpoint=repr(checkpoint),
                entity_count=entity_count,
            )
            self._reset_progress()
            self._report(
                f"Loaded {entity_count} entities. Entity list changed since last "
                "run. Starting fresh update cycle...",
                entity_count=entity_count,
            )
            return

        self.cursor_index = checkpoint.cursor_index
        self.total_processed = checkpoint.total_processed
        self.total_errors = checkpoint.total_errors
        if self.cursor_index >= entity_count:
            position = "end of cycle, wrapping to start"
        else:
            position = f"entity {self.cursor_index + 1}/{entity_count}"
        self._report(
            f"Loaded {entity_count} entities. Resuming from {position}...",
            entity_count=entity_count,
            cursor_index=self.cursor_index,
        )

    def _reset_progress(self) -> None:
        self.cursor_index = 0
        self.total_processed = 0
        self.total_errors = 0

    async def tick(self) -> None:
        """Process the entity under the cursor, if quota allows."""
        if not self.entity_ids:
            self._report("No entities to process.")
            return

        credential = self.admission.reserve()
        if credential is None:
            self.metrics.record_quota_wait()
            self._report("Waiting for quota...", level="debug")
            return

        if self.cursor_index >= self.entity_count:
            await self._complete_cycle()

        entity_id = self.entity_ids[self.cursor_index]
        self.cursor_index += 1
        progress = f"Processing {self.cursor_index}/{self.entity_count}: entity {entity_id}"
        cycle = self.metrics.current

        try:
            snapshot = await self.status_client.fetch_status(entity_id, credential)
            await self._persist_entity_status(entity_id, snapshot)
        except Exception as e:
            self.total_errors += 1
            self.metrics.record_error(str(e), cycle)
            self._report(
                f"{progress} failed: {e}",
                level="warning",
                entity_id=entity_id,
                total_processed=self.total_processed,
                total_errors=self.total_errors,
            )
            # Saved anyway so the failing entity waits for the next cycle
            await self._save_checkpoint()
            return

        self.total_processed += 1
        self.metrics.record_success(cycle)
        self._report(
            f"{progress} ok",
            level="debug",
            entity_id=entity_id,
            total_processed=self.total_processed,
            total_errors=self.total_errors,
        )
        await self._save_checkpoint()

    async def _complete_cycle(self) -> None:
        self.cursor_index = 0
        cycle = self.metrics.complete_cycle()
        elapsed = int(cycle.duration_seconds) if cycle else 0
        self._report(
            f"Completed full cycle of {self.entity_count} entities. "
            f"Restarting from beginning... Total processed: {self.total_processed}, "
            f"total errors: {self.total_errors}, time elapsed: {elapsed}s",
            entity_count=self.entity_count,
            total_processed=self.total_processed,
            total_errors=self.total_errors,
            elapsed_seconds=elapsed,
        )
        self.metrics.start_cycle(self.entity_count)
        await self._save_checkpoint()

    async def _persist_entity_status(
        self, entity_id: str, snapshot: dict[str, Any]
    ) -> None:
        current = snapshot.get("current")
        if current is None:
            current = snapshot.get("score")

        await self.store.set_document(
            self.config.entity_collection,
            entity_id,
            {
                "status_current": current,
                "status_snapshot": snapshot,
                "status_updated_at": datetime.now(UTC).isoformat(),
            },
            merge=True,
        )

    async def _save_checkpoint(self) -> None:
        await self.state_tracker.save(
            SweepCheckpoint(
                cursor_index=self.cursor_index,
                total_processed=self.total_processed,
                total_errors=self.total_errors,
                entity_count=self.entity_count,
            )
        )

    def _interval_seconds(self) -> float:
        return self.admission.effective_interval_ms() / 1000

    def _on_pool_changed(self) -> None:
        interval = self._interval_seconds()
        logger.info("Restarting sweep timer", interval_seconds=interval)
        self._timer.restart(interval)

    def _report(self, message: str, level: str = "info", **fields: Any) -> None:
        self.last_status = message
        getattr(logger, level)(message, **fields)
        if self.on_status is not None:
            try:
                self.on_status(message)
            except Exception as e:
                logger.error("Status listener failed", error=str(e))

    def get_status(self) -> dict[str, Any]:
        """Get sweep progress for monitoring."""
        elapsed = time.monotonic() - self.started_at if self.started_at else 0.0
        return {
            "state": self.state.value,
            "cursor_index": self.cursor_index,
            "entity_count": self.entity_count,
            "total_processed": self.total_processed,
            "total_errors": self.total_errors,
            "interval_ms": self.admission.effective_interval_ms(),
            "elapsed_seconds": round(elapsed, 1),
            "last_status": self.last_status,
            "metrics": self.metrics.get_summary(),
        }
