"""
Sweep state tracker for the status sweeper.

This module persists the background sweep's cursor and counters so a
restarted process resumes where the previous one stopped.
"""

from datetime import UTC, datetime
from typing import Any

import structlog

from ..state.manager import DocumentStore

logger = structlog.get_logger(__name__)


class SweepCheckpoint:
    """Represents persisted sweep progress."""

    def __init__(
        self,
        cursor_index: int = 0,
        total_processed: int = 0,
        total_errors: int = 0,
        entity_count: int = 0,
        last_updated: str | None = None,
    ):
        self.cursor_index = cursor_index
        self.total_processed = total_processed
        self.total_errors = total_errors
        self.entity_count = entity_count
        self.last_updated = last_updated

    def is_valid_for(self, entity_count: int) -> bool:
        """
        Check whether this checkpoint can be resumed against a directory.

        Any change in directory size invalidates the saved position; the
        index is not translated.
        """
        return (
            self.entity_count == entity_count
            and 0 <= self.cursor_index <= entity_count
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "cursor_index": self.cursor_index,
            "total_processed": self.total_processed,
            "total_errors": self.total_errors,
            "entity_count": self.entity_count,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SweepCheckpoint":
        """Create SweepCheckpoint from dictionary."""
        return cls(
            cursor_index=int(data["cursor_index"]),
            total_processed=int(data.get("total_processed") or 0),
            total_errors=int(data.get("total_errors") or 0),
            entity_count=int(data.get("entity_count") or 0),
            last_updated=data.get("last_updated"),
        )

    def __repr__(self) -> str:
        return (
            f"SweepCheckpoint(cursor_index={self.cursor_index}, "
            f"entity_count={self.entity_count}, "
            f"total_processed={self.total_processed}, "
            f"total_errors={self.total_errors})"
        )


class SweepStateTracker:
    """
    Loads and saves the sweep checkpoint document.

    Persistence is best-effort: store failures are logged and reported
    as a missing checkpoint or a skipped save, never raised.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str = "appState",
        document_id: str = "sweepState",
    ):
        """
        Initialize the sweep state tracker.

        Args:
            store: Durable document store
            collection: Collection holding the checkpoint document
            document_id: Checkpoint document id
        """
        self.store = store
        self.collection = collection
        self.document_id = document_id

    async def load(self) -> SweepCheckpoint | None:
        """
        Load the saved checkpoint.

        Returns:
            The checkpoint, or None if absent, unreadable or malformed
        """
        try:
            data = await self.store.get_document(self.collection, self.document_id)
        except Exception as e:
            logger.error("Failed to load sweep checkpoint", error=str(e))
            return None

        if not data or data.get("cursor_index") is None:
            return None

        try:
            return SweepCheckpoint.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring malformed sweep checkpoint", error=str(e))
            return None

    async def save(self, checkpoint: SweepCheckpoint) -> bool:
        """
        Persist a checkpoint.

        Args:
            checkpoint: Progress to save; last_updated is stamped here

        Returns:
            True if the write succeeded
        """
        checkpoint.last_updated = datetime.now(UTC).isoformat()
        try:
            await self.store.set_document(
                self.collection, self.document_id, checkpoint.to_dict(), merge=True
            )
            return True
        except Exception as e:
            logger.error(
                "Failed to save sweep checkpoint",
                cursor_index=checkpoint.cursor_index,
                error=str(e),
            )
            return False
