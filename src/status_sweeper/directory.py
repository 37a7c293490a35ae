"""
Entity directory for the status sweeper.

The directory lists every trackable entity, ordered descending by rank.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import structlog

from .state.manager import DocumentStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EntityRecord:
    """A trackable entity and its ranking."""

    entity_id: str
    rank: float = 0.0


class EntityDirectory(ABC):
    """Abstract source of the ordered entity list."""

    @abstractmethod
    async def list_entities(self) -> list[EntityRecord]:
        """Return all entities ordered descending by rank."""
        pass

    async def list_entity_ids(self) -> list[str]:
        """Return entity ids in directory order."""
        return [record.entity_id for record in await self.list_entities()]


class StaticEntityDirectory(EntityDirectory):
    """Directory over a fixed list of records, mostly for embedding and tests."""

    def __init__(self, records: list[EntityRecord] | None = None) -> None:
        self.records = list(records or [])

    async def list_entities(self) -> list[EntityRecord]:
        return sorted(self.records, key=lambda record: record.rank, reverse=True)


class StoreEntityDirectory(EntityDirectory):
    """Directory backed by a collection in the document store."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str = "entities",
        id_field: str = "entity_id",
        rank_field: str = "rank",
    ):
        self.store = store
        self.collection = collection
        self.id_field = id_field
        self.rank_field = rank_field

    async def list_entities(self) -> list[EntityRecord]:
        documents = await self.store.list_documents(self.collection)

        records = []
        skipped = 0
        for document in documents:
            record = self._to_record(document)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        if skipped:
            logger.warning(
                "Skipped entity documents without an id",
                collection=self.collection,
                skipped=skipped,
            )

        # sorted() is stable, so equal ranks keep store order
        return sorted(records, key=lambda record: record.rank, reverse=True)

    def _to_record(self, document: dict[str, Any]) -> EntityRecord | None:
        entity_id = document.get(self.id_field)
        if entity_id is None or entity_id == "":
            return None

        rank = document.get(self.rank_field) or 0
        try:
            rank = float(rank)
        except (TypeError, ValueError):
            rank = 0.0

        return EntityRecord(entity_id=str(entity_id), rank=rank)
