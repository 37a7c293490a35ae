"""
Document store abstraction for the status sweeper.

Provides pluggable durable backends:
- Memory: process-local dictionaries, lost on restart
- JSON: a single JSON file on disk, survives restarts
"""

import asyncio
import copy
import json
import logging
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..exceptions import StoreError

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Abstract base class for durable document storage."""

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """
        Get a document by collection and id.

        Args:
            collection: Collection name (e.g., 'entities')
            doc_id: Document identifier

        Returns:
            Document dictionary or None if not found
        """
        pass

    @abstractmethod
    async def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        """
        Write a document.

        Args:
            collection: Collection name
            doc_id: Document identifier
            data: Fields to write
            merge: Shallow-merge into an existing document instead of replacing it
        """
        pass

    @abstractmethod
    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """
        Get all documents in a collection.

        Args:
            collection: Collection name

        Returns:
            List of document dictionaries in insertion order
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the store backend is healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass

    def get_memory_stats(self) -> dict[str, Any]:
        """Get memory usage statistics."""
        return {
            "collections_count": 0,
            "documents_count": 0,
            "memory_usage_bytes": 0,
        }


class InMemoryDocumentStore(DocumentStore):
    """In-memory document storage."""

    def __init__(self) -> None:
        """Initialize in-memory document store."""
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}

    async def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Get a copy of a document from memory."""
        document = self.collections.get(collection, {}).get(str(doc_id))
        return copy.deepcopy(document) if document is not None else None

    async def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        """Set a document in memory."""
        _apply_write(self.collections, collection, str(doc_id), data, merge)
        logger.debug(f"Set document {collection}/{doc_id}")

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """Get copies of all documents in a collection."""
        return [
            copy.deepcopy(document)
            for document in self.collections.get(collection, {}).values()
        ]

    async def health_check(self) -> bool:
        """Check if in-memory store is healthy (always true for memory)."""
        return True

    def get_memory_stats(self) -> dict[str, Any]:
        """Get memory usage statistics."""
        return {
            "collections_count": len(self.collections),
            "documents_count": sum(len(docs) for docs in self.collections.values()),
            "memory_usage_bytes": sys.getsizeof(self.collections),
        }


class JsonFileDocumentStore(DocumentStore):
    """
    Document storage persisted to a single JSON file.

    The whole file is rewritten on every write through a temporary file
    and an atomic rename, so a crash leaves either the old or the new
    contents on disk.
    """

    def __init__(self, path: str | Path) -> None:
        """
        Initialize the JSON file document store.

        Args:
            path: Location of the JSON file; created on first write
        """
        self.path = Path(path)
        self._collections: dict[str, dict[str, dict[str, Any]]] | None = None
        self._lock = asyncio.Lock()

    async def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Get a copy of a document from the file."""
        async with self._lock:
            collections = await self._load()
            document = collections.get(collection, {}).get(str(doc_id))
            return copy.deepcopy(document) if document is not None else None

    async def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        """Write a document and flush the file; nothing changes if the flush fails."""
        async with self._lock:
            collections = copy.deepcopy(await self._load())
            _apply_write(collections, collection, str(doc_id), data, merge)
            await asyncio.to_thread(self._flush, collections)
            self._collections = collections

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """Get copies of all documents in a collection."""
        async with self._lock:
            collections = await self._load()
            return [
                copy.deepcopy(document)
                for document in collections.get(collection, {}).values()
            ]

    async def health_check(self) -> bool:
        """Check that the backing file can be read."""
        try:
            async with self._lock:
                await self._load()
            return True
        except StoreError as e:
            logger.error(f"JSON store health check failed: {e}")
            return False

    async def _load(self) -> dict[str, dict[str, dict[str, Any]]]:
        if self._collections is None:
            self._collections = await asyncio.to_thread(self._read)
        return self._collections

    def _read(self) -> dict[str, dict[str, dict[str, Any]]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(
                f"Failed to read store file {self.path}: {e}",
                context={"path": str(self.path)},
            ) from e

        if not isinstance(data, dict):
            raise StoreError(f"Store file {self.path} does not hold a JSON object")
        return data

    def _flush(self, collections: dict[str, dict[str, dict[str, Any]]]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(collections, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError) as e:
            raise StoreError(
                f"Failed to write store file {self.path}: {e}",
                context={"path": str(self.path)},
            ) from e


def _apply_write(
    collections: dict[str, dict[str, dict[str, Any]]],
    collection: str,
    doc_id: str,
    data: dict[str, Any],
    merge: bool,
) -> None:
    documents = collections.setdefault(collection, {})
    existing = documents.get(doc_id)
    if merge and existing is not None:
        updated = dict(existing)
        updated.update(copy.deepcopy(data))
    else:
        updated = copy.deepcopy(data)
    documents[doc_id] = updated


class DocumentStoreFactory:
    """Factory for creating the configured document store backend."""

    @staticmethod
    def create_store(backend: str, **kwargs: Any) -> DocumentStore:
        """
        Create document store instance based on backend name.

        Args:
            backend: Backend name ('memory' or 'json')
            **kwargs: Backend options ('path' for the json backend)

        Returns:
            DocumentStore instance

        Raises:
            ValueError: If backend is not supported
        """
        backend = backend.lower()

        if backend == "memory":
            logger.info("Creating in-memory document store")
            return InMemoryDocumentStore()
        elif backend == "json":
            path = kwargs.get("path") or "./status_sweeper.json"
            logger.info(f"Creating JSON document store at {path}")
            return JsonFileDocumentStore(path)
        else:
            raise ValueError(
                f"Unknown store backend: {backend}. Supported backends: 'memory', 'json'"
            )

    @staticmethod
    def get_supported_backends() -> list[str]:
        """Get list of supported store backends."""
        return ["memory", "json"]
