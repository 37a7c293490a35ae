"""
Tests for the document store backends.

Covers the in-memory backend, the JSON file backend and the factory.
"""

import json

import pytest

from status_sweeper.exceptions import StoreError
from status_sweeper.state.manager import (
    DocumentStoreFactory,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
)


class TestInMemoryDocumentStore:
    """Test the InMemoryDocumentStore implementation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = InMemoryDocumentStore()

    @pytest.mark.asyncio
    async def test_document_storage_and_retrieval(self):
        await self.store.set_document("entities", "1", {"entity_id": "1", "rank": 5})

        document = await self.store.get_document("entities", "1")

        assert document == {"entity_id": "1", "rank": 5}

    @pytest.mark.asyncio
    async def test_missing_document_returns_none(self):
        assert await self.store.get_document("entities", "404") is None

    @pytest.mark.asyncio
    async def test_merge_keeps_existing_fields(self):
        await self.store.set_document("entities", "1", {"entity_id": "1", "rank": 5})
        await self.store.set_document("entities", "1", {"status_current": 10})

        document = await self.store.get_document("entities", "1")

        assert document == {"entity_id": "1", "rank": 5, "status_current": 10}

    @pytest.mark.asyncio
    async def test_write_without_merge_replaces(self):
        await self.store.set_document("entities", "1", {"entity_id": "1", "rank": 5})
        await self.store.set_document(
            "entities", "1", {"status_current": 10}, merge=False
        )

        assert await self.store.get_document("entities", "1") == {"status_current": 10}

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self):
        await self.store.set_document("entities", "1", {"nested": {"a": 1}})

        document = await self.store.get_document("entities", "1")
        document["nested"]["a"] = 2

        assert await self.store.get_document("entities", "1") == {"nested": {"a": 1}}

    @pytest.mark.asyncio
    async def test_list_documents_in_insertion_order(self):
        for doc_id in ("b", "a", "c"):
            await self.store.set_document("entities", doc_id, {"entity_id": doc_id})

        documents = await self.store.list_documents("entities")

        assert [d["entity_id"] for d in documents] == ["b", "a", "c"]
        assert await self.store.list_documents("unknown") == []

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await self.store.health_check() is True

    @pytest.mark.asyncio
    async def test_memory_stats(self):
        await self.store.set_document("entities", "1", {})
        await self.store.set_document("appState", "sweepState", {})

        stats = self.store.get_memory_stats()

        assert stats["collections_count"] == 2
        assert stats["documents_count"] == 2


class TestJsonFileDocumentStore:
    """Test the JsonFileDocumentStore implementation."""

    @pytest.mark.asyncio
    async def test_documents_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "store.json"
        store = JsonFileDocumentStore(path)
        await store.set_document("appState", "sweepState", {"cursor_index": 4})

        reopened = JsonFileDocumentStore(path)

        assert await reopened.get_document("appState", "sweepState") == {
            "cursor_index": 4
        }
        assert json.loads(path.read_text())["appState"]["sweepState"] == {
            "cursor_index": 4
        }

    @pytest.mark.asyncio
    async def test_missing_file_reads_as_empty(self, tmp_path):
        store = JsonFileDocumentStore(tmp_path / "missing.json")

        assert await store.get_document("entities", "1") is None
        assert await store.list_documents("entities") == []
        assert await store.health_check() is True

    @pytest.mark.asyncio
    async def test_merge_semantics(self, tmp_path):
        store = JsonFileDocumentStore(tmp_path / "store.json")
        await store.set_document("entities", "1", {"entity_id": "1"})
        await store.set_document("entities", "1", {"status_current": 3})

        assert await store.get_document("entities", "1") == {
            "entity_id": "1",
            "status_current": 3,
        }

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_store_error(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        store = JsonFileDocumentStore(path)

        with pytest.raises(StoreError):
            await store.get_document("entities", "1")

    @pytest.mark.asyncio
    async def test_failed_flush_leaves_store_unchanged(self, tmp_path):
        path = tmp_path / "store.json"
        store = JsonFileDocumentStore(path)
        await store.set_document("entities", "1", {"entity_id": "1"})

        # A directory in place of the file makes the atomic replace fail
        path.unlink()
        path.mkdir()

        with pytest.raises(StoreError):
            await store.set_document("appState", "sweepState", {"cursor_index": 5})
        with pytest.raises(StoreError):
            await store.set_document("entities", "1", {"status_current": 3})

        assert await store.get_document("appState", "sweepState") is None
        assert await store.get_document("entities", "1") == {"entity_id": "1"}

        path.rmdir()
        await store.set_document("entities", "2", {"entity_id": "2"})

        on_disk = json.loads(path.read_text())
        assert "appState" not in on_disk
        assert on_disk["entities"] == {
            "1": {"entity_id": "1"},
            "2": {"entity_id": "2"},
        }

    @pytest.mark.asyncio
    async def test_corrupt_file_fails_health_check(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[1, 2, 3]")

        assert await JsonFileDocumentStore(path).health_check() is False


class TestDocumentStoreFactory:
    """Test the DocumentStoreFactory."""

    def test_create_memory_store(self):
        store = DocumentStoreFactory.create_store("memory")
        assert isinstance(store, InMemoryDocumentStore)

    def test_create_json_store(self, tmp_path):
        store = DocumentStoreFactory.create_store("JSON", path=tmp_path / "s.json")
        assert isinstance(store, JsonFileDocumentStore)
        assert store.path == tmp_path / "s.json"

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown store backend: redis"):
            DocumentStoreFactory.create_store("redis")

    def test_supported_backends(self):
        assert DocumentStoreFactory.get_supported_backends() == ["memory", "json"]
