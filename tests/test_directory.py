"""
Tests for the entity directory.
"""

import pytest

from status_sweeper.directory import (
    EntityRecord,
    StaticEntityDirectory,
    StoreEntityDirectory,
)


@pytest.mark.asyncio
async def test_store_directory_orders_by_rank_descending(store):
    await store.set_document("entities", "1", {"entity_id": 1, "rank": 10})
    await store.set_document("entities", "2", {"entity_id": 2, "rank": 30})
    await store.set_document("entities", "3", {"entity_id": 3, "rank": 20})

    directory = StoreEntityDirectory(store)

    assert await directory.list_entity_ids() == ["2", "3", "1"]


@pytest.mark.asyncio
async def test_store_directory_keeps_store_order_for_equal_ranks(store):
    for doc_id in ("b", "a", "c"):
        await store.set_document("entities", doc_id, {"entity_id": doc_id, "rank": 1})

    directory = StoreEntityDirectory(store)

    assert await directory.list_entity_ids() == ["b", "a", "c"]


@pytest.mark.asyncio
async def test_store_directory_skips_documents_without_id(store):
    await store.set_document("entities", "x", {"rank": 99})
    await store.set_document("entities", "1", {"entity_id": "1", "rank": "bad"})

    records = await StoreEntityDirectory(store).list_entities()

    assert records == [EntityRecord(entity_id="1", rank=0.0)]


@pytest.mark.asyncio
async def test_store_directory_custom_fields(store):
    await store.set_document("teamMembers", "7", {"userID": 7, "level": 3})
    await store.set_document("teamMembers", "8", {"userID": 8, "level": 50})

    directory = StoreEntityDirectory(
        store, collection="teamMembers", id_field="userID", rank_field="level"
    )

    assert await directory.list_entity_ids() == ["8", "7"]


@pytest.mark.asyncio
async def test_static_directory():
    directory = StaticEntityDirectory(
        [EntityRecord("low", 1), EntityRecord("high", 9)]
    )

    assert await directory.list_entity_ids() == ["high", "low"]
