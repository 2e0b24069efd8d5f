"""
backend/tests/test_dataset_store.py

Purpose:
    Dataset cache stores: in-memory and Mongo-backed implementations share
    the exists/get/put/list_available_dates contract.
"""

import pytest

from matchdesk.services import dataset_store
from matchdesk.services.dataset_store import (
    DatasetNotFoundError,
    InMemoryDatasetStore,
    MongoDatasetStore,
    build_dataset_store,
    dataset_key,
)

from conftest import make_dataset, make_match


class _FakeDatasets:
    def __init__(self):
        self.docs = {}
        self.replace_calls = []

    async def find_one(self, query, projection=None):
        doc = self.docs.get(query["_id"])
        if doc is None:
            return None
        if projection:
            return {"_id": doc["_id"]}
        return dict(doc)

    async def replace_one(self, query, doc, upsert=False):
        self.replace_calls.append((query, upsert))
        self.docs[query["_id"]] = dict(doc)

    async def distinct(self, field, query):
        return list({d[field] for d in self.docs.values() if d["sport"] == query["sport"]})


@pytest.fixture
def mongo_store(monkeypatch):
    fake = _FakeDatasets()
    monkeypatch.setattr(dataset_store._db, "db", {"sport_datasets": fake}, raising=False)
    return MongoDatasetStore(), fake


@pytest.mark.asyncio
async def test_mongo_store_round_trips_wholesale_documents(mongo_store):
    store, fake = mongo_store
    dataset = make_dataset("football", "2024-05-01", [make_match("1", home=2, away=1)])

    assert await store.exists("football", "2024-05-01") is False
    await store.put("football", "2024-05-01", dataset)

    assert await store.exists("football", "2024-05-01") is True
    doc = fake.docs["football:2024-05-01"]
    assert doc["match_count"] == 1
    assert fake.replace_calls == [({"_id": "football:2024-05-01"}, True)]
    loaded = await store.get("football", "2024-05-01")
    assert loaded == dataset


@pytest.mark.asyncio
async def test_mongo_store_get_missing_raises(mongo_store):
    store, _ = mongo_store
    with pytest.raises(DatasetNotFoundError):
        await store.get("football", "2030-01-01")


@pytest.mark.asyncio
async def test_mongo_store_lists_dates_sorted_per_sport(mongo_store):
    store, _ = mongo_store
    for sport, date in [("football", "2024-05-03"), ("football", "2024-05-01"), ("tennis", "2024-05-02")]:
        await store.put(sport, date, make_dataset(sport, date, []))

    assert await store.list_available_dates("football") == ["2024-05-01", "2024-05-03"]


@pytest.mark.asyncio
async def test_memory_store_isolates_stored_copy():
    store = InMemoryDatasetStore()
    dataset = make_dataset("basketball", "2024-05-01", [make_match("9", home=100, away=98)])
    await store.put("basketball", "2024-05-01", dataset)

    dataset.matches[0].score.home = 0

    loaded = await store.get("basketball", "2024-05-01")
    assert loaded.matches[0].score.home == 100
    assert await store.list_available_dates("basketball") == ["2024-05-01"]
    with pytest.raises(DatasetNotFoundError):
        await store.get("basketball", "2024-05-02")


def test_build_dataset_store_by_backend_name():
    assert isinstance(build_dataset_store("memory"), InMemoryDatasetStore)
    assert isinstance(build_dataset_store("mongo"), MongoDatasetStore)
    with pytest.raises(ValueError):
        build_dataset_store("redis")
    assert dataset_key("horse", "2024-05-01") == "horse:2024-05-01"
