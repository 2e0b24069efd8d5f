"""
backend/matchdesk/services/dataset_store.py

Purpose:
    Persistent cache of normalized datasets keyed by (sport, date). A dataset
    is written wholesale on first fetch and on forced refresh; it is never
    patched in place.

Dependencies:
    - matchdesk.database
    - matchdesk.models.sports
"""

from __future__ import annotations

import logging
from typing import Protocol

import matchdesk.database as _db
from matchdesk.models.sports import CachedDataset
from matchdesk.utils import utcnow

logger = logging.getLogger("matchdesk.dataset_store")


class DatasetNotFoundError(LookupError):
    def __init__(self, sport: str, date: str) -> None:
        self.sport = sport
        self.date = date
        super().__init__(f"No cached dataset for {sport} on {date}")


class DatasetStore(Protocol):
    async def exists(self, sport: str, date: str) -> bool: ...

    async def get(self, sport: str, date: str) -> CachedDataset: ...

    async def put(self, sport: str, date: str, dataset: CachedDataset) -> None: ...

    async def list_available_dates(self, sport: str) -> list[str]: ...


def dataset_key(sport: str, date: str) -> str:
    return f"{sport}:{date}"


class MongoDatasetStore:
    """One document per (sport, date) in `sport_datasets`, `_id = "sport:date"`."""

    collection_name = "sport_datasets"

    @property
    def _collection(self):
        return _db.db[self.collection_name]

    async def exists(self, sport: str, date: str) -> bool:
        doc = await self._collection.find_one({"_id": dataset_key(sport, date)}, {"_id": 1})
        return doc is not None

    async def get(self, sport: str, date: str) -> CachedDataset:
        doc = await self._collection.find_one({"_id": dataset_key(sport, date)})
        if doc is None:
            raise DatasetNotFoundError(sport, date)
        return CachedDataset.model_validate(doc["dataset"])

    async def put(self, sport: str, date: str, dataset: CachedDataset) -> None:
        await self._collection.replace_one(
            {"_id": dataset_key(sport, date)},
            {
                "_id": dataset_key(sport, date),
                "sport": sport,
                "date": date,
                "stored_at": utcnow(),
                "match_count": len(dataset.matches),
                "dataset": dataset.model_dump(mode="json"),
            },
            upsert=True,
        )
        logger.info("Stored %s dataset for %s (%d matches)", sport, date, len(dataset.matches))

    async def list_available_dates(self, sport: str) -> list[str]:
        dates = await self._collection.distinct("date", {"sport": sport})
        return sorted(dates)


class InMemoryDatasetStore:
    """Process-local store for tests and DATASET_STORE_BACKEND=memory."""

    def __init__(self) -> None:
        self._datasets: dict[tuple[str, str], dict] = {}

    async def exists(self, sport: str, date: str) -> bool:
        return (sport, date) in self._datasets

    async def get(self, sport: str, date: str) -> CachedDataset:
        try:
            data = self._datasets[(sport, date)]
        except KeyError:
            raise DatasetNotFoundError(sport, date) from None
        return CachedDataset.model_validate(data)

    async def put(self, sport: str, date: str, dataset: CachedDataset) -> None:
        # Dumped so later mutation of the caller's object cannot leak in.
        self._datasets[(sport, date)] = dataset.model_dump(mode="json")

    async def list_available_dates(self, sport: str) -> list[str]:
        return sorted(date for s, date in self._datasets if s == sport)


def build_dataset_store(backend: str) -> DatasetStore:
    if backend == "memory":
        return InMemoryDatasetStore()
    if backend == "mongo":
        return MongoDatasetStore()
    raise ValueError(f"Unknown DATASET_STORE_BACKEND: {backend!r}")
