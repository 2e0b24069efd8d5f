"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import path for the backend package plus the
    small builders and fakes reused across provider, orchestrator and
    correction tests.
"""

from __future__ import annotations

import copy
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from bson import ObjectId

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from matchdesk.models.sports import CachedDataset, DatasetIndexes, League, Match, MatchStatus, Score, Team, Teams  # noqa: E402
from matchdesk.providers.base import SportConfig  # noqa: E402


def make_match(
    match_id: str = "1001",
    *,
    status: MatchStatus = MatchStatus.FINISHED,
    home=None,
    away=None,
    details=None,
    country: str = "England",
    league_id: str = "39",
    league_name: str = "Premier League",
    date: str = "2024-05-01T19:00:00+00:00",
) -> Match:
    return Match(
        id=match_id,
        date=date,
        league=League(id=league_id, name=league_name, country=country),
        teams=Teams(home=Team(id="1", name="Home FC"), away=Team(id="2", name="Away FC")),
        status=status,
        score=Score(home=home, away=away, details=details or {}),
    )


def make_dataset(sport: str, date: str, matches: list[Match]) -> CachedDataset:
    countries: list[str] = []
    leagues: dict[str, list[str]] = {}
    for match in matches:
        country = match.league.country
        if country not in countries:
            countries.append(country)
        names = leagues.setdefault(country, [])
        if match.league.name not in names:
            names.append(match.league.name)
    return CachedDataset(
        sport=sport,
        date=date,
        source="test",
        raw_data={"date": date},
        matches=matches,
        indexes=DatasetIndexes(countries=countries, leagues=leagues),
    )


def make_config(sport_id: str = "football", **overrides) -> SportConfig:
    values = {
        "sport_id": sport_id,
        "name": sport_id.title(),
        "icon": "*",
        "base_url": f"https://{sport_id}.example.test",
        "host": f"{sport_id}.example.test",
        "api_key": "test-key",
    }
    values.update(overrides)
    return SportConfig(**values)


class FakeProvider:
    """Adapter double: serves canned datasets per date and counts fetches."""

    def __init__(self, sport_id: str = "football", datasets: dict[str, CachedDataset] | None = None):
        self.sport_id = sport_id
        self.source = "fake"
        self.datasets = datasets or {}
        self.fetch_calls: list[str] = []
        self.fail_dates: dict[str, Exception] = {}

    async def fetch_fixtures(self, date: str):
        self.fetch_calls.append(date)
        if date in self.fail_dates:
            raise self.fail_dates[date]
        return {"date": date}

    async def normalize_data(self, raw_data):
        date = raw_data["date"]
        dataset = self.datasets.get(date)
        if dataset is None:
            return CachedDataset(sport=self.sport_id, date=date, source=self.source, raw_data=raw_data)
        return dataset


@pytest.fixture
def match_factory():
    return make_match




# ---- Mongo fakes for the predictions collection ----

_MISSING = object()


def _set_path(doc, path, value):
    parts = path.split(".")
    for part in parts[:-1]:
        doc = doc.setdefault(part, {})
    doc[parts[-1]] = value


def _get_path(doc, path, default=None):
    for part in path.split("."):
        if not isinstance(doc, dict) or part not in doc:
            return default
        doc = doc[part]
    return doc


def _naive(value):
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _condition_holds(actual, condition):
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, operand in condition.items():
            if op == "$exists":
                if (actual is not _MISSING) != operand:
                    return False
            elif op == "$lt":
                if actual is _MISSING or actual is None or not _naive(actual) < _naive(operand):
                    return False
            elif op == "$gte":
                if actual is _MISSING or actual is None or not _naive(actual) >= _naive(operand):
                    return False
            else:
                raise NotImplementedError(op)
        return True
    return actual is not _MISSING and actual == condition


def doc_matches(doc, query):
    for key, condition in query.items():
        if key == "$or":
            if not any(doc_matches(doc, branch) for branch in condition):
                return False
        elif not _condition_holds(_get_path(doc, key, _MISSING), condition):
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs
        self.sort_key = None
        self.limit_value = None

    def sort(self, key, direction):
        self.sort_key = (key, direction)
        self.docs = sorted(self.docs, key=lambda d: _naive(d.get(key)))
        return self

    def limit(self, value):
        self.limit_value = value
        self.docs = self.docs[:value]
        return self

    async def to_list(self, length=None):
        return [copy.deepcopy(d) for d in self.docs[:length]]


class FakePredictions:
    """Just enough of a motor collection for PredictionRepository."""

    def __init__(self, docs=()):
        self.docs = {d["_id"]: d for d in docs}
        self.find_queries = []
        self.last_cursor = None

    async def find_one(self, query, projection=None):
        for doc in self.docs.values():
            if doc_matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query):
        self.find_queries.append(query)
        self.last_cursor = FakeCursor([d for d in self.docs.values() if doc_matches(d, query)])
        return self.last_cursor

    async def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc["_id"] = ObjectId()
        self.docs[doc["_id"]] = doc
        return SimpleNamespace(inserted_id=doc["_id"])

    def _apply(self, doc, update):
        for path, value in update.get("$set", {}).items():
            _set_path(doc, path, value)
        for path, value in update.get("$inc", {}).items():
            _set_path(doc, path, _get_path(doc, path, 0) + value)
        for path, value in update.get("$push", {}).items():
            _set_path(doc, path, _get_path(doc, path, []) + [value])

    async def find_one_and_update(self, query, update, return_document=None):
        for doc in self.docs.values():
            if doc_matches(doc, query):
                self._apply(doc, update)
                return copy.deepcopy(doc)
        return None

    async def update_one(self, query, update):
        for doc in self.docs.values():
            if doc_matches(doc, query):
                self._apply(doc, update)
                return SimpleNamespace(modified_count=1)
        return SimpleNamespace(modified_count=0)

    async def update_many(self, query, update):
        modified = 0
        for doc in self.docs.values():
            if doc_matches(doc, query):
                self._apply(doc, update)
                modified += 1
        return SimpleNamespace(modified_count=modified)


def prediction_doc(
    status: str = "pending",
    attempts: int = 0,
    match_start: datetime | None = datetime(2024, 5, 1, 19, 0),
    *,
    match: Match | None = None,
    expression: str = "home goals > away goals",
    sport: str = "football",
) -> dict:
    match = match or make_match("1001", status=MatchStatus.NOT_STARTED)
    return {
        "_id": ObjectId(),
        "ticket_id": ObjectId(),
        "match_data": match.model_dump(mode="json"),
        "match_start": match_start,
        "event": {"id": "home_win", "expression": expression, "params": {}},
        "odds": 1.9,
        "sport": {"id": sport, "name": sport.title()},
        "status": status,
        "correction_metadata": {"attempts": attempts, "errors": []},
    }
