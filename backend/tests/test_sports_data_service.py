"""
backend/tests/test_sports_data_service.py

Purpose:
    Data orchestrator: cached-or-fetch reads, forced refresh, single fetch
    under concurrent cold reads, cross-date match lookup and the query
    functions behind the sports API.
"""

import asyncio

import pytest

from matchdesk.models.sports import RaceParticipants
from matchdesk.providers.base import NormalizationError, ProviderError
from matchdesk.providers.registry import ProviderRegistry
from matchdesk.services.dataset_store import InMemoryDatasetStore
from matchdesk.services.sports_data_service import (
    ResourceNotFoundError,
    SportsDataService,
    UnknownSportError,
    country_entry,
)

from conftest import FakeProvider, make_config, make_dataset, make_match


def _service(provider):
    registry = ProviderRegistry()
    registry.register(make_config(provider.sport_id), provider)
    return SportsDataService(registry, InMemoryDatasetStore())


@pytest.mark.asyncio
async def test_cached_reads_are_identical_and_fetch_once():
    provider = FakeProvider(datasets={
        "2024-05-01": make_dataset("football", "2024-05-01", [make_match("1", home=2, away=1)]),
    })
    service = _service(provider)

    first = await service.fetch_and_store_data("football", "2024-05-01")
    second = await service.fetch_and_store_data("football", "2024-05-01")

    assert first == second
    assert provider.fetch_calls == ["2024-05-01"]


@pytest.mark.asyncio
async def test_force_refresh_always_fetches():
    provider = FakeProvider()
    service = _service(provider)

    await service.fetch_and_store_data("football", "2024-05-01")
    await service.fetch_and_store_data("football", "2024-05-01", force_refresh=True)

    assert provider.fetch_calls == ["2024-05-01", "2024-05-01"]


@pytest.mark.asyncio
async def test_concurrent_cold_reads_trigger_one_fetch():
    provider = FakeProvider()
    original = provider.fetch_fixtures

    async def slow_fetch(date):
        await asyncio.sleep(0.01)
        return await original(date)

    provider.fetch_fixtures = slow_fetch
    service = _service(provider)

    results = await asyncio.gather(*[
        service.fetch_and_store_data("football", "2024-05-01") for _ in range(5)
    ])

    assert provider.fetch_calls == ["2024-05-01"]
    assert all(r == results[0] for r in results)
    assert service._locks == {}


@pytest.mark.asyncio
async def test_dataset_date_is_the_requested_date():
    provider = FakeProvider(datasets={"2024-05-01": make_dataset("football", None, [])})
    service = _service(provider)

    dataset = await service.fetch_and_store_data("football", "2024-05-01")

    assert dataset.date == "2024-05-01"


@pytest.mark.asyncio
async def test_provider_and_normalization_errors_cache_nothing():
    provider = FakeProvider()
    provider.fail_dates["2024-05-01"] = ProviderError("football", "fetch_fixtures(2024-05-01)", "HTTP 500", status_code=500)
    service = _service(provider)

    with pytest.raises(ProviderError):
        await service.fetch_and_store_data("football", "2024-05-01")
    assert await service.store.exists("football", "2024-05-01") is False

    async def broken_normalize(raw_data):
        return raw_data["missing"]

    provider.normalize_data = broken_normalize
    with pytest.raises(NormalizationError):
        await service.fetch_and_store_data("football", "2024-05-02")
    assert await service.store.list_available_dates("football") == []
    assert service._locks == {}


@pytest.mark.asyncio
async def test_unknown_sport_raises_on_fetch():
    service = _service(FakeProvider())
    with pytest.raises(UnknownSportError):
        await service.fetch_and_store_data("curling", "2024-05-01")


@pytest.mark.asyncio
async def test_find_match_searches_hint_then_other_cached_dates():
    provider = FakeProvider(datasets={
        "2024-05-01": make_dataset("football", "2024-05-01", [make_match("1")]),
        "2024-05-02": make_dataset("football", "2024-05-02", [make_match("2")]),
        "2024-05-03": make_dataset("football", "2024-05-03", [make_match("3")]),
    })
    service = _service(provider)
    for date in ("2024-05-01", "2024-05-02", "2024-05-03"):
        await service.fetch_and_store_data("football", date)

    lookup = await service.find_match("football", "3", "2024-05-01")

    assert lookup.found is True
    assert lookup.date == "2024-05-03"
    assert lookup.match.id == "3"
    assert lookup.dates_scanned == ["2024-05-01", "2024-05-02", "2024-05-03"]


@pytest.mark.asyncio
async def test_find_match_misses_are_values_not_errors():
    provider = FakeProvider(datasets={
        "2024-05-01": make_dataset("football", "2024-05-01", [make_match("1")]),
    })
    service = _service(provider)
    await service.fetch_and_store_data("football", "2024-05-01")

    missing = await service.find_match("football", "999")
    unknown_sport = await service.find_match("curling", "1")

    assert missing.found is False
    assert "999" in missing.reason
    assert missing.dates_scanned == ["2024-05-01"]
    assert unknown_sport.found is False
    assert "curling" in unknown_sport.reason


@pytest.mark.asyncio
async def test_find_match_with_force_skips_failing_dates():
    provider = FakeProvider(datasets={
        "2024-05-01": make_dataset("football", "2024-05-01", [make_match("1")]),
        "2024-05-02": make_dataset("football", "2024-05-02", [make_match("2")]),
    })
    service = _service(provider)
    await service.fetch_and_store_data("football", "2024-05-01")
    await service.fetch_and_store_data("football", "2024-05-02")
    provider.fail_dates["2024-05-01"] = ProviderError("football", "fetch_fixtures(2024-05-01)", "timeout")

    lookup = await service.find_match("football", "2", "2024-05-01", force_update=True)

    assert lookup.found is True
    assert lookup.date == "2024-05-02"


@pytest.mark.asyncio
async def test_query_functions_filter_by_country_and_league():
    matches = [
        make_match("1", country="England", league_id="39", league_name="Premier League"),
        make_match("2", country="England", league_id="39", league_name="Premier League"),
        make_match("3", country="England", league_id="40", league_name="Championship"),
        make_match("4", country="Costa Rica", league_id="162", league_name="Primera Division"),
    ]
    provider = FakeProvider(datasets={"2024-05-01": make_dataset("football", "2024-05-01", matches)})
    service = _service(provider)

    countries = await service.list_countries("football", "2024-05-01")
    leagues = await service.list_leagues("football", "2024-05-01", "england")
    fixtures = await service.list_fixtures("football", "2024-05-01", "costa-rica", "162")

    assert [c.id for c in countries] == ["england", "costa-rica"]
    assert countries[1].flag.endswith("/co.svg")
    assert [lg.id for lg in leagues] == ["39", "40"]
    assert [m.id for m in fixtures] == ["4"]

    with pytest.raises(ResourceNotFoundError):
        await service.list_leagues("football", "2024-05-01", "narnia")
    with pytest.raises(ResourceNotFoundError):
        await service.list_fixtures("football", "2024-05-01", "england", "999")


def test_list_sports_follows_registry_order():
    registry = ProviderRegistry()
    registry.register(make_config("football", name="Football", icon="F"), FakeProvider("football"))
    registry.register(make_config("tennis", name="Tennis", icon="T"), FakeProvider("tennis"))
    service = SportsDataService(registry, InMemoryDatasetStore())

    assert [(s.id, s.name, s.icon) for s in service.list_sports()] == [
        ("football", "Football", "F"), ("tennis", "Tennis", "T"),
    ]


@pytest.mark.asyncio
async def test_race_participants_go_through_horse_adapter():
    class _Horse(FakeProvider):
        async def fetch_participants(self, date, race_id):
            return {"race": race_id}

        def normalize_participants(self, date, race_id, raw_data):
            return RaceParticipants(race_id=raw_data["race"], date=date)

    service = _service(_Horse("horse"))
    result = await service.get_race_participants("2024-05-01", "R1-C3")
    assert result.race_id == "R1-C3"

    with pytest.raises(UnknownSportError):
        await _service(FakeProvider()).get_race_participants("2024-05-01", "R1-C3")


def test_country_entry_slug_and_flag():
    entry = country_entry("United States")
    assert entry.id == "united-states"
    assert entry.flag == "https://media.api-sports.io/flags/un.svg"
