"""
backend/tests/test_tennis_provider.py

Purpose:
    Tennis adapter: fixtures request shape, per-tournament enrichment with an
    adapter-local cache, placeholder tournament on enrichment failure.
"""

import httpx
import pytest

from matchdesk.models.sports import MatchStatus
from matchdesk.providers.http_client import ResilientClient
from matchdesk.providers import tennis
from matchdesk.providers.tennis import DEFAULT_COUNTRY, TennisProvider

from conftest import make_config


def _fixture(fixture_id, tournament_id, **extra):
    fixture = {
        "id": fixture_id,
        "date": "2024-05-01T10:00:00.000Z",
        "roundId": 4,
        "tournamentId": tournament_id,
        "player1Id": 100 + fixture_id,
        "player2Id": 200 + fixture_id,
        "player1": {"name": "A. Player", "countryAcr": "ESP"},
        "player2": {"name": "B. Player", "countryAcr": "ITA"},
    }
    fixture.update(extra)
    return fixture


def _provider(handler):
    client = ResilientClient("tennis", max_retries=0, base_delay=0, transport=httpx.MockTransport(handler))
    return TennisProvider(make_config("tennis"), client), client


@pytest.mark.asyncio
async def test_fetch_fixtures_requests_dated_path_with_paging():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": [], "hasNextPage": False})

    provider, client = _provider(handler)
    await provider.fetch_fixtures("2024-05-01")
    await client.aclose()

    request = seen[0]
    assert request.url.path == "/tennis/v2/atp/fixtures/2024-05-01"
    assert request.url.params["pageSize"] == "1000"
    assert request.headers["x-rapidapi-key"] == "test-key"


@pytest.mark.asyncio
async def test_normalize_enriches_each_tournament_once():
    info_calls = []

    def handler(request):
        info_calls.append(request.url.path)
        return httpx.Response(200, json={"data": {
            "name": "Madrid - Madrid",
            "coutry": {"acronym": "ESP", "name": "Spain"},
            "court": {"name": "Clay"},
            "round": {"name": "R32"},
        }})

    provider, client = _provider(handler)
    raw = {"data": [_fixture(1, 55), _fixture(2, 55), _fixture(3, 55, status="finished")], "hasNextPage": True}

    dataset = await provider.normalize_data(raw)
    await provider.normalize_data(raw)
    await client.aclose()

    assert info_calls == ["/tennis/v2/atp/tournament/info/55"]
    assert dataset.date == "2024-05-01"
    first = dataset.matches[0]
    assert first.league.name == "Madrid - Madrid"
    assert first.league.country == "Spain"
    assert first.league.court_type == "Clay"
    assert first.venue.city == "Madrid"
    assert first.teams.home.country == "ESP"
    assert first.status is MatchStatus.NOT_STARTED
    assert dataset.matches[2].status is MatchStatus.FINISHED
    assert dataset.indexes.countries == ["ESP", "ITA", "Spain"]
    assert dataset.indexes.leagues["Spain"] == ["Madrid - Madrid"]
    assert dataset.extras["pagination"]["has_next_page"] is True
    assert dataset.extras["api_calls_used"] == 2


@pytest.mark.asyncio
async def test_enrichment_failure_falls_back_to_placeholder_and_is_not_cached():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    provider, client = _provider(handler)
    raw = {"data": [_fixture(1, 77)]}

    dataset = await provider.normalize_data(raw)
    await provider.normalize_data(raw)
    await client.aclose()

    match = dataset.matches[0]
    assert match.league.name == "Tournament 77"
    assert match.league.country == DEFAULT_COUNTRY
    assert match.league.court_type == "Unknown"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_tournament_cache_evicts_oldest_entry_when_full(monkeypatch):
    monkeypatch.setattr(tennis, "TOURNAMENT_CACHE_SIZE", 2)
    calls = []

    def handler(request):
        calls.append(request.url.path.rsplit("/", 1)[-1])
        return httpx.Response(200, json={"data": {"name": f"Event {calls[-1]}"}})

    provider, client = _provider(handler)
    for tournament_id in (1, 2, 3, 2, 1):
        await provider.tournament_info(tournament_id)
    await client.aclose()

    assert calls == ["1", "2", "3", "1"]
