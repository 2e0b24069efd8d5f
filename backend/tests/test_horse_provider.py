"""
backend/tests/test_horse_provider.py

Purpose:
    PMU horse racing adapter: programme flattening into one match per race,
    arrival order as score, racing details, participants filtering.
"""

from types import SimpleNamespace

import httpx
import pytest

from matchdesk.models.sports import MatchStatus
from matchdesk.providers import horse
from matchdesk.providers.horse import HorseProvider
from matchdesk.providers.http_client import ResilientClient

from conftest import make_config

# 2024-05-01T13:50:00Z in epoch milliseconds
_START_MS = 1714571400000


def _programme():
    return {
        "programme": {
            "date": 1714514400000,
            "reunions": [
                {
                    "numOfficiel": 1,
                    "nature": "DIURNE",
                    "hippodrome": {"code": "VIN", "libelleCourt": "VINCENNES", "libelleLong": "Hippodrome de Paris-Vincennes"},
                    "meteo": {"temperature": 18, "nebulositeLibelleCourt": "Ensoleillé", "forceVent": 10, "directionVent": "NO"},
                    "courses": [
                        {
                            "numOrdre": 2,
                            "libelle": "PRIX DE LA MARNE",
                            "heureDepart": _START_MS + 3_600_000,
                            "statut": "PROGRAMMEE",
                            "discipline": "ATTELE",
                            "distance": 2700,
                            "corde": "CORDE_GAUCHE",
                            "nombreDeclaresPartants": 14,
                            "conditions": "Pour 5 ans, n'ayant pas gagné 120.000",
                            "conditionSexe": "FEMELLES",
                            "montantPrix": 50000,
                            "paris": [{"typePari": "E_SIMPLE_GAGNANT", "miseBase": 150, "enVente": True}],
                        },
                        {
                            "numOrdre": 1,
                            "libelle": "PRIX DE L'OISE",
                            "heureDepart": _START_MS,
                            "statut": "ARRIVEE_DEFINITIVE",
                            "discipline": "MONTE",
                            "nombreDeclaresPartants": 12,
                            "ordreArrivee": [[7], [3], [11], [1]],
                        },
                    ],
                },
                {
                    "numOfficiel": 4,
                    "hippodrome": {},
                    "courses": [{"numOrdre": 1, "statut": "ANNULEE"}],
                },
            ],
        }
    }


@pytest.mark.asyncio
async def test_programme_flattens_races_into_matches():
    provider = HorseProvider(make_config("horse", api_key=None), SimpleNamespace())

    dataset = await provider.normalize_data(_programme())

    # programme date is the meeting day at local midnight, sent as UTC epoch ms
    assert dataset.date == "2024-04-30"
    assert [m.id for m in dataset.matches] == ["R1-C1", "R1-C2", "R4-C1"]
    finished = dataset.find("R1-C1")
    assert finished.status is MatchStatus.FINISHED
    assert (finished.score.home, finished.score.away) == (7, 3)
    assert finished.score.details["third"] == 11
    assert finished.date.startswith("2024-05-01T13:50:00")
    assert finished.sport_specific["discipline"] == "Trot monté"

    upcoming = dataset.find("R1-C2")
    assert upcoming.status is MatchStatus.NOT_STARTED
    assert upcoming.teams.away.name == "14 chevaux"
    assert upcoming.sport_specific["distance"] == "2700m"
    assert upcoming.sport_specific["track"] == "Gauche"
    assert upcoming.sport_specific["conditions"] == {"age": 5, "sex": "Juments", "earnings": 120000}
    assert upcoming.sport_specific["betting_types"][0]["type"] == "simple gagnant"
    assert upcoming.sport_specific["weather"]["temperature"] == 18

    cancelled = dataset.find("R4-C1")
    assert cancelled.status is MatchStatus.CANCELLED
    assert cancelled.league.name == horse.UNKNOWN_TRACK
    assert cancelled.date is None
    assert dataset.indexes.countries == ["france"]
    assert dataset.indexes.leagues["france"] == ["VINCENNES", horse.UNKNOWN_TRACK]


@pytest.mark.asyncio
async def test_non_object_payload_yields_empty_dataset():
    provider = HorseProvider(make_config("horse", api_key=None), SimpleNamespace())
    dataset = await provider.normalize_data(None)
    assert dataset.matches == []
    assert dataset.indexes.countries == ["france"]


@pytest.mark.asyncio
async def test_fetch_uses_pmu_date_and_browser_headers():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"programme": {"reunions": []}})

    client = ResilientClient("horse", max_retries=0, transport=httpx.MockTransport(handler))
    provider = HorseProvider(make_config("horse", api_key=None, timeout=30.0), client)
    await provider.fetch_fixtures("2024-05-01")
    await client.aclose()

    assert seen[0].url.path.endswith("/programme/01052024")
    assert seen[0].headers["Referer"] == "https://www.pmu.fr/"
    assert "x-rapidapi-key" not in seen[0].headers


def test_participants_keep_declared_runners_sorted_by_number():
    provider = HorseProvider(make_config("horse", api_key=None), SimpleNamespace())
    raw = {
        "participants": [
            {"numPmu": 5, "nom": "ECLAIR", "statut": "PARTANT", "driver": "J. Doe", "gainsParticipant": {"gainsCarriere": 1200}},
            {"numPmu": 2, "nom": "BOLIDE", "statut": "PARTANT", "nomPere": "SIRE"},
            {"numPmu": 3, "nom": "ABSENT", "statut": "NON_PARTANT"},
        ],
        "spriteCasaques": [{"url": "sprite.png"}],
    }

    result = provider.normalize_participants("2024-05-01", "R1-C2", raw)

    assert result.race_id == "R1-C2"
    assert result.total_runners == 2
    assert [p.name for p in result.participants] == ["BOLIDE", "ECLAIR"]
    assert result.participants[0].pedigree["sire"] == "SIRE"
    assert result.participants[1].performances["career_earnings"] == 1200
    assert result.silks_sprites == [{"url": "sprite.png"}]


@pytest.mark.asyncio
async def test_fetch_participants_rejects_malformed_race_id():
    provider = HorseProvider(make_config("horse", api_key=None), SimpleNamespace())
    with pytest.raises(ValueError):
        await provider.fetch_participants("2024-05-01", "R1")


def test_condition_parsers():
    assert horse.pmu_date("2024-12-31") == "31122024"
    assert horse.age_from_conditions("Pour 4 et 5 ans") == 4
    assert horse.age_from_conditions(None) is None
    assert horse.earnings_from_conditions("n'ayant pas gagné 45.000") == 45000
    assert horse.format_discipline("PLAT", "Plat") == "Plat"
    assert horse.format_bet_type("E_MULTI") == "multi"
