"""
backend/tests/test_routers.py

Purpose:
    Sports and corrections routers called directly: response envelopes,
    date/race id validation, not-found mapping, cycle conflict mapping.
"""

from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

import matchdesk.routers.corrections as corrections_router
import matchdesk.routers.sports as sports_router
import matchdesk.workers.prediction_corrector as corrector_module
from matchdesk.models.prediction import CycleStats
from matchdesk.providers.registry import ProviderRegistry
from matchdesk.services.dataset_store import InMemoryDatasetStore
from matchdesk.services.sports_data_service import SportsDataService

from conftest import FakeProvider, make_config, make_dataset, make_match


@pytest.fixture
def sports_service(monkeypatch):
    provider = FakeProvider(datasets={
        "2024-05-01": make_dataset("football", "2024-05-01", [
            make_match("1", home=2, away=1),
            make_match("2", country="Spain", league_id="140", league_name="La Liga"),
        ]),
    })
    registry = ProviderRegistry()
    registry.register(make_config("football", name="Football", icon="F"), provider)
    service = SportsDataService(registry, InMemoryDatasetStore())
    monkeypatch.setattr(SportsDataService, "_instance", service)
    return service, provider


@pytest.mark.asyncio
async def test_list_sports_envelope(sports_service):
    body = await sports_router.list_sports()
    assert body == {"data": [{"id": "football", "name": "Football", "icon": "F"}], "count": 1}


@pytest.mark.asyncio
async def test_countries_leagues_fixtures_chain(sports_service):
    countries = await sports_router.list_countries("football", "2024-05-01", force=False)
    leagues = await sports_router.list_leagues("football", "2024-05-01", "spain", force=False)
    fixtures = await sports_router.list_fixtures("football", "2024-05-01", "spain", "140", force=False)

    assert [c["id"] for c in countries["data"]] == ["england", "spain"]
    assert leagues["data"] == [{"id": "140", "name": "La Liga", "logo": None}]
    assert fixtures["count"] == 1
    assert fixtures["data"][0]["status"] == "FINISHED"


@pytest.mark.asyncio
async def test_force_flag_refetches(sports_service):
    _, provider = sports_service
    await sports_router.list_countries("football", "2024-05-01", force=False)
    await sports_router.list_countries("football", "2024-05-01", force=True)
    assert provider.fetch_calls == ["2024-05-01", "2024-05-01"]


@pytest.mark.asyncio
async def test_bad_date_is_400_and_unknown_sport_is_404(sports_service):
    with pytest.raises(HTTPException) as bad_date:
        await sports_router.list_countries("football", "01-05-2024", force=False)
    with pytest.raises(HTTPException) as unknown:
        await sports_router.list_countries("curling", "2024-05-01", force=False)

    assert bad_date.value.status_code == 400
    assert unknown.value.status_code == 404


@pytest.mark.asyncio
async def test_match_details_found_and_missing(sports_service):
    service, _ = sports_service
    await service.fetch_and_store_data("football", "2024-05-01")

    found = await sports_router.match_details("football", "1", date=None, force=False)
    with pytest.raises(HTTPException) as missing:
        await sports_router.match_details("football", "999", date="2024-05-01", force=False)

    assert found["data"]["score"]["home"] == 2
    assert found["date"] == "2024-05-01"
    assert missing.value.status_code == 404


@pytest.mark.asyncio
async def test_race_participants_validates_race_id(sports_service):
    with pytest.raises(HTTPException) as exc_info:
        await sports_router.race_participants("2024-05-01", "race-1")
    assert exc_info.value.status_code == 400


class _FakeCorrector:
    def __init__(self, busy=False):
        self.busy = busy

    async def run_manual_cycle(self):
        if self.busy:
            raise corrector_module.CorrectionCycleAlreadyRunningError("busy")
        return CycleStats(processed=2, corrected=1, retried=1)

    async def manual_correction(self, prediction_id):
        return {"prediction_id": prediction_id, "outcome": "corrected", "status": "won"}

    def get_status(self):
        return {"is_running": True, "next_runs": [datetime(2024, 5, 2, 20, tzinfo=timezone.utc)]}


@pytest.mark.asyncio
async def test_run_cycle_returns_counters(monkeypatch):
    monkeypatch.setattr(corrector_module, "prediction_corrector", _FakeCorrector())

    body = await corrections_router.run_cycle()

    assert body["ok"] is True
    assert body["cycle"]["processed"] == 2


@pytest.mark.asyncio
async def test_run_cycle_while_busy_is_409(monkeypatch):
    monkeypatch.setattr(corrector_module, "prediction_corrector", _FakeCorrector(busy=True))

    with pytest.raises(HTTPException) as exc_info:
        await corrections_router.run_cycle()

    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_manual_correction_and_status_delegate(monkeypatch):
    monkeypatch.setattr(corrector_module, "prediction_corrector", _FakeCorrector())

    result = await corrections_router.correct_prediction("abc")
    status = await corrections_router.correction_status()

    assert result["status"] == "won"
    assert status["is_running"] is True
