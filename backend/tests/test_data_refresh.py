"""
backend/tests/test_data_refresh.py

Purpose:
    Periodic refresh of today's datasets: forced fetch per configured sport,
    failures reported per sport without stopping the others.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from matchdesk.providers.base import ProviderError
from matchdesk.workers.data_refresh import JOB_ID, DataRefreshJob

from conftest import make_dataset


class _FakeDataService:
    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls = []

    async def fetch_and_store_data(self, sport, date, force_refresh=False):
        self.calls.append((sport, date, force_refresh))
        if sport in self.failures:
            raise self.failures[sport]
        return make_dataset(sport, date, [])


@pytest.mark.asyncio
async def test_refresh_today_forces_each_sport_and_reports_failures():
    service = _FakeDataService(failures={
        "tennis": ProviderError("tennis", "fetch_fixtures(2024-05-02)", "HTTP 503", status_code=503),
        "hockey": RuntimeError("unexpected"),
    })
    job = DataRefreshJob(
        service,
        sports=["football", "tennis", "hockey"],
        clock=lambda: datetime(2024, 5, 2, 10, 5, tzinfo=timezone.utc),
    )

    results = await job.refresh_today()

    assert service.calls == [
        ("football", "2024-05-02", True),
        ("tennis", "2024-05-02", True),
        ("hockey", "2024-05-02", True),
    ]
    assert results["football"] == "ok"
    assert "HTTP 503" in results["tennis"]
    assert results["hockey"] == "RuntimeError: unexpected"


def test_start_registers_two_hourly_job_and_stop_removes_it():
    jobs = {}
    scheduler = SimpleNamespace(
        add_job=lambda func, trigger, id=None, **kwargs: jobs.__setitem__(id, (trigger, kwargs)),
        get_job=jobs.get,
        remove_job=jobs.pop,
    )
    job = DataRefreshJob(_FakeDataService(), sports=["football"])

    job.start(scheduler)

    trigger, kwargs = jobs[JOB_ID]
    assert trigger == "cron"
    assert kwargs["hour"] == "*/2"
    assert kwargs["minute"] == 5

    job.stop()
    assert jobs == {}
