"""
backend/matchdesk/workers/data_refresh.py

Purpose:
    Keeps today's datasets warm: every 2 hours at minute 5 (UTC) force-refresh
    the current day for the configured sports. Failures are logged; the next
    run simply tries again.

Dependencies:
    - apscheduler
    - matchdesk.services.sports_data_service
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.base import BaseScheduler

from matchdesk.config import parse_csv, settings
from matchdesk.providers.base import NormalizationError, ProviderError
from matchdesk.services.sports_data_service import ResourceNotFoundError, SportsDataService
from matchdesk.utils import utcnow

logger = logging.getLogger("matchdesk.workers.data_refresh")

JOB_ID = "data_refresh"


class DataRefreshJob:
    def __init__(
        self,
        data_service: SportsDataService | None = None,
        sports: list[str] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._data_service = data_service
        self.sports = sports if sports is not None else parse_csv(settings.DATA_REFRESH_SPORTS)
        self._clock = clock
        self._scheduler: BaseScheduler | None = None

    @property
    def data_service(self) -> SportsDataService:
        return self._data_service or SportsDataService.get()

    def start(self, scheduler: BaseScheduler) -> None:
        self._scheduler = scheduler
        scheduler.add_job(
            self.refresh_today,
            "cron",
            id=JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            hour="*/2",
            minute=5,
            timezone="UTC",
        )
        logger.info("Data refresh scheduled every 2h at minute 5 UTC for: %s", ", ".join(self.sports))

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.get_job(JOB_ID):
            self._scheduler.remove_job(JOB_ID)
        self._scheduler = None

    async def refresh_today(self) -> dict[str, str]:
        """Force-refresh today's dataset per sport; returns sport -> "ok" | error text."""
        today = self._clock().strftime("%Y-%m-%d")
        results: dict[str, str] = {}
        for sport in self.sports:
            try:
                dataset = await self.data_service.fetch_and_store_data(sport, today, force_refresh=True)
            except (ProviderError, NormalizationError, ResourceNotFoundError) as exc:
                logger.error("Refreshing %s data for %s failed: %s", sport, today, exc)
                results[sport] = str(exc)
                continue
            except Exception as exc:
                logger.exception("Unexpected failure refreshing %s data for %s", sport, today)
                results[sport] = f"{type(exc).__name__}: {exc}"
                continue
            logger.info("Refreshed %s data for %s (%d matches)", sport, today, len(dataset.matches))
            results[sport] = "ok"
        return results


data_refresh_job = DataRefreshJob()
