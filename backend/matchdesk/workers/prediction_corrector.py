"""
backend/matchdesk/workers/prediction_corrector.py

Purpose:
    Scheduled settlement of pending predictions. At fixed UTC hours a cycle
    picks every pending prediction whose match has started and still has
    attempts left, force-refreshes its match, runs the correction engine and
    persists the outcome: won/lost when decided, another attempt when the
    match is not finished or cannot be evaluated, void once attempts run out.

    Items are processed sequentially with a short pause between them to stay
    under provider rate limits. Cycles never overlap: a cron fire that finds a
    cycle in progress is skipped, a manual run raises.

Dependencies:
    - apscheduler
    - matchdesk.services.sports_data_service
    - matchdesk.services.correction_engine
    - matchdesk.services.prediction_repository
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.base import BaseScheduler
from fastapi import HTTPException

from matchdesk.config import correction_hours, settings
from matchdesk.models.prediction import (
    CorrectionReason,
    CorrectionStats,
    CycleStats,
    Prediction,
    PredictionStatus,
)
from matchdesk.services.correction_engine import CorrectionEngine
from matchdesk.services.prediction_repository import AttemptOutcome, PredictionRepository
from matchdesk.services.sports_data_service import SportsDataService
from matchdesk.utils import ensure_utc, to_date_str, utcnow

logger = logging.getLogger("matchdesk.workers.prediction_corrector")

JOB_ID_PREFIX = "prediction_correction_"
SOURCE_CRON = "auto-cron"
SOURCE_MANUAL = "manual"


class CorrectionCycleAlreadyRunningError(RuntimeError):
    """Raised when a manual cycle is requested while another cycle is active."""


class MatchLookupFailed(LookupError):
    pass


class ItemOutcome(str, Enum):
    CORRECTED = "corrected"
    RETRIED = "retried"
    ERRORED = "errored"
    VOIDED = "voided"
    ERRORED_VOIDED = "errored_voided"
    SKIPPED = "skipped"


def _match_day(prediction: Prediction) -> str | None:
    if prediction.match_start is not None:
        return to_date_str(ensure_utc(prediction.match_start))
    if prediction.match_data.date:
        return to_date_str(prediction.match_data.date)
    return None


class PredictionCorrectionScheduler:
    def __init__(
        self,
        data_service: SportsDataService | None = None,
        engine: CorrectionEngine | None = None,
        repository: PredictionRepository | None = None,
        *,
        hours: list[int] | None = None,
        max_retries: int | None = None,
        batch_limit: int | None = None,
        item_delay: float | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._data_service = data_service
        self.engine = engine or CorrectionEngine()
        self.repository = repository or PredictionRepository()
        self.hours = hours if hours is not None else correction_hours()
        self.max_retries = max_retries if max_retries is not None else settings.CORRECTION_MAX_RETRIES
        self.batch_limit = batch_limit if batch_limit is not None else settings.CORRECTION_BATCH_LIMIT
        self.item_delay = item_delay if item_delay is not None else settings.CORRECTION_ITEM_DELAY_SECONDS
        self._clock = clock
        self._sleep = sleep
        self._scheduler: BaseScheduler | None = None
        self._job_ids: list[str] = []
        self._cycle_lock = asyncio.Lock()
        self.stats = CorrectionStats()

    @property
    def data_service(self) -> SportsDataService:
        return self._data_service or SportsDataService.get()

    @property
    def is_running(self) -> bool:
        return bool(self._job_ids)

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, scheduler: BaseScheduler) -> None:
        """Register one cron job per configured UTC hour on `scheduler`."""
        if self._job_ids:
            logger.info("Prediction corrector already started (%d jobs)", len(self._job_ids))
            return
        self._scheduler = scheduler
        for hour in self.hours:
            job_id = f"{JOB_ID_PREFIX}{hour:02d}"
            scheduler.add_job(
                self.run_correction_cycle,
                "cron",
                id=job_id,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                hour=hour,
                minute=0,
                timezone="UTC",
                kwargs={"trigger": f"{hour:02d}:00"},
            )
            self._job_ids.append(job_id)
        logger.info(
            "Prediction corrector started with %d runs/day (UTC hours: %s)",
            len(self._job_ids), ", ".join(f"{h}h" for h in self.hours),
        )

    def stop(self) -> None:
        """Remove every job. A cycle already running is left to finish."""
        if self._scheduler is not None:
            for job_id in self._job_ids:
                if self._scheduler.get_job(job_id):
                    self._scheduler.remove_job(job_id)
        self._job_ids.clear()
        logger.info("Prediction corrector stopped")

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------
    async def run_correction_cycle(self, trigger: str = "scheduled") -> CycleStats | None:
        """Scheduled entry point; returns None when skipped because a cycle is active."""
        if self._cycle_lock.locked():
            self.stats.skipped_cycles += 1
            logger.warning("Correction cycle %s skipped: previous cycle still running", trigger)
            return None
        async with self._cycle_lock:
            return await self._run_cycle(trigger, SOURCE_CRON)

    async def run_manual_cycle(self) -> CycleStats:
        if self._cycle_lock.locked():
            raise CorrectionCycleAlreadyRunningError("Correction cycle already running")
        async with self._cycle_lock:
            return await self._run_cycle("manual", SOURCE_MANUAL)

    async def _run_cycle(self, trigger: str, source: str) -> CycleStats:
        started = time.monotonic()
        cycle = CycleStats()
        logger.info("Correction cycle started (trigger=%s)", trigger)

        try:
            cycle.voided += await self.repository.void_exhausted(self.max_retries, self._clock())
        except Exception:
            logger.exception("Retry-limit sweep failed; continuing with the cycle")

        predictions = await self.repository.find_eligible(
            self._clock(), self.max_retries, self.batch_limit,
        )
        if not predictions:
            logger.info("Correction cycle %s: no predictions to process", trigger)
        else:
            logger.info("Correction cycle %s: %d predictions to process", trigger, len(predictions))

        for index, prediction in enumerate(predictions):
            try:
                outcome = await self.process_prediction(prediction, source=source)
            except Exception:
                logger.exception("Correction of prediction %s failed", prediction.id)
                outcome = ItemOutcome.ERRORED
            self._count(cycle, outcome)
            if index < len(predictions) - 1 and self.item_delay > 0:
                await self._sleep(self.item_delay)

        finished_at = self._clock()
        self.stats.absorb(cycle, finished_at)
        logger.info(
            "Correction cycle %s done in %dms: processed=%d corrected=%d retried=%d errors=%d voided=%d",
            trigger, int((time.monotonic() - started) * 1000),
            cycle.processed, cycle.corrected, cycle.retried, cycle.errored, cycle.voided,
        )
        return cycle

    @staticmethod
    def _count(cycle: CycleStats, outcome: ItemOutcome) -> None:
        cycle.processed += 1
        if outcome is ItemOutcome.CORRECTED:
            cycle.corrected += 1
        elif outcome is ItemOutcome.RETRIED:
            cycle.retried += 1
        elif outcome is ItemOutcome.ERRORED:
            cycle.errored += 1
        elif outcome is ItemOutcome.VOIDED:
            cycle.voided += 1
        elif outcome is ItemOutcome.ERRORED_VOIDED:
            cycle.errored += 1
            cycle.voided += 1

    async def process_prediction(self, prediction: Prediction, *, source: str = SOURCE_CRON) -> ItemOutcome:
        """Refresh, evaluate and persist one prediction."""
        now = self._clock()
        sport_id = prediction.sport.id
        match_id = prediction.match_data.id

        try:
            lookup = await self.data_service.find_match(sport_id, match_id, _match_day(prediction), True)
            if not lookup.found:
                raise MatchLookupFailed(lookup.reason or f"Match data not found for {match_id}")
            result = self.engine.correct_prediction(prediction, lookup.match, sport_id)
        except Exception as exc:
            logger.warning("Prediction %s: attempt failed: %s", prediction.id, exc)
            return await self._record_failure(prediction, str(exc), now)

        correction = result.correction
        if correction.can_correct:
            settled = await self.repository.mark_corrected(prediction.id, correction, source=source, now=now)
            if not settled:
                logger.info("Prediction %s no longer pending; left untouched", prediction.id)
                return ItemOutcome.SKIPPED
            status = PredictionStatus.WON if correction.result else PredictionStatus.LOST
            logger.info("Prediction %s corrected: %s (%s)", prediction.id, status.value, correction.reason)
            return ItemOutcome.CORRECTED

        if correction.reason_code is CorrectionReason.NOT_FINISHED:
            logger.debug("Prediction %s: %s", prediction.id, correction.reason)
            outcome = await self.repository.record_attempt(
                prediction.id, max_retries=self.max_retries, now=now,
            )
            return {
                AttemptOutcome.RETRIED: ItemOutcome.RETRIED,
                AttemptOutcome.VOIDED: ItemOutcome.VOIDED,
            }.get(outcome, ItemOutcome.SKIPPED)

        return await self._record_failure(prediction, correction.reason, now)

    async def _record_failure(self, prediction: Prediction, message: str, now: datetime) -> ItemOutcome:
        outcome = await self.repository.record_attempt(
            prediction.id, max_retries=self.max_retries, error=message, now=now,
        )
        return {
            AttemptOutcome.RETRIED: ItemOutcome.ERRORED,
            AttemptOutcome.VOIDED: ItemOutcome.ERRORED_VOIDED,
        }.get(outcome, ItemOutcome.SKIPPED)

    async def manual_correction(self, prediction_id: str) -> dict[str, Any]:
        """Run the correction procedure for one pending prediction, outside the schedule."""
        prediction = await self.repository.get(prediction_id)
        if prediction is None:
            raise HTTPException(status_code=404, detail="Prediction not found.")
        if prediction.status.is_terminal:
            raise HTTPException(
                status_code=409,
                detail=f"Prediction is not pending (status: {prediction.status.value}).",
            )

        outcome = await self.process_prediction(prediction, source=SOURCE_MANUAL)
        updated = await self.repository.get(prediction_id)
        logger.info("Manual correction of %s: %s", prediction_id, outcome.value)
        return {
            "prediction_id": str(prediction.id),
            "outcome": outcome.value,
            "status": updated.status.value if updated else None,
            "correction_metadata": updated.correction_metadata.model_dump() if updated else None,
        }

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def next_runs(self, count: int = 3) -> list[datetime]:
        now = ensure_utc(self._clock())
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        runs = []
        for hour in self.hours:
            run = today + timedelta(hours=hour)
            if run <= now:
                run += timedelta(days=1)
            runs.append(run)
        return sorted(runs)[:count]

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "cycle_in_progress": self.cycle_in_progress,
            "active_jobs": len(self._job_ids),
            "correction_hours": list(self.hours),
            "max_retries": self.max_retries,
            "stats": self.stats.model_dump(),
            "next_runs": self.next_runs(),
        }


prediction_corrector = PredictionCorrectionScheduler()
