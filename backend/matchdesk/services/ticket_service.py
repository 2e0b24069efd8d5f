"""
backend/matchdesk/services/ticket_service.py

Purpose:
    Ticket closing time: the latest kickoff among the ticket's predictions
    plus a grace window. Recomputed whenever predictions are added.

Dependencies:
    - matchdesk.database
    - matchdesk.services.prediction_repository
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable

from fastapi import HTTPException

import matchdesk.database as _db
from matchdesk.config import settings
from matchdesk.models.common import to_object_id
from matchdesk.models.prediction import Prediction
from matchdesk.services.prediction_repository import PredictionRepository
from matchdesk.utils import ensure_utc, parse_utc, utcnow

logger = logging.getLogger("matchdesk.tickets")


def _kickoff(prediction: Prediction) -> datetime | None:
    if prediction.match_start is not None:
        return ensure_utc(prediction.match_start)
    if prediction.match_data.date:
        return parse_utc(prediction.match_data.date)
    return None


def compute_closing_at(
    predictions: Iterable[Prediction],
    grace: timedelta | None = None,
) -> datetime | None:
    """Latest match start + grace window; None when no prediction has a start time."""
    kickoffs = [k for k in (_kickoff(p) for p in predictions) if k is not None]
    if not kickoffs:
        return None
    if grace is None:
        grace = timedelta(hours=settings.TICKET_CLOSING_GRACE_HOURS)
    return max(kickoffs) + grace


class TicketService:
    def __init__(self, predictions: PredictionRepository | None = None) -> None:
        self.predictions = predictions or PredictionRepository()

    async def update_closing_time(self, ticket_id: Any) -> datetime | None:
        oid = to_object_id(ticket_id)
        ticket = await _db.db.tickets.find_one({"_id": oid}, {"_id": 1})
        if ticket is None:
            raise HTTPException(status_code=404, detail="Ticket not found.")

        closing_at = compute_closing_at(await self.predictions.find_by_ticket(oid))
        await _db.db.tickets.update_one(
            {"_id": oid},
            {"$set": {"closing_at": closing_at, "updated_at": utcnow()}},
        )
        logger.info("Ticket %s closing time set to %s", oid, closing_at)
        return closing_at

    async def add_predictions(self, ticket_id: Any, predictions: Iterable[Prediction]) -> list[Prediction]:
        oid = to_object_id(ticket_id)
        created = []
        for prediction in predictions:
            prediction = prediction.model_copy(update={"ticket_id": oid})
            created.append(await self.predictions.create(prediction))
        await self.update_closing_time(oid)
        return created
