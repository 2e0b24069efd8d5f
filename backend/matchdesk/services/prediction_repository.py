"""
backend/matchdesk/services/prediction_repository.py

Purpose:
    Persistence access layer for predictions. Every status write is guarded
    by a `status == "pending"` filter so a won/lost/void prediction is never
    overwritten, whichever caller races to it.

Dependencies:
    - matchdesk.database
    - matchdesk.utils
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import ValidationError
from pymongo import ASCENDING, ReturnDocument

import matchdesk.database as _db
from matchdesk.models.common import to_object_id
from matchdesk.models.prediction import Correction, Prediction, PredictionStatus
from matchdesk.utils import parse_utc, utcnow

logger = logging.getLogger("matchdesk.predictions")

PENDING = PredictionStatus.PENDING.value


class AttemptOutcome(str, Enum):
    RETRIED = "retried"
    VOIDED = "voided"
    SKIPPED = "skipped"  # no longer pending (or gone) when the write landed


def _to_prediction(doc: dict[str, Any] | None) -> Prediction | None:
    if doc is None:
        return None
    return Prediction.model_validate(doc)


def _split_valid(docs: list[dict[str, Any]]) -> tuple[list[Prediction], list[tuple[Any, str]]]:
    """Validate documents one by one; broken ones come back as (_id, error)."""
    valid: list[Prediction] = []
    invalid: list[tuple[Any, str]] = []
    for doc in docs:
        try:
            valid.append(Prediction.model_validate(doc))
        except ValidationError as exc:
            logger.error("Prediction %s is malformed: %d validation errors", doc.get("_id"), exc.error_count())
            invalid.append((doc.get("_id"), f"Invalid prediction document: {exc.error_count()} validation errors"))
    return valid, invalid


def _void_update(reason: str, now: datetime) -> dict[str, Any]:
    return {"$set": {
        "status": PredictionStatus.VOID.value,
        "correction_metadata.corrected_at": now,
        "correction_metadata.correction_source": "retry-exhausted",
        "correction_metadata.confidence": "low",
        "correction_metadata.reason": reason,
        "updated_at": now,
    }}


class PredictionRepository:
    @property
    def _collection(self):
        return _db.db.predictions

    async def get(self, prediction_id: Any) -> Prediction | None:
        return _to_prediction(await self._collection.find_one({"_id": to_object_id(prediction_id)}))

    async def find_by_ticket(self, ticket_id: Any) -> list[Prediction]:
        docs = await self._collection.find({"ticket_id": to_object_id(ticket_id)}).to_list(length=1000)
        predictions, _invalid = _split_valid(docs)
        return predictions

    async def create(self, prediction: Prediction) -> Prediction:
        """Insert a new pending prediction; kickoff is denormalized for the sweep query."""
        now = utcnow()
        doc = prediction.model_dump(by_alias=True, exclude={"id"}, mode="python")
        doc["status"] = PENDING
        doc["match_data"] = prediction.match_data.model_dump(mode="json")
        if doc.get("ticket_id") is not None:
            doc["ticket_id"] = to_object_id(doc["ticket_id"])
        if doc.get("match_start") is None and prediction.match_data.date:
            doc["match_start"] = parse_utc(prediction.match_data.date)
        doc["created_at"] = now
        doc["updated_at"] = now
        result = await self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return Prediction.model_validate(doc)

    async def find_eligible(self, now: datetime, max_retries: int, limit: int) -> list[Prediction]:
        """Pending predictions whose match already started and still have attempts left.

        A document that fails validation is not returned; it is charged one
        failed attempt instead, so it reaches `void` like any other error.
        """
        cursor = self._collection.find({
            "status": PENDING,
            "match_start": {"$lt": now},
            "$or": [
                {"correction_metadata.attempts": {"$exists": False}},
                {"correction_metadata.attempts": {"$lt": max_retries}},
            ],
        }).sort("match_start", ASCENDING).limit(limit)
        docs = await cursor.to_list(length=limit)
        predictions, invalid = _split_valid(docs)
        for oid, error in invalid:
            await self.record_attempt(oid, max_retries=max_retries, error=error, now=now)
        return predictions

    async def record_attempt(
        self,
        prediction_id: Any,
        *,
        max_retries: int,
        error: str | None = None,
        now: datetime | None = None,
    ) -> AttemptOutcome:
        """Count one undecided attempt; force `void` once attempts reach max_retries."""
        now = now or utcnow()
        oid = to_object_id(prediction_id)
        update: dict[str, Any] = {
            "$inc": {"correction_metadata.attempts": 1},
            "$set": {"correction_metadata.last_attempt": now, "updated_at": now},
        }
        if error is not None:
            update["$push"] = {"correction_metadata.errors": error}

        doc = await self._collection.find_one_and_update(
            {"_id": oid, "status": PENDING},
            update,
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return AttemptOutcome.SKIPPED

        attempts = (doc.get("correction_metadata") or {}).get("attempts", 0)
        if attempts < max_retries:
            return AttemptOutcome.RETRIED

        last_error = f": {error}" if error else ""
        voided = await self._collection.update_one(
            {"_id": oid, "status": PENDING},
            _void_update(f"Max retry attempts reached ({attempts}/{max_retries}){last_error}", now),
        )
        if voided.modified_count:
            logger.warning("Prediction %s voided after %d attempts", oid, attempts)
            return AttemptOutcome.VOIDED
        return AttemptOutcome.SKIPPED

    async def mark_corrected(
        self,
        prediction_id: Any,
        correction: Correction,
        *,
        source: str,
        now: datetime | None = None,
    ) -> bool:
        """Settle as won/lost. False when the prediction was no longer pending."""
        now = now or utcnow()
        status = PredictionStatus.WON if correction.result else PredictionStatus.LOST
        result = await self._collection.update_one(
            {"_id": to_object_id(prediction_id), "status": PENDING},
            {
                "$set": {
                    "status": status.value,
                    "correction_metadata.corrected_at": now,
                    "correction_metadata.last_attempt": now,
                    "correction_metadata.correction_source": source,
                    "correction_metadata.confidence": correction.confidence,
                    "correction_metadata.expression": correction.expression,
                    "correction_metadata.reason": correction.reason,
                    "updated_at": now,
                },
                "$inc": {"correction_metadata.attempts": 1},
            },
        )
        return result.modified_count == 1

    async def void_exhausted(self, max_retries: int, now: datetime | None = None) -> int:
        """Void pending predictions already at the retry cap.

        `record_attempt` counts and voids in two writes; when the second one
        is lost the prediction sits at the cap and `find_eligible` no longer
        selects it. This sweep closes those out.
        """
        now = now or utcnow()
        result = await self._collection.update_many(
            {"status": PENDING, "correction_metadata.attempts": {"$gte": max_retries}},
            _void_update(f"Max retry attempts reached (limit {max_retries})", now),
        )
        if result.modified_count:
            logger.warning("Voided %d predictions stuck at the retry limit", result.modified_count)
        return result.modified_count
