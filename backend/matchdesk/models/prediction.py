"""
backend/matchdesk/models/prediction.py

Purpose:
    Prediction, ticket and correction result models. A prediction embeds a
    point-in-time match snapshot and an evaluatable event; its status is a
    one-way state machine (pending -> won | lost | void).

Dependencies:
    - pydantic
    - matchdesk.models.common.PyObjectId
    - matchdesk.models.sports.Match
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from matchdesk.models.common import PyObjectId
from matchdesk.models.sports import Match


class PredictionStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    VOID = "void"

    @property
    def is_terminal(self) -> bool:
        return self is not PredictionStatus.PENDING


class SportRef(BaseModel):
    id: str
    name: str | None = None
    icon: str | None = None


class PredictionEvent(BaseModel):
    id: str
    expression: str | None = None
    category: str | None = None
    label: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class CorrectionMetadata(BaseModel):
    attempts: int = 0
    last_attempt: datetime | None = None
    errors: list[str] = Field(default_factory=list)
    corrected_at: datetime | None = None
    correction_source: str | None = None
    confidence: str | None = None
    expression: str | None = None
    reason: str | None = None


class Prediction(BaseModel):
    id: PyObjectId | None = Field(alias="_id", default=None)
    ticket_id: PyObjectId | None = None
    match_data: Match
    # Denormalized kickoff of match_data.date, used by the correction sweep query.
    match_start: datetime | None = None
    event: PredictionEvent
    odds: float
    sport: SportRef
    status: PredictionStatus = PredictionStatus.PENDING
    correction_metadata: CorrectionMetadata = Field(default_factory=CorrectionMetadata)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class CorrectionReason(str, Enum):
    CORRECTED = "corrected"
    NOT_FINISHED = "not_finished"
    EVALUATION_ERROR = "evaluation_error"


class Correction(BaseModel):
    can_correct: bool
    result: bool | None = None
    reason: str
    reason_code: CorrectionReason
    confidence: str | None = None
    expression: str | None = None
    observed: dict[str, Any] = Field(default_factory=dict)


class CorrectionResult(BaseModel):
    success: bool
    prediction_id: str | None = None
    correction: Correction


class CycleStats(BaseModel):
    processed: int = 0
    corrected: int = 0
    retried: int = 0
    errored: int = 0
    voided: int = 0


class CorrectionStats(BaseModel):
    total_processed: int = 0
    total_corrected: int = 0
    total_retried: int = 0
    total_errors: int = 0
    total_voided: int = 0
    cycles: int = 0
    skipped_cycles: int = 0
    last_run: datetime | None = None
    last_cycle: CycleStats | None = None

    def absorb(self, cycle: CycleStats, finished_at: datetime) -> None:
        self.total_processed += cycle.processed
        self.total_corrected += cycle.corrected
        self.total_retried += cycle.retried
        self.total_errors += cycle.errored
        self.total_voided += cycle.voided
        self.cycles += 1
        self.last_run = finished_at
        self.last_cycle = cycle
