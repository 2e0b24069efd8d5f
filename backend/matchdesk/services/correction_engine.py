"""
backend/matchdesk/services/correction_engine.py

Purpose:
    Decides a pending prediction against freshly fetched match data. Only a
    FINISHED match is decidable; the event expression is then evaluated over
    the sport's result fields and mapped to won (true) / lost (false). An
    expression that cannot be evaluated is reported as an evaluation error,
    distinct from "not finished", so the scheduler can tell a retry from a
    permanent failure.

Dependencies:
    - matchdesk.services.expression_evaluator
    - matchdesk.services.result_fields
"""

from __future__ import annotations

import logging

from matchdesk.models.prediction import Correction, CorrectionReason, CorrectionResult, Prediction
from matchdesk.models.sports import Match, MatchStatus
from matchdesk.services.expression_evaluator import ExpressionError, evaluate
from matchdesk.services.result_fields import ResultFields, UnknownFieldError

logger = logging.getLogger("matchdesk.correction_engine")

CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"


def _format_observed(observed: dict) -> str:
    return ", ".join(f"{name}={value}" for name, value in observed.items())


class CorrectionEngine:
    def correct_prediction(
        self, prediction: Prediction, fresh_match: Match, sport_id: str,
    ) -> CorrectionResult:
        prediction_id = str(prediction.id) if prediction.id is not None else None
        expression = prediction.event.expression

        if fresh_match.status is not MatchStatus.FINISHED:
            if fresh_match.status is MatchStatus.CANCELLED:
                reason = f"Match {fresh_match.id} was cancelled; no result to settle against"
            else:
                reason = f"Match not finished (status {fresh_match.status.value})"
            return CorrectionResult(
                success=True,
                prediction_id=prediction_id,
                correction=Correction(
                    can_correct=False,
                    reason=reason,
                    reason_code=CorrectionReason.NOT_FINISHED,
                    expression=expression,
                ),
            )

        if not expression or not expression.strip():
            return self._evaluation_error(prediction_id, expression, "Event has no expression to evaluate")

        fields = ResultFields(fresh_match, sport_id)
        try:
            outcome = evaluate(expression, fields.resolve, prediction.event.params)
        except (ExpressionError, UnknownFieldError) as exc:
            logger.info("Prediction %s not evaluable: %s", prediction_id, exc)
            return self._evaluation_error(prediction_id, expression, str(exc), fields.observed)

        confidence = (
            CONFIDENCE_HIGH
            if fields.full_time_score_present and fields.only_full_time_read()
            else CONFIDENCE_MEDIUM
        )
        verdict = "satisfied" if outcome else "not satisfied"
        return CorrectionResult(
            success=True,
            prediction_id=prediction_id,
            correction=Correction(
                can_correct=True,
                result=outcome,
                reason=f"'{expression}' {verdict} ({_format_observed(fields.observed)})",
                reason_code=CorrectionReason.CORRECTED,
                confidence=confidence,
                expression=expression,
                observed=dict(fields.observed),
            ),
        )

    @staticmethod
    def _evaluation_error(
        prediction_id: str | None,
        expression: str | None,
        message: str,
        observed: dict | None = None,
    ) -> CorrectionResult:
        return CorrectionResult(
            success=False,
            prediction_id=prediction_id,
            correction=Correction(
                can_correct=False,
                reason=f"Cannot evaluate expression: {message}",
                reason_code=CorrectionReason.EVALUATION_ERROR,
                expression=expression,
                observed=dict(observed or {}),
            ),
        )
