"""
backend/matchdesk/routers/corrections.py

Purpose:
    Operational endpoints for prediction settlement: correct one prediction
    now, run a full cycle outside the schedule, scheduler status; plus the
    ticket closing-time recompute used after predictions are added.

Dependencies:
    - matchdesk.workers.prediction_corrector
    - matchdesk.services.ticket_service
"""

from fastapi import APIRouter, HTTPException

import matchdesk.workers.prediction_corrector as corrector_module
from matchdesk.services.ticket_service import TicketService

router = APIRouter(prefix="/api/corrections", tags=["corrections"])
tickets_router = APIRouter(prefix="/api/tickets", tags=["tickets"])


@router.post("/predictions/{prediction_id}")
async def correct_prediction(prediction_id: str):
    return await corrector_module.prediction_corrector.manual_correction(prediction_id)


@router.post("/run")
async def run_cycle():
    try:
        cycle = await corrector_module.prediction_corrector.run_manual_cycle()
    except corrector_module.CorrectionCycleAlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail="Correction cycle already running.") from exc
    return {"ok": True, "cycle": cycle.model_dump()}


@router.get("/status")
async def correction_status():
    return corrector_module.prediction_corrector.get_status()


@tickets_router.post("/{ticket_id}/closing-time")
async def recompute_closing_time(ticket_id: str):
    closing_at = await TicketService().update_closing_time(ticket_id)
    return {"ticket_id": ticket_id, "closing_at": closing_at}
