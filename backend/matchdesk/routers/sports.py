"""
backend/matchdesk/routers/sports.py

Purpose:
    Sports data read API: configured sports, and the countries / leagues /
    fixtures of a (sport, date) dataset, match details by id with an
    optional date hint, and horse race participants. `?force=true` bypasses
    the dataset cache.

Dependencies:
    - matchdesk.services.sports_data_service
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from matchdesk.services.sports_data_service import ResourceNotFoundError, SportsDataService
from matchdesk.utils import validate_date_str

logger = logging.getLogger("matchdesk.sports")

router = APIRouter(prefix="/api/sports", tags=["sports"])

_RACE_ID_RE = re.compile(r"^R\d+-C\d+$")


def _date_or_400(date: str) -> str:
    try:
        return validate_date_str(date)
    except ValueError:
        raise HTTPException(status_code=400, detail="Date must be YYYY-MM-DD.") from None


@router.get("")
async def list_sports():
    sports = SportsDataService.get().list_sports()
    return {"data": [s.model_dump() for s in sports], "count": len(sports)}


@router.get("/{sport}/dates/{date}/countries")
async def list_countries(sport: str, date: str, force: bool = Query(False)):
    date = _date_or_400(date)
    try:
        countries = await SportsDataService.get().list_countries(sport, date, force)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"data": [c.model_dump() for c in countries], "count": len(countries)}


@router.get("/{sport}/dates/{date}/countries/{country}/leagues")
async def list_leagues(sport: str, date: str, country: str, force: bool = Query(False)):
    date = _date_or_400(date)
    try:
        leagues = await SportsDataService.get().list_leagues(sport, date, country, force)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"data": [lg.model_dump() for lg in leagues], "count": len(leagues)}


@router.get("/{sport}/dates/{date}/countries/{country}/leagues/{league}/fixtures")
async def list_fixtures(
    sport: str, date: str, country: str, league: str, force: bool = Query(False),
):
    date = _date_or_400(date)
    try:
        fixtures = await SportsDataService.get().list_fixtures(sport, date, country, league, force)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"data": [m.model_dump(mode="json") for m in fixtures], "count": len(fixtures)}


@router.get("/{sport}/matches/{match_id}")
async def match_details(
    sport: str,
    match_id: str,
    date: Optional[str] = Query(None, description="YYYY-MM-DD hint searched first"),
    force: bool = Query(False),
):
    if date is not None:
        date = _date_or_400(date)
    try:
        lookup = await SportsDataService.get().get_match(sport, match_id, date, force)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not lookup.found:
        raise HTTPException(status_code=404, detail=lookup.reason or f"Match not found: {match_id}")
    return {"data": lookup.match.model_dump(mode="json"), "date": lookup.date}


@router.get("/horse/dates/{date}/races/{race_id}/participants")
async def race_participants(date: str, race_id: str):
    date = _date_or_400(date)
    if not _RACE_ID_RE.match(race_id):
        raise HTTPException(status_code=400, detail="Race id must look like R1-C2.")
    try:
        participants = await SportsDataService.get().get_race_participants(date, race_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"data": participants.model_dump(mode="json"), "count": participants.total_runners}
