"""
backend/matchdesk/providers/football.py

Purpose:
    API-Football (RapidAPI v3) adapter: `/fixtures?date=` fetch and
    normalization into canonical matches with half-time / full-time /
    extra-time / penalty score details.

Dependencies:
    - matchdesk.providers.base
    - matchdesk.providers.http_client
"""

from __future__ import annotations

import logging
from typing import Any

from matchdesk.models.sports import (
    CachedDataset,
    League,
    Match,
    MatchStatus,
    Score,
    Team,
    Teams,
    Venue,
)
from matchdesk.providers.base import IndexBuilder, NormalizationError, SportConfig, dig, id_str, map_status
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.football")

STATUS_TABLE: dict[str, MatchStatus] = {
    "TBD": MatchStatus.NOT_STARTED,
    "NS": MatchStatus.NOT_STARTED,
    "PST": MatchStatus.NOT_STARTED,
    "1H": MatchStatus.LIVE,
    "HT": MatchStatus.LIVE,
    "2H": MatchStatus.LIVE,
    "ET": MatchStatus.LIVE,
    "BT": MatchStatus.LIVE,
    "P": MatchStatus.LIVE,
    "SUSP": MatchStatus.LIVE,
    "INT": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "AET": MatchStatus.FINISHED,
    "PEN": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "WO": MatchStatus.FINISHED,
    "CANC": MatchStatus.CANCELLED,
    "ABD": MatchStatus.CANCELLED,
}

_EMPTY_PAIR = {"home": None, "away": None}


class FootballProvider:
    sport_id = "football"
    source = "api-football"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        logger.info("Fetching football fixtures for %s", date)
        return await self._client.get_json(
            f"{self._config.base_url}/fixtures",
            operation=f"fetch_fixtures({date})",
            params={"date": date},
            headers=self._config.rapidapi_headers(),
        )

    async def normalize_data(self, raw_data: Any) -> CachedDataset:
        if not isinstance(raw_data, dict):
            raise NormalizationError(self.sport_id, "expected an object payload")
        fixtures = raw_data.get("response") or []
        index = IndexBuilder()
        matches = []

        for item in fixtures:
            fixture = item["fixture"]
            league = item["league"]
            country = league.get("country")
            index.add(country, league.get("name"))

            raw_status = dig(fixture, "status", "short")
            venue = fixture.get("venue") or None
            score = item.get("score") or {}

            matches.append(Match(
                id=str(fixture["id"]),
                date=fixture.get("date"),
                league=League(
                    id=id_str(league.get("id")),
                    name=league.get("name"),
                    country=country,
                    logo=league.get("logo"),
                    season=league.get("season"),
                ),
                teams=Teams(
                    home=Team(
                        id=id_str(dig(item, "teams", "home", "id")),
                        name=dig(item, "teams", "home", "name"),
                        logo=dig(item, "teams", "home", "logo"),
                    ),
                    away=Team(
                        id=id_str(dig(item, "teams", "away", "id")),
                        name=dig(item, "teams", "away", "name"),
                        logo=dig(item, "teams", "away", "logo"),
                    ),
                ),
                venue=Venue(
                    id=id_str(venue.get("id")),
                    name=venue.get("name"),
                    city=venue.get("city"),
                ) if venue else None,
                status=map_status(STATUS_TABLE, raw_status, sport=self.sport_id),
                score=Score(
                    home=dig(item, "goals", "home"),
                    away=dig(item, "goals", "away"),
                    details={
                        "halftime": score.get("halftime") or dict(_EMPTY_PAIR),
                        "fulltime": score.get("fulltime") or dict(_EMPTY_PAIR),
                        "extratime": score.get("extratime") or dict(_EMPTY_PAIR),
                        "penalty": score.get("penalty") or dict(_EMPTY_PAIR),
                    },
                ),
                sport_specific={
                    "elapsed": dig(fixture, "status", "elapsed"),
                    "referee": fixture.get("referee"),
                    "raw_status": raw_status,
                    "status_long": dig(fixture, "status", "long"),
                },
            ))

        return CachedDataset(
            sport=self.sport_id,
            date=dig(raw_data, "parameters", "date"),
            source=self.source,
            raw_data=raw_data,
            matches=matches,
            indexes=index.build(),
        )
