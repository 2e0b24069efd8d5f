"""API-Basketball adapter: quarter-by-quarter scores, overtime kept apart."""

from __future__ import annotations

import logging
from typing import Any

from matchdesk.models.sports import CachedDataset, Match, MatchStatus, Score
from matchdesk.providers import api_sports
from matchdesk.providers.base import IndexBuilder, SportConfig, dig, map_status
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.basketball")

STATUS_TABLE: dict[str, MatchStatus] = {
    "NS": MatchStatus.NOT_STARTED,
    "POST": MatchStatus.NOT_STARTED,
    "Q1": MatchStatus.LIVE,
    "Q2": MatchStatus.LIVE,
    "Q3": MatchStatus.LIVE,
    "Q4": MatchStatus.LIVE,
    "OT": MatchStatus.LIVE,
    "BT": MatchStatus.LIVE,
    "HT": MatchStatus.LIVE,
    "SUSP": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "AOT": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "CANC": MatchStatus.CANCELLED,
    "ABD": MatchStatus.CANCELLED,
}


def _quarters(side: dict[str, Any]) -> dict[str, Any]:
    return {
        "quarter_1": side.get("quarter_1"),
        "quarter_2": side.get("quarter_2"),
        "quarter_3": side.get("quarter_3"),
        "quarter_4": side.get("quarter_4"),
        "overtime": side.get("over_time"),
    }


class BasketballProvider:
    sport_id = "basketball"
    source = "api-basketball"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        logger.info("Fetching basketball games for %s", date)
        return await api_sports.fetch_games(self._client, self._config, date)

    async def normalize_data(self, raw_data: Any) -> CachedDataset:
        games, date = api_sports.response_items(self.sport_id, raw_data)
        index = IndexBuilder()
        matches = []

        for game in games:
            index.add(api_sports.game_country(game), dig(game, "league", "name"))
            home = dig(game, "scores", "home", default={})
            away = dig(game, "scores", "away", default={})
            raw_status = dig(game, "status", "short")

            matches.append(Match(
                id=str(game["id"]),
                date=game.get("date"),
                league=api_sports.game_league(game, with_season=False),
                teams=api_sports.game_teams(game),
                venue=None,
                status=map_status(STATUS_TABLE, raw_status, sport=self.sport_id),
                score=Score(
                    home=home.get("total"),
                    away=away.get("total"),
                    details={"home": _quarters(home), "away": _quarters(away)},
                ),
                sport_specific={
                    "overtime": {"home": home.get("over_time"), "away": away.get("over_time")},
                    "timer": dig(game, "status", "timer"),
                    "raw_status": raw_status,
                },
            ))

        return CachedDataset(
            sport=self.sport_id,
            date=date,
            source=self.source,
            raw_data=raw_data,
            matches=matches,
            indexes=index.build(),
        )
