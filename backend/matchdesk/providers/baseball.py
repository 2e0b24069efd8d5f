"""API-Baseball adapter: runs as score; hits, errors and innings line per side."""

from __future__ import annotations

import logging
from typing import Any

from matchdesk.models.sports import CachedDataset, Match, MatchStatus, Score
from matchdesk.providers import api_sports
from matchdesk.providers.base import IndexBuilder, SportConfig, dig, map_status
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.baseball")

STATUS_TABLE: dict[str, MatchStatus] = {
    "NS": MatchStatus.NOT_STARTED,
    "POST": MatchStatus.NOT_STARTED,
    **{f"IN{n}": MatchStatus.LIVE for n in range(1, 10)},
    "INTR": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "CANC": MatchStatus.CANCELLED,
    "ABD": MatchStatus.CANCELLED,
}


def _line(side: dict[str, Any]) -> dict[str, Any]:
    return {
        "hits": side.get("hits"),
        "errors": side.get("errors"),
        "innings": side.get("innings"),
    }


class BaseballProvider:
    sport_id = "baseball"
    source = "api-baseball"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        logger.info("Fetching baseball games for %s", date)
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
                league=api_sports.game_league(game),
                teams=api_sports.game_teams(game),
                venue=None,
                status=map_status(STATUS_TABLE, raw_status, sport=self.sport_id),
                score=Score(
                    home=home.get("total"),
                    away=away.get("total"),
                    details={"home": _line(home), "away": _line(away)},
                ),
                sport_specific={
                    **api_sports.game_timing(game),
                    "innings": {"home": home.get("innings"), "away": away.get("innings")},
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
