"""API-Rugby adapter: points as score, halves and overtime under details."""

from __future__ import annotations

import logging
from typing import Any

from matchdesk.models.sports import CachedDataset, Match, MatchStatus, Score
from matchdesk.providers import api_sports
from matchdesk.providers.base import IndexBuilder, SportConfig, dig, map_status
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.rugby")

STATUS_TABLE: dict[str, MatchStatus] = {
    "NS": MatchStatus.NOT_STARTED,
    "POST": MatchStatus.NOT_STARTED,
    "1H": MatchStatus.LIVE,
    "2H": MatchStatus.LIVE,
    "HT": MatchStatus.LIVE,
    "ET": MatchStatus.LIVE,
    "BT": MatchStatus.LIVE,
    "PT": MatchStatus.LIVE,
    "INTR": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "AET": MatchStatus.FINISHED,
    "AW": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "CANC": MatchStatus.CANCELLED,
    "ABD": MatchStatus.CANCELLED,
}


def _halves(periods: dict[str, Any], side: str) -> dict[str, Any]:
    return {
        "first_half": dig(periods, "first", side),
        "second_half": dig(periods, "second", side),
        "overtime": dig(periods, "overtime", side),
        "second_overtime": dig(periods, "second_overtime", side),
    }


class RugbyProvider:
    sport_id = "rugby"
    source = "api-rugby"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        logger.info("Fetching rugby games for %s", date)
        return await api_sports.fetch_games(self._client, self._config, date)

    async def normalize_data(self, raw_data: Any) -> CachedDataset:
        games, date = api_sports.response_items(self.sport_id, raw_data)
        index = IndexBuilder()
        matches = []

        for game in games:
            index.add(api_sports.game_country(game), dig(game, "league", "name"))
            periods = game.get("periods") or {}
            raw_status = dig(game, "status", "short")

            matches.append(Match(
                id=str(game["id"]),
                date=game.get("date"),
                league=api_sports.game_league(game),
                teams=api_sports.game_teams(game),
                venue=None,
                status=map_status(STATUS_TABLE, raw_status, sport=self.sport_id),
                score=Score(
                    home=dig(game, "scores", "home"),
                    away=dig(game, "scores", "away"),
                    details={"home": _halves(periods, "home"), "away": _halves(periods, "away")},
                ),
                sport_specific={
                    **api_sports.game_timing(game),
                    "periods": periods or None,
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
