"""API-Hockey adapter: goals as score, periods / overtime / shootout under details."""

from __future__ import annotations

import logging
from typing import Any

from matchdesk.models.sports import CachedDataset, Match, MatchStatus, Score
from matchdesk.providers import api_sports
from matchdesk.providers.base import IndexBuilder, SportConfig, dig, map_status
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.hockey")

STATUS_TABLE: dict[str, MatchStatus] = {
    "NS": MatchStatus.NOT_STARTED,
    "POST": MatchStatus.NOT_STARTED,
    "P1": MatchStatus.LIVE,
    "P2": MatchStatus.LIVE,
    "P3": MatchStatus.LIVE,
    "OT": MatchStatus.LIVE,
    "PT": MatchStatus.LIVE,
    "BT": MatchStatus.LIVE,
    "INTR": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "AOT": MatchStatus.FINISHED,
    "AP": MatchStatus.FINISHED,
    "AW": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "CANC": MatchStatus.CANCELLED,
    "ABD": MatchStatus.CANCELLED,
}

_PERIOD_KEYS = ("first", "second", "third", "overtime", "penalties")


def _split(period: Any) -> tuple[Any, Any]:
    """Hockey periods come as "2-1" strings."""
    if not isinstance(period, str) or "-" not in period:
        return None, None
    home, _, away = period.partition("-")
    try:
        return int(home), int(away)
    except ValueError:
        return None, None


class HockeyProvider:
    sport_id = "hockey"
    source = "api-hockey"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        logger.info("Fetching hockey games for %s", date)
        return await api_sports.fetch_games(self._client, self._config, date)

    async def normalize_data(self, raw_data: Any) -> CachedDataset:
        games, date = api_sports.response_items(self.sport_id, raw_data)
        index = IndexBuilder()
        matches = []

        for game in games:
            index.add(api_sports.game_country(game), dig(game, "league", "name"))
            periods = game.get("periods") or {}
            home_line: dict[str, Any] = {}
            away_line: dict[str, Any] = {}
            for key in _PERIOD_KEYS:
                home_line[key], away_line[key] = _split(periods.get(key))
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
                    details={"home": home_line, "away": away_line},
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
