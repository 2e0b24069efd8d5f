"""API-Volleyball adapter: sets won as score, per-set points under details."""

from __future__ import annotations

import logging
from typing import Any

from matchdesk.models.sports import CachedDataset, Match, MatchStatus, Score
from matchdesk.providers import api_sports
from matchdesk.providers.base import IndexBuilder, SportConfig, dig, map_status
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.volleyball")

STATUS_TABLE: dict[str, MatchStatus] = {
    "NS": MatchStatus.NOT_STARTED,
    "POST": MatchStatus.NOT_STARTED,
    "S1": MatchStatus.LIVE,
    "S2": MatchStatus.LIVE,
    "S3": MatchStatus.LIVE,
    "S4": MatchStatus.LIVE,
    "S5": MatchStatus.LIVE,
    "INTR": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "AW": MatchStatus.FINISHED,
    "AWD": MatchStatus.FINISHED,
    "CANC": MatchStatus.CANCELLED,
    "ABD": MatchStatus.CANCELLED,
}

# The API names periods by ordinal; older payloads used set1..set5.
_SET_KEYS = (
    ("set1", "first"),
    ("set2", "second"),
    ("set3", "third"),
    ("set4", "fourth"),
    ("set5", "fifth"),
)


def _set_points(periods: dict[str, Any], side: str) -> dict[str, Any]:
    points = {}
    for set_key, ordinal in _SET_KEYS:
        period = periods.get(set_key)
        if period is None:
            period = periods.get(ordinal)
        points[set_key] = dig(period, side)
    return points


class VolleyballProvider:
    sport_id = "volleyball"
    source = "api-volleyball"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        logger.info("Fetching volleyball games for %s", date)
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
                    details={
                        "sets": game.get("sets"),
                        "home": _set_points(periods, "home"),
                        "away": _set_points(periods, "away"),
                    },
                ),
                sport_specific={
                    **api_sports.game_timing(game),
                    "sets": game.get("sets"),
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
