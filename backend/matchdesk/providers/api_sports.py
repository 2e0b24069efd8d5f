"""
backend/matchdesk/providers/api_sports.py

Purpose:
    Helpers shared by the api-sports family adapters on RapidAPI (basketball,
    handball, volleyball, baseball, hockey, rugby). They all expose a
    `/games?date=` endpoint and the same league/country/teams envelope; each
    adapter keeps its own status table and score shape.

Dependencies:
    - matchdesk.providers.base
    - matchdesk.providers.http_client
"""

from __future__ import annotations

from typing import Any

from matchdesk.models.sports import League, Team, Teams
from matchdesk.providers.base import NormalizationError, SportConfig, dig, id_str
from matchdesk.providers.http_client import ResilientClient


async def fetch_games(
    client: ResilientClient,
    config: SportConfig,
    date: str,
    *,
    endpoint: str = "/games",
) -> dict[str, Any]:
    return await client.get_json(
        f"{config.base_url}{endpoint}",
        operation=f"fetch_fixtures({date})",
        params={"date": date},
        headers=config.rapidapi_headers(),
    )


def response_items(sport: str, raw_data: Any) -> tuple[list[dict[str, Any]], str | None]:
    """Return (`response` list, requested date) from an api-sports envelope."""
    if not isinstance(raw_data, dict):
        raise NormalizationError(sport, f"expected an object, got {type(raw_data).__name__}")
    items = raw_data.get("response") or []
    if not isinstance(items, list):
        raise NormalizationError(sport, "`response` is not a list")
    return items, dig(raw_data, "parameters", "date")


def game_country(game: dict[str, Any]) -> str | None:
    return dig(game, "country", "name")


def game_league(game: dict[str, Any], *, with_season: bool = True) -> League:
    league = game["league"]
    return League(
        id=id_str(league.get("id")),
        name=league.get("name"),
        country=game_country(game),
        logo=league.get("logo"),
        season=league.get("season") if with_season else None,
    )


def game_teams(game: dict[str, Any]) -> Teams:
    teams = game["teams"]
    return Teams(
        home=Team(
            id=id_str(dig(teams, "home", "id")),
            name=dig(teams, "home", "name"),
            logo=dig(teams, "home", "logo"),
        ),
        away=Team(
            id=id_str(dig(teams, "away", "id")),
            name=dig(teams, "away", "name"),
            logo=dig(teams, "away", "logo"),
        ),
    )


def game_timing(game: dict[str, Any]) -> dict[str, Any]:
    return {
        "time": game.get("time"),
        "timestamp": game.get("timestamp"),
        "timezone": game.get("timezone"),
        "week": game.get("week"),
    }
