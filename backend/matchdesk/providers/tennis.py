"""
backend/matchdesk/providers/tennis.py

Purpose:
    ATP fixtures from the RapidAPI tennis API. The fixtures feed only carries
    tournament ids, so normalization enriches each unique tournament with one
    `tournament/info` call. Tournament info is memoized per adapter instance;
    an enrichment failure degrades to a placeholder tournament instead of
    failing the whole dataset.

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
from matchdesk.providers.base import (
    IndexBuilder,
    NormalizationError,
    ProviderError,
    SportConfig,
    dig,
    id_str,
    map_status,
)
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.tennis")

FIXTURES_PATH = "/tennis/v2/atp/fixtures"
TOURNAMENT_INFO_PATH = "/tennis/v2/atp/tournament/info"
PAGE_SIZE = 1000
TOURNAMENT_CACHE_SIZE = 512

# The fixtures feed rarely carries a status; when it does, map it.
STATUS_TABLE: dict[str, MatchStatus] = {
    "NS": MatchStatus.NOT_STARTED,
    "SCHEDULED": MatchStatus.NOT_STARTED,
    "NOT_STARTED": MatchStatus.NOT_STARTED,
    "LIVE": MatchStatus.LIVE,
    "INPROGRESS": MatchStatus.LIVE,
    "IN_PROGRESS": MatchStatus.LIVE,
    "FT": MatchStatus.FINISHED,
    "FINISHED": MatchStatus.FINISHED,
    "ENDED": MatchStatus.FINISHED,
    "RET": MatchStatus.FINISHED,
    "WO": MatchStatus.FINISHED,
    "CANC": MatchStatus.CANCELLED,
    "CANCELLED": MatchStatus.CANCELLED,
    "POSTPONED": MatchStatus.NOT_STARTED,
}

DEFAULT_COUNTRY = "International"


def placeholder_tournament(tournament_id: Any) -> dict[str, Any]:
    return {
        "id": tournament_id,
        "name": f"Tournament {tournament_id}",
        "country": {"acronym": "INT", "name": DEFAULT_COUNTRY},
        "court": {"name": "Unknown"},
        "round": {"name": "Unknown"},
    }


def _tournament_country(info: dict[str, Any]) -> dict[str, Any] | None:
    # The upstream API spells the key "coutry".
    return info.get("country") or info.get("coutry")


def _season(date: str | None) -> int | None:
    if not date or len(date) < 4 or not date[:4].isdigit():
        return None
    return int(date[:4])


class TennisProvider:
    sport_id = "tennis"
    source = "tennis-api-atp-wta-itf"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client
        self._tournaments: dict[str, dict[str, Any]] = {}

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        logger.info("Fetching tennis fixtures for %s", date)
        return await self._client.get_json(
            f"{self._config.base_url}{FIXTURES_PATH}/{date}",
            operation=f"fetch_fixtures({date})",
            params={"pageSize": PAGE_SIZE, "pageNo": 1},
            headers=self._config.rapidapi_headers(),
        )

    async def tournament_info(self, tournament_id: Any) -> dict[str, Any]:
        """Cached tournament lookup; failures return a placeholder (not cached)."""
        key = str(tournament_id)
        cached = self._tournaments.get(key)
        if cached is not None:
            logger.debug("Using cached tournament info for %s", key)
            return cached

        try:
            payload = await self._client.get_json(
                f"{self._config.base_url}{TOURNAMENT_INFO_PATH}/{key}",
                operation=f"tournament_info({key})",
                headers=self._config.rapidapi_headers(),
            )
        except ProviderError as exc:
            logger.warning("Tournament info unavailable for %s: %s", key, exc)
            return placeholder_tournament(tournament_id)

        info = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(info, dict):
            logger.warning("Tournament info for %s has no data block", key)
            return placeholder_tournament(tournament_id)
        if len(self._tournaments) >= TOURNAMENT_CACHE_SIZE:
            # oldest entry first (insertion order)
            self._tournaments.pop(next(iter(self._tournaments)))
        self._tournaments[key] = info
        return info

    async def normalize_data(self, raw_data: Any) -> CachedDataset:
        if not isinstance(raw_data, dict):
            raise NormalizationError(self.sport_id, f"expected an object, got {type(raw_data).__name__}")
        fixtures = raw_data.get("data") or []
        if not isinstance(fixtures, list):
            raise NormalizationError(self.sport_id, "`data` is not a list")

        tournament_ids = list(dict.fromkeys(f.get("tournamentId") for f in fixtures))
        logger.info(
            "Found %d unique tournaments in %d tennis matches",
            len(tournament_ids), len(fixtures),
        )
        tournaments = {str(tid): await self.tournament_info(tid) for tid in tournament_ids}

        index = IndexBuilder()
        matches = []
        for fixture in fixtures:
            tid = fixture.get("tournamentId")
            info = tournaments[str(tid)]
            country = dig(_tournament_country(info), "name", default=DEFAULT_COUNTRY)
            name = info.get("name") or f"Tournament {tid}"
            p1_country = dig(fixture, "player1", "countryAcr", default="Unknown")
            p2_country = dig(fixture, "player2", "countryAcr", default="Unknown")

            index.add_country(p1_country)
            index.add_country(p2_country)
            index.add(country, name)

            court = dig(info, "court", "name")
            round_type = dig(info, "round", "name")
            date = fixture.get("date")
            _, _, city = (info.get("name") or "").partition(" - ")

            matches.append(Match(
                id=str(fixture["id"]),
                date=date,
                league=League(
                    id=id_str(tid),
                    name=name,
                    country=country,
                    logo=None,
                    season=_season(date),
                    court_type=court,
                    round_type=round_type,
                ),
                teams=Teams(
                    home=Team(
                        id=id_str(fixture.get("player1Id")),
                        name=dig(fixture, "player1", "name", default="Player 1"),
                        country=p1_country,
                    ),
                    away=Team(
                        id=id_str(fixture.get("player2Id")),
                        name=dig(fixture, "player2", "name", default="Player 2"),
                        country=p2_country,
                    ),
                ),
                venue=Venue(name=info.get("name"), city=city or None, country=country),
                status=(
                    map_status(STATUS_TABLE, fixture["status"], sport=self.sport_id)
                    if fixture.get("status") is not None
                    else MatchStatus.NOT_STARTED
                ),
                score=Score(
                    details={
                        "sets": None,
                        "home": {f"set{n}": None for n in range(1, 6)},
                        "away": {f"set{n}": None for n in range(1, 6)},
                    },
                ),
                sport_specific={
                    "round_id": fixture.get("roundId"),
                    "tournament_id": tid,
                    "tournament_info": {
                        "name": info.get("name"),
                        "court_type": court,
                        "round_type": round_type,
                        "country": _tournament_country(info),
                    },
                    "player1": {
                        "id": fixture.get("player1Id"),
                        "name": dig(fixture, "player1", "name"),
                        "country_acr": dig(fixture, "player1", "countryAcr"),
                    },
                    "player2": {
                        "id": fixture.get("player2Id"),
                        "name": dig(fixture, "player2", "name"),
                        "country_acr": dig(fixture, "player2", "countryAcr"),
                    },
                    "raw_status": fixture.get("status"),
                    "is_individual_sport": True,
                },
            ))

        first_date = fixtures[0].get("date") if fixtures else None
        return CachedDataset(
            sport=self.sport_id,
            date=first_date.split("T")[0] if isinstance(first_date, str) else None,
            source=self.source,
            raw_data=raw_data,
            matches=matches,
            indexes=index.build(),
            extras={
                "pagination": {
                    "has_next_page": bool(raw_data.get("hasNextPage", False)),
                    "total_matches": len(matches),
                    "unique_tournaments": len(tournament_ids),
                },
                "api_calls_used": len(tournament_ids) + 1,
            },
        )
