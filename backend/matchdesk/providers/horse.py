"""
backend/matchdesk/providers/horse.py

Purpose:
    PMU turfinfo adapter for French horse racing. A day's programme is a list
    of meetings (reunions), each holding races (courses); every race becomes
    one canonical match with id "R<meeting>-C<race>". The racetrack stands in
    for the league, and the first two arrivals are exposed as score.home /
    score.away. Race participants are a separate endpoint.

    PMU has no public API contract: requests go out with browser-like headers,
    dates are DDMMYYYY, and timestamps are epoch milliseconds.

Dependencies:
    - matchdesk.providers.base
    - matchdesk.providers.http_client
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from matchdesk.models.sports import (
    CachedDataset,
    League,
    Match,
    MatchStatus,
    Participant,
    RaceParticipants,
    Score,
    Team,
    Teams,
    Venue,
)
from matchdesk.providers.base import (
    IndexBuilder,
    NormalizationError,
    SportConfig,
    dig,
    map_status,
)
from matchdesk.providers.http_client import ResilientClient

logger = logging.getLogger("matchdesk.providers.horse")

COUNTRY = "france"
UNKNOWN_TRACK = "Hippodrome inconnu"

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8",
    "Referer": "https://www.pmu.fr/",
    "Origin": "https://www.pmu.fr",
}

STATUS_TABLE: dict[str, MatchStatus] = {
    "PROGRAMMEE": MatchStatus.NOT_STARTED,
    "ROUGE_AUX_PARTANTS": MatchStatus.LIVE,
    "DEPART_DANS_TROIS_MINUTES": MatchStatus.LIVE,
    "COURSE_EN_COURS": MatchStatus.LIVE,
    "FIN_COURSE": MatchStatus.FINISHED,
    "ARRIVEE_DEFINITIVE": MatchStatus.FINISHED,
    "ARRIVEE_DEFINITIVE_COMPLETE": MatchStatus.FINISHED,
    "ANNULEE": MatchStatus.CANCELLED,
}

DISCIPLINES = {
    "MONTE": "Trot monté",
    "ATTELE": "Trot attelé",
    "GALOP": "Galop",
}

SEX_CONDITIONS = {
    "TOUS_CHEVAUX": "Tous",
    "MALES_ET_HONGRES": "Mâles et hongres",
    "FEMELLES": "Juments",
}

MEETING_TYPES = {
    "SEMINOCTURNE": "Nocturne",
    "DIURNE": "Diurne",
    "MATINALE": "Matinale",
}

DECLARED_RUNNER = "PARTANT"

_AGE_RE = (
    re.compile(r"Pour (\d+) ans?", re.IGNORECASE),
    re.compile(r"(\d+) (?:et|à) (\d+) ans", re.IGNORECASE),
)
_GAINS_RE = re.compile(r"gagné ([\d.]+)", re.IGNORECASE)


def pmu_date(date: str) -> str:
    """YYYY-MM-DD -> DDMMYYYY."""
    year, month, day = date.split("-")
    return f"{day}{month}{year}"


def _epoch_ms_to_iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def format_discipline(discipline: str | None, specialite: str | None = None) -> str:
    if not discipline:
        return "Trot"
    return DISCIPLINES.get(discipline) or specialite or discipline


def format_sex_condition(condition: str | None) -> str:
    if not condition:
        return "Tous"
    return SEX_CONDITIONS.get(condition, condition)


def format_meeting_type(nature: str | None) -> str:
    if not nature:
        return "Diurne"
    return MEETING_TYPES.get(nature, nature)


def format_bet_type(bet_type: str | None) -> str:
    if not bet_type:
        return ""
    return bet_type.replace("E_", "", 1).replace("_", " ").lower()


def age_from_conditions(conditions: str | None) -> int | None:
    if not conditions:
        return None
    for pattern in _AGE_RE:
        found = pattern.search(conditions)
        if found:
            return int(found.group(1))
    return None


def earnings_from_conditions(conditions: str | None) -> int | None:
    if not conditions:
        return None
    found = _GAINS_RE.search(conditions)
    if not found:
        return None
    return int(found.group(1).replace(".", ""))


def _meetings(raw_data: dict[str, Any]) -> tuple[list[dict[str, Any]], Any]:
    """Return (meetings, meeting date) from the three payload shapes PMU serves."""
    programme = raw_data.get("programme")
    if isinstance(programme, dict) and isinstance(programme.get("reunions"), list):
        return programme["reunions"], programme.get("date")
    if isinstance(raw_data.get("reunions"), list):
        return raw_data["reunions"], raw_data.get("dateReunion")
    if isinstance(raw_data.get("courses"), list):
        return [raw_data], raw_data.get("dateReunion")
    return [], None


def _weather(meeting: dict[str, Any], raw_data: dict[str, Any]) -> dict[str, Any] | None:
    meteo = meeting.get("meteo") or dig(raw_data, "programme", "meteo")
    if not meteo:
        return None
    return {
        "temperature": meteo.get("temperature"),
        "conditions": meteo.get("nebulositeLibelleCourt"),
        "wind": {
            "strength": meteo.get("forceVent"),
            "direction": meteo.get("directionVent"),
        },
    }


def _arrival(order: Any, place: int) -> Any:
    return dig(order, place, 0)


class HorseProvider:
    sport_id = "horse"
    source = "pmu-turfinfo"

    def __init__(self, config: SportConfig, client: ResilientClient) -> None:
        self._config = config
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {**BROWSER_HEADERS, **self._config.extra_headers}

    async def fetch_fixtures(self, date: str) -> dict[str, Any]:
        formatted = pmu_date(date)
        logger.info("Fetching horse races for %s (%s)", date, formatted)
        return await self._client.get_json(
            f"{self._config.base_url}/programme/{formatted}",
            operation=f"fetch_fixtures({date})",
            params={"meteo": "true", "specialisation": "INTERNET"},
            headers=self._headers(),
            timeout=self._config.timeout,
        )

    async def fetch_participants(self, date: str, race_id: str) -> dict[str, Any]:
        meeting, _, race = race_id.partition("-")
        if not meeting or not race:
            raise ValueError(f"Race id must look like R<n>-C<m>, got {race_id!r}")
        logger.info("Fetching participants for race %s on %s", race_id, date)
        return await self._client.get_json(
            f"{self._config.base_url}/programme/{pmu_date(date)}/{meeting}/{race}/participants",
            operation=f"fetch_participants({date}, {race_id})",
            params={"specialisation": "INTERNET"},
            headers=self._headers(),
            timeout=self._config.timeout,
        )

    def normalize_participants(self, date: str, race_id: str, raw_data: Any) -> RaceParticipants:
        if not isinstance(raw_data, dict):
            raise NormalizationError(self.sport_id, "participants payload is not an object")
        runners = [
            p for p in raw_data.get("participants") or []
            if p.get("statut") == DECLARED_RUNNER
        ]
        runners.sort(key=lambda p: p.get("numPmu") or 0)
        participants = [
            Participant(
                number=p.get("numPmu"),
                name=p.get("nom"),
                age=p.get("age"),
                sex=p.get("sexe"),
                breed=p.get("race"),
                status=p.get("statut"),
                draw=p.get("placeCorde"),
                owner=p.get("proprietaire"),
                trainer=p.get("entraineur"),
                jockey=p.get("driver"),
                form=p.get("musique"),
                performances={
                    "runs": p.get("nombreCourses"),
                    "wins": p.get("nombreVictoires"),
                    "places": p.get("nombrePlaces"),
                    "career_earnings": dig(p, "gainsParticipant", "gainsCarriere", default=0),
                },
                pedigree={
                    "sire": p.get("nomPere"),
                    "dam": p.get("nomMere"),
                    "dam_sire": p.get("nomPereMere"),
                },
                silks_url=p.get("urlCasaque"),
                handicap_weight=p.get("handicapPoids"),
                gait=p.get("allure"),
            )
            for p in runners
        ]
        return RaceParticipants(
            race_id=race_id,
            date=date,
            participants=participants,
            total_runners=len(participants),
            silks_sprites=raw_data.get("spriteCasaques") or [],
        )

    async def normalize_data(self, raw_data: Any) -> CachedDataset:
        index = IndexBuilder(countries=[COUNTRY])
        if not isinstance(raw_data, dict):
            return CachedDataset(
                sport=self.sport_id,
                source=self.source,
                raw_data=raw_data or {},
                indexes=index.build(),
            )

        meetings, meeting_date = _meetings(raw_data)
        date = _epoch_ms_to_iso(meeting_date)
        if date is not None:
            date = date[:10]

        matches = []
        for meeting in meetings:
            track = meeting.get("hippodrome") or {}
            track_code = track.get("code") or "UNK"
            track_name = track.get("libelleCourt") or UNKNOWN_TRACK
            index.add(COUNTRY, track_name)

            for race in meeting.get("courses") or []:
                order = race.get("ordreArrivee")
                runners = race.get("nombreDeclaresPartants") or 0
                conditions = race.get("conditions")
                raw_status = race.get("statut")

                matches.append(Match(
                    id=f"R{meeting.get('numOfficiel') or 0}-C{race.get('numOrdre') or 0}",
                    date=_epoch_ms_to_iso(race.get("heureDepart")),
                    league=League(id=track_code, name=track_name, country=COUNTRY),
                    teams=Teams(
                        home=Team(id="field", name="Partants"),
                        away=Team(id="odds", name=f"{runners} chevaux"),
                    ),
                    venue=Venue(
                        id=track_code,
                        name=track.get("libelleLong") or UNKNOWN_TRACK,
                        city=track.get("libelleCourt") or "Ville inconnue",
                    ),
                    status=map_status(STATUS_TABLE, raw_status, sport=self.sport_id),
                    score=Score(
                        home=_arrival(order, 0),
                        away=_arrival(order, 1),
                        details={
                            "arrival": order,
                            "provisional_inquiry": race.get("indicateurEvenementArriveeProvisoire"),
                            "third": _arrival(order, 2),
                        },
                    ),
                    sport_specific={
                        "race_number": race.get("numOrdre"),
                        "race_name": race.get("libelle") or "Course sans nom",
                        "race_name_short": race.get("libelleCourt") or race.get("libelle") or "Course",
                        "discipline": format_discipline(race.get("discipline"), race.get("specialite")),
                        "distance": f"{race['distance']}m" if race.get("distance") else None,
                        "track": "Gauche" if race.get("corde") == "CORDE_GAUCHE" else "Droite",
                        "runners": runners,
                        "conditions": {
                            "age": age_from_conditions(conditions),
                            "sex": format_sex_condition(race.get("conditionSexe")),
                            "earnings": earnings_from_conditions(conditions),
                        },
                        "prize": {
                            "total": race.get("montantPrix") or 0,
                            "first": race.get("montantOffert1er") or 0,
                            "second": race.get("montantOffert2eme") or 0,
                            "third": race.get("montantOffert3eme") or 0,
                        },
                        "betting_types": [
                            {
                                "type": format_bet_type(bet.get("typePari")),
                                "base_stake": bet.get("miseBase") or 0,
                                "available": bool(bet.get("enVente")),
                            }
                            for bet in race.get("paris") or []
                        ],
                        "weather": _weather(meeting, raw_data),
                        "meeting_type": format_meeting_type(meeting.get("nature")),
                        "duration": race.get("dureeCourse"),
                        "raw_status": raw_status,
                    },
                ))

        # Races without a start time sort last.
        matches.sort(key=lambda m: (m.date is None, m.date or ""))
        return CachedDataset(
            sport=self.sport_id,
            date=date,
            source=self.source,
            raw_data=raw_data,
            matches=matches,
            indexes=index.build(),
        )
