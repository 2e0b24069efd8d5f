"""
backend/matchdesk/models/sports.py

Purpose:
    Canonical, sport-agnostic match schema produced by every provider adapter
    and the per-(sport, date) dataset persisted by the dataset store.

Dependencies:
    - pydantic
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MatchStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


class League(BaseModel):
    """Competition, or the racetrack for racing."""

    id: str | None = None
    name: str | None = None
    country: str | None = None
    logo: str | None = None
    season: int | str | None = None

    model_config = ConfigDict(extra="allow")


class Team(BaseModel):
    id: str | None = None
    name: str | None = None
    logo: str | None = None

    model_config = ConfigDict(extra="allow")


class Teams(BaseModel):
    home: Team = Field(default_factory=Team)
    away: Team = Field(default_factory=Team)


class Venue(BaseModel):
    id: str | None = None
    name: str | None = None
    city: str | None = None

    model_config = ConfigDict(extra="allow")


class Score(BaseModel):
    home: Any = None
    away: Any = None
    details: dict[str, Any] = Field(default_factory=dict)


class Match(BaseModel):
    id: str
    date: str | None = None
    league: League = Field(default_factory=League)
    teams: Teams = Field(default_factory=Teams)
    venue: Venue | None = None
    status: MatchStatus = MatchStatus.UNKNOWN
    score: Score = Field(default_factory=Score)
    sport_specific: dict[str, Any] = Field(default_factory=dict)


class DatasetIndexes(BaseModel):
    countries: list[str] = Field(default_factory=list)
    leagues: dict[str, list[str]] = Field(default_factory=dict)


class CachedDataset(BaseModel):
    sport: str
    date: str | None = None
    source: str
    raw_data: Any = None
    matches: list[Match] = Field(default_factory=list)
    indexes: DatasetIndexes = Field(default_factory=DatasetIndexes)
    extras: dict[str, Any] = Field(default_factory=dict)

    def find(self, match_id: str) -> Match | None:
        for match in self.matches:
            if match.id == match_id:
                return match
        return None


class SportInfo(BaseModel):
    id: str
    name: str
    icon: str | None = None


class CountryEntry(BaseModel):
    id: str
    name: str
    flag: str


class LeagueEntry(BaseModel):
    id: str | None = None
    name: str | None = None
    logo: str | None = None


class MatchLookup(BaseModel):
    """Outcome of a cross-date match search. Misses are values, not errors."""

    found: bool
    match: Match | None = None
    date: str | None = None
    reason: str | None = None
    dates_scanned: list[str] = Field(default_factory=list)


class Participant(BaseModel):
    number: int | None = None
    name: str | None = None
    age: int | None = None
    sex: str | None = None
    breed: str | None = None
    status: str | None = None
    draw: int | None = None
    owner: str | None = None
    trainer: str | None = None
    jockey: str | None = None
    form: str | None = None
    performances: dict[str, Any] = Field(default_factory=dict)
    pedigree: dict[str, Any] = Field(default_factory=dict)
    silks_url: str | None = None
    handicap_weight: int | float | None = None
    gait: str | None = None


class RaceParticipants(BaseModel):
    race_id: str
    date: str
    participants: list[Participant] = Field(default_factory=list)
    total_runners: int = 0
    silks_sprites: list[Any] = Field(default_factory=list)
