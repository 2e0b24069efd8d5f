"""
backend/matchdesk/providers/base.py

Purpose:
    Shared contract for sport provider adapters: the capability protocol, the
    static per-sport configuration, the single adapter error type, and helpers
    every adapter composes (status mapping, country/league index building).

Dependencies:
    - matchdesk.models.sports
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, runtime_checkable

from matchdesk.models.sports import CachedDataset, DatasetIndexes, MatchStatus

logger = logging.getLogger("matchdesk.providers")


class ProviderError(Exception):
    """Network/HTTP failure talking to a provider, tagged with the adapter operation."""

    def __init__(
        self,
        provider: str,
        operation: str,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"[{provider}] {operation} failed: {message}")


class NormalizationError(Exception):
    """Provider payload did not have the shape the adapter expects."""

    def __init__(self, sport: str, message: str) -> None:
        self.sport = sport
        super().__init__(f"[{sport}] cannot normalize provider payload: {message}")


@dataclass(frozen=True)
class SportConfig:
    sport_id: str
    name: str
    icon: str
    base_url: str
    host: str
    api_key: str | None = None
    timeout: float | None = None
    extra_headers: Mapping[str, str] = field(default_factory=dict)

    def rapidapi_headers(self) -> dict[str, str]:
        return {
            "x-rapidapi-key": self.api_key or "",
            "x-rapidapi-host": self.host,
        }


@runtime_checkable
class SportProvider(Protocol):
    """What the orchestrator needs from a sport adapter."""

    sport_id: str
    source: str

    async def fetch_fixtures(self, date: str) -> Any:
        """One provider round-trip for the fixtures of `date` (YYYY-MM-DD)."""
        ...

    async def normalize_data(self, raw_data: Any) -> CachedDataset:
        """Translate the raw provider response into a canonical dataset."""
        ...


def map_status(table: Mapping[str, MatchStatus], raw: Any, *, sport: str) -> MatchStatus:
    """Map a raw provider status code onto the canonical enum.

    Unmapped codes become UNKNOWN; the raw value is kept by callers under
    sport_specific["raw_status"].
    """
    if raw is None:
        return MatchStatus.UNKNOWN
    status = table.get(str(raw).strip().upper())
    if status is None:
        logger.debug("[%s] unmapped provider status %r -> UNKNOWN", sport, raw)
        return MatchStatus.UNKNOWN
    return status


def id_str(value: Any) -> str | None:
    return None if value is None else str(value)


def dig(payload: Any, *path: str | int, default: Any = None) -> Any:
    """Nested lookup that tolerates missing keys and None links."""
    node = payload
    for key in path:
        if node is None:
            return default
        if isinstance(key, int):
            if not isinstance(node, (list, tuple)) or not -len(node) <= key < len(node):
                return default
            node = node[key]
        else:
            if not isinstance(node, Mapping):
                return default
            node = node.get(key)
    return default if node is None else node


class IndexBuilder:
    """Collects distinct countries and leagues per country in first-seen order."""

    def __init__(self, countries: list[str] | None = None) -> None:
        self._countries: dict[str, None] = dict.fromkeys(countries or [])
        self._leagues: dict[str, dict[str, None]] = {c: {} for c in self._countries}

    def add_country(self, country: str | None) -> None:
        if country is None:
            return
        self._countries.setdefault(country, None)
        self._leagues.setdefault(country, {})

    def add(self, country: str | None, league_name: str | None) -> None:
        if country is None:
            return
        self.add_country(country)
        if league_name is not None:
            self._leagues[country].setdefault(league_name, None)

    def build(self) -> DatasetIndexes:
        return DatasetIndexes(
            countries=list(self._countries),
            leagues={country: list(names) for country, names in self._leagues.items()},
        )
