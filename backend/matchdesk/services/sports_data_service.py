"""
backend/matchdesk/services/sports_data_service.py

Purpose:
    Data orchestrator between the provider adapters and the dataset cache:
    cached-or-fetch reads per (sport, date), forced refresh, cross-date match
    lookup, and the query functions behind the sports API (countries,
    leagues, fixtures, match details, race participants).

Dependencies:
    - matchdesk.providers.registry
    - matchdesk.services.dataset_store
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from matchdesk.config import settings
from matchdesk.models.sports import (
    CachedDataset,
    CountryEntry,
    LeagueEntry,
    Match,
    MatchLookup,
    RaceParticipants,
    SportInfo,
)
from matchdesk.providers.base import NormalizationError, ProviderError
from matchdesk.providers.registry import ProviderRegistry
from matchdesk.services.dataset_store import DatasetStore, build_dataset_store
from matchdesk.utils import slugify

logger = logging.getLogger("matchdesk.sports_data")

FLAG_URL = "https://media.api-sports.io/flags/{code}.svg"
RACING_SPORT = "horse"


class ResourceNotFoundError(LookupError):
    """A sport, country or league the caller asked for does not exist."""


class UnknownSportError(ResourceNotFoundError):
    def __init__(self, sport: str) -> None:
        self.sport = sport
        super().__init__(f"Sport not found: {sport}")


def country_entry(country: str) -> CountryEntry:
    slug = slugify(country)
    return CountryEntry(id=slug, name=country, flag=FLAG_URL.format(code=slug[:2]))


def _resolve_country(dataset: CachedDataset, country_slug: str) -> str:
    wanted = country_slug.replace("-", " ").lower()
    for country in dataset.indexes.countries:
        if country.lower() == wanted or slugify(country) == country_slug.lower():
            return country
    raise ResourceNotFoundError(f"Country not found: {country_slug}")


class SportsDataService:
    _instance: "SportsDataService | None" = None

    def __init__(self, registry: ProviderRegistry, store: DatasetStore) -> None:
        self.registry = registry
        self.store = store
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_users: dict[tuple[str, str], int] = {}

    @classmethod
    def get(cls) -> "SportsDataService":
        if cls._instance is None:
            cls._instance = cls(
                ProviderRegistry.get(),
                build_dataset_store(settings.DATASET_STORE_BACKEND),
            )
        return cls._instance

    @asynccontextmanager
    async def _key_lock(self, sport: str, date: str):
        """Per-key lock, dropped again once no caller holds or waits on it."""
        key = (sport, date)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def fetch_and_store_data(
        self, sport: str, date: str, force_refresh: bool = False,
    ) -> CachedDataset:
        """Cached dataset for (sport, date), fetching and storing it when absent or forced.

        Writes for one key are serialized; a caller that waited behind another
        writer re-checks the cache so parallel cold reads cost one fetch.
        """
        provider = self.registry.provider(sport)
        if provider is None:
            raise UnknownSportError(sport)

        if not force_refresh and await self.store.exists(sport, date):
            logger.debug("Dataset %s/%s served from cache", sport, date)
            return await self.store.get(sport, date)

        async with self._key_lock(sport, date):
            if not force_refresh and await self.store.exists(sport, date):
                return await self.store.get(sport, date)

            raw_data = await provider.fetch_fixtures(date)
            try:
                dataset = await provider.normalize_data(raw_data)
            except NormalizationError:
                raise
            except (KeyError, TypeError, AttributeError, ValueError) as exc:
                raise NormalizationError(sport, f"{type(exc).__name__}: {exc}") from exc

            if dataset.date != date:
                dataset = dataset.model_copy(update={"date": date})
            await self.store.put(sport, date, dataset)
            logger.info(
                "Fetched %s dataset for %s (%d matches, force=%s)",
                sport, date, len(dataset.matches), force_refresh,
            )
            return await self.store.get(sport, date)

    async def find_match(
        self,
        sport: str,
        match_id: str,
        date: str | None = None,
        force_update: bool = False,
    ) -> MatchLookup:
        """Search the hint date first, then every other cached date for `sport`."""
        if not self.registry.has(sport):
            return MatchLookup(found=False, reason=f"Sport not found: {sport}")

        scanned: list[str] = []
        candidates = [date] if date else []
        candidates += [d for d in await self.store.list_available_dates(sport) if d != date]

        for candidate in candidates:
            scanned.append(candidate)
            try:
                dataset = await self.fetch_and_store_data(sport, candidate, force_update)
            except (ProviderError, NormalizationError) as exc:
                logger.warning("Skipping %s/%s while looking for match %s: %s", sport, candidate, match_id, exc)
                continue
            match = dataset.find(match_id)
            if match is not None:
                return MatchLookup(found=True, match=match, date=candidate, dates_scanned=scanned)

        return MatchLookup(
            found=False,
            reason=f"Match not found: {match_id} ({len(scanned)} dates scanned)",
            dates_scanned=scanned,
        )

    # ------------------------------------------------------------------
    # Query functions for the sports API
    # ------------------------------------------------------------------
    def list_sports(self) -> list[SportInfo]:
        sports = []
        for sport_id in self.registry.sports():
            config = self.registry.config(sport_id)
            sports.append(SportInfo(id=sport_id, name=config.name, icon=config.icon))
        return sports

    async def list_countries(self, sport: str, date: str, force: bool = False) -> list[CountryEntry]:
        dataset = await self.fetch_and_store_data(sport, date, force)
        return [country_entry(country) for country in dataset.indexes.countries]

    async def list_leagues(
        self, sport: str, date: str, country: str, force: bool = False,
    ) -> list[LeagueEntry]:
        dataset = await self.fetch_and_store_data(sport, date, force)
        country_name = _resolve_country(dataset, country)
        leagues: dict[str | None, LeagueEntry] = {}
        for match in dataset.matches:
            if match.league.country != country_name or match.league.id in leagues:
                continue
            leagues[match.league.id] = LeagueEntry(
                id=match.league.id, name=match.league.name, logo=match.league.logo,
            )
        return list(leagues.values())

    async def list_fixtures(
        self, sport: str, date: str, country: str, league: str, force: bool = False,
    ) -> list[Match]:
        dataset = await self.fetch_and_store_data(sport, date, force)
        country_name = _resolve_country(dataset, country)
        fixtures = [
            m for m in dataset.matches
            if m.league.country == country_name and m.league.id == league
        ]
        if not fixtures:
            raise ResourceNotFoundError(f"No fixtures found for league: {league}")
        return fixtures

    async def get_match(
        self, sport: str, match_id: str, date: str | None = None, force: bool = False,
    ) -> MatchLookup:
        if not self.registry.has(sport):
            raise UnknownSportError(sport)
        return await self.find_match(sport, match_id, date, force)

    async def get_race_participants(self, date: str, race_id: str) -> RaceParticipants:
        provider = self.registry.provider(RACING_SPORT)
        if provider is None:
            raise UnknownSportError(RACING_SPORT)
        raw_data = await provider.fetch_participants(date, race_id)
        try:
            return provider.normalize_participants(date, race_id, raw_data)
        except (KeyError, TypeError, AttributeError) as exc:
            raise NormalizationError(RACING_SPORT, f"{type(exc).__name__}: {exc}") from exc
