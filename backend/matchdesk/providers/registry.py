"""
backend/matchdesk/providers/registry.py

Purpose:
    Static sport configuration (display name, icon, endpoint, credentials)
    and the registry mapping each supported sport id to its adapter. Each
    adapter gets its own ResilientClient so one provider's circuit breaker
    never blocks another.

Dependencies:
    - matchdesk.config
    - matchdesk.providers.*
"""

from __future__ import annotations

import logging
from typing import Callable

from matchdesk.config import settings
from matchdesk.providers.base import SportConfig, SportProvider
from matchdesk.providers.baseball import BaseballProvider
from matchdesk.providers.basketball import BasketballProvider
from matchdesk.providers.football import FootballProvider
from matchdesk.providers.handball import HandballProvider
from matchdesk.providers.hockey import HockeyProvider
from matchdesk.providers.horse import HorseProvider
from matchdesk.providers.http_client import ResilientClient
from matchdesk.providers.rugby import RugbyProvider
from matchdesk.providers.tennis import TennisProvider
from matchdesk.providers.volleyball import VolleyballProvider

logger = logging.getLogger("matchdesk.providers.registry")

_ADAPTERS: dict[str, tuple[str, str, Callable[[SportConfig, ResilientClient], SportProvider]]] = {
    "football": ("Football", "⚽", FootballProvider),
    "basketball": ("Basketball", "🏀", BasketballProvider),
    "rugby": ("Rugby", "🏉", RugbyProvider),
    "handball": ("Handball", "🤾", HandballProvider),
    "volleyball": ("Volleyball", "🏐", VolleyballProvider),
    "baseball": ("Baseball", "⚾", BaseballProvider),
    "hockey": ("Hockey", "🏒", HockeyProvider),
    "tennis": ("Tennis", "🎾", TennisProvider),
    "horse": ("Courses Hippiques", "🏇", HorseProvider),
}


def sport_configs() -> dict[str, SportConfig]:
    """Per-sport configuration from settings, in display order."""
    configs: dict[str, SportConfig] = {}
    for sport_id, (name, icon, _factory) in _ADAPTERS.items():
        prefix = sport_id.upper()
        is_horse = sport_id == "horse"
        configs[sport_id] = SportConfig(
            sport_id=sport_id,
            name=name,
            icon=icon,
            base_url=getattr(settings, f"{prefix}_BASE_URL"),
            host=getattr(settings, f"{prefix}_HOST"),
            api_key=None if is_horse else settings.RAPID_API_KEY,
            timeout=settings.HORSE_TIMEOUT_SECONDS if is_horse else settings.PROVIDER_TIMEOUT_SECONDS,
        )
    return configs


class ProviderRegistry:
    """Sport id -> (config, adapter)."""

    _instance: "ProviderRegistry | None" = None

    def __init__(self) -> None:
        self._configs: dict[str, SportConfig] = {}
        self._providers: dict[str, SportProvider] = {}
        self._clients: list[ResilientClient] = []

    @classmethod
    def get(cls) -> "ProviderRegistry":
        if cls._instance is None:
            cls._instance = cls.from_settings()
        return cls._instance

    @classmethod
    def from_settings(cls) -> "ProviderRegistry":
        registry = cls()
        for sport_id, config in sport_configs().items():
            factory = _ADAPTERS[sport_id][2]
            client = ResilientClient(
                sport_id,
                timeout=config.timeout or settings.PROVIDER_TIMEOUT_SECONDS,
                max_retries=settings.PROVIDER_MAX_RETRIES,
                base_delay=settings.PROVIDER_BASE_DELAY_SECONDS,
            )
            registry._clients.append(client)
            registry.register(config, factory(config, client))
        logger.info("Provider registry ready: %s", ", ".join(registry.sports()))
        return registry

    def register(self, config: SportConfig, provider: SportProvider) -> None:
        if not isinstance(provider, SportProvider):
            raise TypeError(f"{type(provider).__name__} does not implement SportProvider")
        self._configs[config.sport_id] = config
        self._providers[config.sport_id] = provider

    def has(self, sport_id: str) -> bool:
        return sport_id in self._providers

    def provider(self, sport_id: str) -> SportProvider | None:
        return self._providers.get(sport_id)

    def config(self, sport_id: str) -> SportConfig | None:
        return self._configs.get(sport_id)

    def sports(self) -> list[str]:
        return list(self._configs)

    def circuit_states(self) -> dict[str, str]:
        return {client.name: client.circuit.state for client in self._clients}

    async def aclose(self) -> None:
        for client in self._clients:
            await client.aclose()
        self._clients.clear()
