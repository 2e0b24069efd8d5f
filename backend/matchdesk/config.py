"""
backend/matchdesk/config.py

Purpose:
    Central settings loading for the sports data core: provider endpoints and
    credentials, cache backend, correction scheduler tuning.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "matchdesk"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # RapidAPI key shared by the api-sports family and the tennis API
    RAPID_API_KEY: str = ""

    # Provider endpoints (api-sports family on RapidAPI)
    FOOTBALL_BASE_URL: str = "https://api-football-v1.p.rapidapi.com/v3"
    FOOTBALL_HOST: str = "api-football-v1.p.rapidapi.com"
    BASKETBALL_BASE_URL: str = "https://api-basketball.p.rapidapi.com"
    BASKETBALL_HOST: str = "api-basketball.p.rapidapi.com"
    RUGBY_BASE_URL: str = "https://api-rugby.p.rapidapi.com"
    RUGBY_HOST: str = "api-rugby.p.rapidapi.com"
    HANDBALL_BASE_URL: str = "https://api-handball.p.rapidapi.com"
    HANDBALL_HOST: str = "api-handball.p.rapidapi.com"
    VOLLEYBALL_BASE_URL: str = "https://api-volleyball.p.rapidapi.com"
    VOLLEYBALL_HOST: str = "api-volleyball.p.rapidapi.com"
    BASEBALL_BASE_URL: str = "https://api-baseball.p.rapidapi.com"
    BASEBALL_HOST: str = "api-baseball.p.rapidapi.com"
    HOCKEY_BASE_URL: str = "https://api-hockey.p.rapidapi.com"
    HOCKEY_HOST: str = "api-hockey.p.rapidapi.com"
    TENNIS_BASE_URL: str = "https://tennis-api-atp-wta-itf.p.rapidapi.com"
    TENNIS_HOST: str = "tennis-api-atp-wta-itf.p.rapidapi.com"
    # PMU has no official API; no key, browser-like headers instead
    HORSE_BASE_URL: str = "https://online.turfinfo.api.pmu.fr/rest/client/61"
    HORSE_HOST: str = "online.turfinfo.api.pmu.fr"

    # HTTP client behaviour (per adapter)
    PROVIDER_TIMEOUT_SECONDS: float = 15.0
    PROVIDER_MAX_RETRIES: int = 2
    PROVIDER_BASE_DELAY_SECONDS: float = 2.0
    HORSE_TIMEOUT_SECONDS: float = 30.0

    # Dataset cache: "mongo" or "memory"
    DATASET_STORE_BACKEND: str = "mongo"

    # Correction scheduler
    CORRECTION_ENABLED: bool = True
    CORRECTION_HOURS: str = "0,3,8,11,13,15,16,18,19,20,22"  # UTC
    CORRECTION_MAX_RETRIES: int = 3
    CORRECTION_BATCH_LIMIT: int = 200
    CORRECTION_ITEM_DELAY_SECONDS: float = 0.1

    # Periodic forced refresh of today's datasets
    DATA_REFRESH_ENABLED: bool = True
    DATA_REFRESH_SPORTS: str = "football"

    # Ticket closing time = latest match start + grace window
    TICKET_CLOSING_GRACE_HOURS: int = 3

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


def parse_csv(value: str) -> list[str]:
    return [part.strip() for part in str(value or "").split(",") if part.strip()]


def correction_hours() -> list[int]:
    """Configured correction hours as sorted unique ints in [0, 23]."""
    hours: set[int] = set()
    for part in parse_csv(settings.CORRECTION_HOURS):
        hour = int(part)
        if not 0 <= hour <= 23:
            raise ValueError(f"CORRECTION_HOURS entry out of range: {hour}")
        hours.add(hour)
    return sorted(hours)


settings = Settings()
