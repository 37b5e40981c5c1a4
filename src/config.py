from __future__ import annotations

from enum import StrEnum
from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
CACHE_DB_FILE = ARTIFACTS_DIR / "price_cache.db"


class ProviderMode(StrEnum):
    AUTO = "auto"
    GOLD_API = "gold_api"
    YAHOO_FINANCE = "yahoo_finance"
    ALPHA_VANTAGE = "alpha_vantage"
    MOCK = "mock"


class AppSettings(BaseSettings):
    data_provider_mode: ProviderMode = ProviderMode.AUTO
    alpha_vantage_api_key: str | None = None
    gold_api_key: str | None = None

    cache_ttl_seconds: int = 30
    live_cache_ttl_seconds: int = 3600
    historical_cache_ttl_seconds: int = 86400
    local_warm_ttl_seconds: int = 60
    fx_cache_ttl_seconds: int = 3600

    # Empty string disables the durable layer.
    durable_cache_url: str = f"sqlite:///{CACHE_DB_FILE}"
    durable_cache_connect_timeout_seconds: float = 0.5
    durable_cache_retry_cooldown_seconds: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()
