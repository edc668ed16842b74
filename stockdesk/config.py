"""
Configuration for the stockdesk dashboard
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Remote data store
    STORE_URL: str = "http://127.0.0.1:8085"
    STORE_API_KEY: str = ""
    STORE_TIMEOUT: float = 10.0

    # Dashboard
    DEFAULT_PAGE_SIZE: int = 12
    LOW_STOCK_THRESHOLD: int = 10  # stock at or below this is flagged

    DEBUG: bool = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def current_settings() -> Settings:
    """Read env and .env again, so a rotated store URL or key applies to the next request"""
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached dashboard settings (page size, thresholds, debug)"""
    get_settings.cache_clear()
    return get_settings()
