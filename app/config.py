#!/usr/bin/env python3

from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    database_url: str = "sqlite:///./kinderbridge.db"
    redis_url: str
    external_hostname: str = "localhost"  # Default to localhost
    log_level: str = "INFO"
    version: str = "0.1.0"

    # Remote daycare API
    search_api_url: str = "http://localhost:5001"
    search_api_timeout: float = 30.0

    # Search behaviour
    search_cache_ttl: int = 300  # Seconds a result page counts as fresh
    options_cache_ttl: int = 900  # Regions / program ages; cities and types use two thirds of it
    search_debounce_seconds: float = 0.5
    guest_page_size: int = 4
    member_page_size: int = 15
    map_page_limit: int = 1000
    recently_viewed_limit: int = 5
    fallback_dataset_path: Optional[str] = None  # Defaults to the bundled app/data/daycares.json

    # Authentik
    authentik_client_id: Optional[str] = None
    authentik_client_secret: Optional[str] = None
    authentik_config_url: Optional[str] = None
    auth_enabled: bool = True  # Default to enabled

    # Rate limiting
    rate_limit_enabled: bool = True
    search_rate_limit: str = "60/minute"

    class Config:
        env_file = ".env"

settings = Settings()
