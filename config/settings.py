"""Configuration management using pydantic-settings."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Memory layer
    use_memory_cache: bool = True
    # Ceiling on in-memory lifetime in milliseconds; None uses each key's own TTL
    memory_cache_timeout: Optional[int] = None
    memory_cache_max_entries: Optional[int] = None

    # Backing store: "memory", "file" or "database"
    cache_backend: str = "memory"
    cache_directory: Path = Path("./cache")
    cache_database_url: str = "sqlite:///./parks_cache.db"

    # Outbound HTTP
    request_timeout: int = 30
    http_retry_attempts: int = 3

    # Parc Asterix
    parcasterix_api_base: Optional[str] = None
    parcasterix_language: str = "en"

    # Plopsaland De Panne
    plopsaland_client_id: Optional[str] = None
    plopsaland_client_secret: Optional[str] = None
    plopsaland_base_url: str = "https://www.plopsalanddepanne.be/"

    # Universal resorts (shared credentials)
    universal_secret_key: Optional[str] = None
    universal_app_key: Optional[str] = None
    universal_base_url: Optional[str] = None
    universal_vqueue_url: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
