from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"

    database_url: str = "sqlite:///./share_cards.db"
    redis_url: str = "redis://localhost:6379/0"

    storage_backend: Literal["local", "s3"] = "local"
    local_storage_path: Path = Path(".local_storage")

    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_bucket: str = "share-cards"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    # Public CDN/bucket origin used to build blob URLs without a round-trip.
    s3_public_base_url: str | None = None

    share_card_retention_days: int = 7
    share_card_cache_control: str = "public, max-age=86400, s-maxage=604800"
    share_card_redirect_cache_control: str = "public, max-age=3600"
    share_card_direct_serve_on_storage_failure: bool = True

    font_url: str | None = "https://github.com/google/fonts/raw/main/ofl/poppins/Poppins-Bold.ttf"
    font_fetch_timeout_s: float = 10.0


settings = Settings()
