# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - DATABASE_URL (Supabase Postgres connection string)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for the Storage admin client)
      - catalog policy knobs below (seed stock, thresholds, upload limits)
    """

    PROJECT_NAME: str = "Storefront Catalog Backend"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    DATABASE_URL: str

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    STORAGE_BUCKET: str = "assets"

    # Postgres statement timeout; a timeout is a retryable failure
    DB_STATEMENT_TIMEOUT_MS: int = 10_000

    # --- Catalog policy ---
    VARIANT_SEED_STOCK: int = 10
    DEFAULT_LOW_STOCK_THRESHOLD: int = 5
    MAX_BEST_SELLING: int = 4

    # --- Images ---
    MAX_IMAGE_SLOTS: int = 5
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024  # 5MB per image
    UPLOAD_MAX_WORKERS: int = 4
    UPLOAD_TIMEOUT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
