from functools import lru_cache
from typing import Literal, List
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]
PriceInversionPolicy = Literal["swap", "reject"]
TextMatcherName = Literal["regex", "atlas"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "CatalogSearch"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "unknown"

    # Mongo
    MONGO_URI: str = ""
    MONGO_DB: str = "storefront"
    MONGO_TLS: bool = True
    mongo_timeout_ms: int = 6000
    mongo_ensure_indexes: bool = True

    # Redis (optional, only used for the backfill lock)
    REDIS_URL: str = ""

    # Collections
    products_collection: str = "products"
    categories_collection: str = "categories"
    events_collection: str = "productevents"

    # Admin gate: comma separated API keys
    ADMIN_API_KEYS: str = ""

    # Search engine
    default_page_limit: int = 12
    max_page_limit: int = 100
    price_inversion_policy: PriceInversionPolicy = "swap"
    text_matcher: TextMatcherName = "regex"
    atlas_text_index: str = "text_index"
    facet_limit: int = 20
    search_timeout_s: float = 10.0

    # Backfill
    backfill_batch_size: int = 500
    backfill_preview_size: int = 20
    backfill_lock_ttl: int = 300            # seconds

    # API
    api_prefix: str = "/api"

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

    @property
    def admin_api_keys(self) -> List[str]:
        return [k.strip() for k in self.ADMIN_API_KEYS.split(",") if k.strip()]

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
