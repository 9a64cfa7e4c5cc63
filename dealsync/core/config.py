# dealsync/core/config.py
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///./dealsync.db")

    # eBay Browse API credentials; rules are not armed without them
    ebay_app_id: Optional[str] = None
    ebay_cert_id: Optional[str] = None
    ebay_campaign_id: Optional[str] = None
    ebay_marketplace_id: str = "EBAY_US"

    search_timeout_seconds: float = Field(20.0, gt=0)
    search_limit: int = Field(100, ge=1, le=200)
    search_cache_ttl_seconds: int = Field(1800, ge=0)
    keyword_delay_seconds: float = Field(0.5, ge=0)

    execution_stale_after_hours: float = Field(24.0, gt=0)
    sweep_max_age_days: float = Field(7.0, gt=0)
    sweep_cron: str = "0 2 * * *"
    default_schedule_cron: str = "0 0 * * *"
    scheduler_timezone: str = "UTC"
    scheduler_enabled: bool = True

    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def marketplace_configured(self) -> bool:
        return bool(self.ebay_app_id and self.ebay_cert_id)


@lru_cache
def get_settings() -> Settings:
    return Settings()
