"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # TELEGRAM
    # ===================
    telegram_bot_token: Optional[str] = Field(
        None,
        description="Telegram bot token from @BotFather"
    )
    telegram_chat_id: Optional[str] = Field(
        None,
        description="Telegram chat ID for audit alerts"
    )

    # ===================
    # UNIT SETTINGS
    # ===================
    default_pieces_per_box: int = Field(
        default=24,
        ge=1,
        le=1000,
        description="Pieces per box when a product declares no ratio"
    )

    # ===================
    # ALLOCATION
    # ===================
    allocation_max_retries: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Optimistic update attempts before a sale is rejected as conflicting"
    )

    # ===================
    # RECEIPT / REPORT
    # ===================
    receipt_width: int = Field(
        default=32,
        ge=24,
        le=80,
        description="Character width of the plain-text summary receipt"
    )
    receipt_title: str = Field(
        default="FRESH SODA SALES",
        description="Header line printed on the summary receipt"
    )
    currency_symbol: str = Field(
        default="₹",
        description="Currency prefix for amounts"
    )

    # ===================
    # SHOP DIRECTORY
    # ===================
    shop_suggestion_limit: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Maximum shop name suggestions returned per query"
    )
    shop_history_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum remembered shop names per route"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def telegram_configured(self) -> bool:
        """Check if Telegram is properly configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
