"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (bot token, admin ids, channel, storage, etc.)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal, FrozenSet


def parse_id_list(raw: Optional[str]) -> FrozenSet[int]:
    """
    Parses a comma separated list of numeric ids.
    Blank and non-numeric entries are ignored.
    """
    if not raw:
        return frozenset()
    ids = set()
    for part in raw.split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.add(int(part))
    return frozenset(ids)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Telegram
    BOT_TOKEN: str = Field(
        default="",
        description="Telegram bot token issued by BotFather"
    )
    ADMIN_IDS: str = Field(
        default="",
        description="Comma separated Telegram user ids allowed to moderate"
    )
    CHANNEL_USERNAME: str = Field(
        default="@jumarket",
        description="Public channel where approved products are posted"
    )
    REQUIRE_CHANNEL_MEMBERSHIP: bool = Field(
        default=True,
        description="Only channel members may submit products"
    )
    TELEGRAM_API_URL: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL"
    )
    TELEGRAM_TIMEOUT: float = Field(
        default=15.0,
        description="Bot API request timeout in seconds"
    )

    # Update delivery
    WEBHOOK_URL: Optional[str] = Field(
        default=None,
        description="Public base URL; the webhook is registered at startup when set"
    )
    WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Secret echoed by Telegram in X-Telegram-Bot-Api-Secret-Token"
    )
    USE_POLLING: bool = Field(
        default=False,
        description="Use long polling when no webhook URL is configured"
    )

    # Storage
    STORAGE_BACKEND: Literal["mongo", "memory"] = "mongo"
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="jumarket",
        description="MongoDB database name"
    )

    # Conversation
    SESSION_TIMEOUT_MINUTES: int = Field(
        default=60,
        description="Idle minutes before an unfinished flow is dropped (0 disables)"
    )
    MAX_PRODUCT_IMAGES: int = Field(
        default=5,
        description="Maximum photos per product"
    )
    SEND_DELAY_SECONDS: float = Field(
        default=0.05,
        description="Pause between bulk sends (admin fan-out, broadcast)"
    )

    # Application
    HOST: str = "0.0.0.0"
    PORT: int = Field(
        default=3000,
        description="HTTP listen port"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @validator("CHANNEL_USERNAME")
    def validate_channel(cls, v):
        """Accept both 'jumarket' and '@jumarket'; numeric chat ids pass through."""
        v = v.strip()
        if v and not v.startswith("@") and not v.lstrip("-").isdigit():
            v = f"@{v}"
        return v

    @validator("MAX_PRODUCT_IMAGES")
    def validate_max_images(cls, v):
        # Telegram media groups hold at most 10 items
        if v < 1 or v > 10:
            raise ValueError("MAX_PRODUCT_IMAGES must be between 1 and 10")
        return v

    @property
    def admin_ids(self) -> FrozenSet[int]:
        """Static moderation allowlist."""
        return parse_id_list(self.ADMIN_IDS)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def validate_settings(cfg: Optional[Settings] = None):
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    cfg = cfg or settings
    errors = []

    if not cfg.BOT_TOKEN:
        errors.append("BOT_TOKEN is required")

    if not cfg.admin_ids:
        errors.append("ADMIN_IDS must contain at least one numeric user id")

    if not cfg.CHANNEL_USERNAME:
        errors.append("CHANNEL_USERNAME is required")

    if cfg.STORAGE_BACKEND == "mongo" and not cfg.MONGODB_URL:
        errors.append("MONGODB_URL is required for the mongo storage backend")

    # Production-specific validations
    if cfg.is_production:
        if cfg.STORAGE_BACKEND == "memory":
            errors.append("STORAGE_BACKEND=memory is not allowed in production")
        if cfg.WEBHOOK_URL and not cfg.WEBHOOK_SECRET:
            errors.append("WEBHOOK_SECRET is required in production when WEBHOOK_URL is set")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
