"""Core configuration settings loaded from environment variables."""
from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Core
    APP_ENV: Literal["development", "staging", "production"] = "development"
    APP_NAME: str = "EmailFlow"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = True
    SECRET_KEY: str = "change-me-in-production-use-openssl-rand-hex-32"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5000", "http://127.0.0.1:3000"]

    # Database
    DB_TYPE: Literal["mysql", "sqlite"] = "sqlite"
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_NAME: str = "emailflow"
    DB_USER: str = "emailflow"
    DB_PASSWORD: str = "change_me"
    DATABASE_URL: str = ""  # Overrides the DB_* fields when set

    @property
    def SQLALCHEMY_DATABASE_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.DB_TYPE == "sqlite":
            return "sqlite:///./data/emailflow.db"
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # GoHighLevel
    GHL_API_BASE_URL: str = "https://services.leadconnectorhq.com"
    GHL_API_VERSION: str = "2021-07-28"
    GHL_REQUEST_TIMEOUT: float = 30.0
    GHL_WEBHOOK_SECRET: str = ""  # Empty disables the X-Webhook-Secret check

    # GoHighLevel OAuth (marketplace app)
    GHL_CLIENT_ID: str = ""
    GHL_CLIENT_SECRET: str = ""
    GHL_REDIRECT_URI: str = "http://localhost:8000/api/v1/integrations/ghl/callback"
    GHL_AUTH_URL: str = "https://marketplace.gohighlevel.com/oauth/chooselocation"
    GHL_TOKEN_URL: str = "https://services.leadconnectorhq.com/oauth/token"
    GHL_OAUTH_SCOPES: str = (
        "contacts.readonly contacts.write conversations.readonly conversations.write "
        "conversations/message.readonly conversations/message.write locations.readonly"
    )
    GHL_OAUTH_STATE_MINUTES: int = 10
    FRONTEND_URL: str = "http://localhost:3000"

    # Outgoing webhooks
    WEBHOOK_REQUEST_TIMEOUT: float = 10.0

    # OpenAI
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TEMPERATURE: float = 0.9
    OPENAI_MAX_TOKENS: int = 800
    OPENAI_REQUEST_TIMEOUT: float = 60.0
    DEFAULT_VARIANT_COUNT: int = 3
    MAX_VARIANTS: int = 5

    # Priority sender
    PRIORITY_SEND_DELAY_SECONDS: float = 0.2
    PRIORITY_TAG_PREFIX: str = "priority_email_"

    # Contact sync
    CONTACT_SYNC_PAGE_SIZE: int = 100
    CONTACT_SYNC_PAGE_DELAY_SECONDS: float = 0.5

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_USER_ID: int = 1
    PRIORITY_SENDER_INTERVAL_MINUTES: int = 15
    CONTACT_SYNC_INTERVAL_HOURS: int = 6


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
