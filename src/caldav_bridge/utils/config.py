from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API key expected in the X-API-Key header
    API_KEY: str = ""

    # CORS settings
    CORS_ORIGINS: List[str] = Field(default=["*"])

    # Radicale (CalDAV/CardDAV) settings
    RADICALE_URL: str = "http://localhost:5232"
    CALENDAR_COLLECTION: str = "calendar"
    CONTACTS_COLLECTION: str = "contacts"
    CALENDAR_EXPORT_PATH: str = "calendar.ics"
    CONTACTS_EXPORT_PATH: str = "contacts.vcf"
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Rate limiting, per client address
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100

    # Webhook settings
    WEBHOOK_STORE: str = "memory"  # memory or redis
    WEBHOOK_TTL_SECONDS: int = 3600
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0

    # Redis settings for the webhook registry
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

# Create settings instance
settings = Settings()
