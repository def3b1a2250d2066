"""
Application settings.
Database secrets are loaded from AWS Secrets Manager when not provided via environment.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # AWS
    AWS_REGION: str = "us-east-1"

    # Database (loaded from Secrets Manager unless DATABASE_URL or DB_HOST is set)
    DATABASE_URL: Optional[str] = None
    DB_HOST: Optional[str] = None
    DB_PORT: int = 5432
    DB_NAME: Optional[str] = None
    DB_USER: Optional[str] = None
    DB_PASS: Optional[str] = None

    # Redis (viewer sessions)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    SESSION_TTL: int = 86400  # 24 hours in seconds

    # Query cache staleness tiers, in seconds
    CACHE_STALE_REALTIME: float = 60
    CACHE_STALE_STANDARD: float = 300
    CACHE_STALE_MODERATE: float = 600
    CACHE_STALE_STABLE: float = 1800
    CACHE_STALE_LONG: float = 3600
    CACHE_STALE_STATIC: float = 86400

    # Read retries: delay doubles per attempt, capped
    CACHE_QUERY_RETRIES: int = 1
    CACHE_RETRY_BASE_DELAY: float = 1.0
    CACHE_RETRY_MAX_DELAY: float = 10.0

    # Stale entries unused for this long are dropped from the query cache
    CACHE_GC_TIME: float = 300

    # Infinite-scroll page size for message threads
    MESSAGE_PAGE_SIZE: int = 50

    # Outbound communication gateway (email/SMS/push). Best-effort only.
    COMMUNICATION_API_URL: Optional[str] = None
    COMMUNICATION_API_KEY: Optional[str] = None
    COMMUNICATION_TIMEOUT: float = 10.0

    # Optional
    DEBUG: bool = False
    PROJECT_NAME: str = "Property Inbox"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASS}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def use_notifications(self) -> bool:
        return bool(self.COMMUNICATION_API_URL and self.COMMUNICATION_API_KEY)

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

# Load secrets from AWS Secrets Manager only when DB creds aren't already
# provided via environment variables (e.g. in Docker / local dev / tests).
if not settings.DATABASE_URL and not settings.DB_HOST:
    from property_inbox.aws.secrets import get_secret

    _db_secret = get_secret("property-inbox/db", region_name=settings.AWS_REGION)
    settings.DB_HOST = _db_secret["host"]
    settings.DB_PORT = int(_db_secret.get("port", 5432))
    settings.DB_NAME = _db_secret["database"]
    settings.DB_USER = _db_secret["username"]
    settings.DB_PASS = _db_secret["password"]
