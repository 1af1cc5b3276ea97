"""Application configuration"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Rook ITSM API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Security
    # WHY: Tokens are issued by the identity provider; this service only
    # verifies them, so it needs the shared secret but no password tooling.
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 1440  # 24 hours

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Tickets
    TICKET_LIST_LIMIT: int = 100

    # Attachments
    # WHY: Blob storage is a local directory; one subdirectory per ticket
    STORAGE_DIR: str = "./storage/attachments"
    MAX_ATTACHMENT_SIZE: int = 10 * 1024 * 1024  # 10 MiB

    # Device action queue
    SCHEDULER_ENABLED: bool = True
    DEVICE_ACTION_POLL_SECONDS: int = 5
    DEVICE_ACTION_BATCH_SIZE: int = 50
    # Claims older than this are treated as abandoned by a crashed run
    DEVICE_ACTION_STALE_SECONDS: int = 600

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

    @property
    def is_sqlite(self) -> bool:
        """SQLite (tests, local dev) does not accept connection pool sizing."""
        return self.async_database_url.startswith("sqlite")


settings = Settings()
