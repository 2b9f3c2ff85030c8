from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from functools import lru_cache


# Secrets that must never reach production
WEAK_SECRET_KEYS = {
    "development-secret-key-change-in-production",
    "changeme",
    "secret",
    "password",
    "dev",
    "test",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/solar_backoffice"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith('postgresql://'):
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    # Connection pool, sized for a handful of concurrent back-office users
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_SLOW_QUERY_MS: int = 500

    # Auth (tokens are issued by the platform auth service, verified here)
    SECRET_KEY: str = "development-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # CORS
    FRONTEND_URL: str = "http://localhost:3000"

    # Object storage (BaaS storage REST API)
    STORAGE_URL: str | None = None
    STORAGE_SERVICE_KEY: str | None = None
    DOCUMENTS_BUCKET: str = "documents"
    INDICACOES_BUCKET: str = "indicacoes"
    STORAGE_TIMEOUT_SECONDS: float = 60.0

    # Contracts
    CONTRACT_TEMPLATES_DIR: str = "templates"
    CONTRACT_VALIDITY_DAYS: int = 120

    # Error tracking
    SENTRY_DSN: str | None = None
    VERSION: str = "1.0.0"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    DOCS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to boot production with a guessable signing key."""
        if self.ENVIRONMENT == "production":
            if self.SECRET_KEY in WEAK_SECRET_KEYS:
                raise ValueError("SECRET_KEY must be changed in production")
            if len(self.SECRET_KEY) < 32:
                raise ValueError("SECRET_KEY must be at least 32 characters in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def sqlalchemy_echo(self) -> bool:
        """SQL echo only in development debug sessions."""
        return self.DEBUG and not self.is_production

    @property
    def storage_configured(self) -> bool:
        return bool(self.STORAGE_URL and self.STORAGE_SERVICE_KEY)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
