"""Application configuration with environment variables."""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_DB: Optional[str] = None
    DB_PORT: int = 5432

    # JWT Settings
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60

    # Application
    APP_NAME: str = "EduAI API"
    APP_VERSION: str = "0.1.0"
    API_PORT: int = 5433
    LOG_LEVEL: str = "INFO"

    # CORS
    FRONTEND_URL: str = "http://localhost:9002"

    # AI service (any OpenAI-compatible endpoint)
    AI_SERVICE_BASE_URL: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    AI_TIMEOUT_SECONDS: float = 30.0

    # Topic storage
    TOPIC_STORE: str = Field(default="sql", pattern="^(sql|file)$")
    TOPIC_STORE_PATH: str = "data/topics.json"
    SLUG_MAX_ATTEMPTS: int = Field(default=10, ge=1)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def database_url(self) -> str:
        """Resolve the SQLAlchemy URL, failing fast when credentials are missing."""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if not (self.POSTGRES_USER and self.POSTGRES_PASSWORD and self.POSTGRES_DB):
            raise RuntimeError(
                "Database is not configured. Set DATABASE_URL or "
                "POSTGRES_USER, POSTGRES_PASSWORD and POSTGRES_DB."
            )

        url = URL.create(
            "postgresql+psycopg2",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.DB_PORT,
            database=self.POSTGRES_DB,
        )
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
