"""
Runtime configuration.

Values come from the process environment first, then from ``<repo>/.env``.
Import the module-level ``settings`` object; ``get_settings`` is cached so
the environment is read once per process.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=REPO_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- service ---------------------------------------------------------------
    PROJECT_NAME: str = "StockPlan"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # -- database --------------------------------------------------------------
    # DATABASE_URL wins when set; otherwise the URL is assembled from DB_*.
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "stockplan"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_ECHO: bool = Field(default=False, description="Echo SQL to the log")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        credentials = f"{self.DB_USER}:{self.DB_PASSWORD}"
        return f"postgresql+psycopg://{credentials}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # -- http ------------------------------------------------------------------
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Comma separated in the environment",
    )

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    # -- logging ---------------------------------------------------------------
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = Field(default="json", description="json or text")
    LOG_FILE: Optional[str] = None

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_log_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return value

    # -- planning --------------------------------------------------------------
    MRP_DEFAULT_PLANNING_HORIZON_DAYS: int = Field(default=30, gt=0)
    MRP_MAX_PLANNING_HORIZON_DAYS: int = Field(default=365, gt=0)

    INVENTORY_DEFAULT_UNIT: str = "pcs"
    DEFAULT_CURRENCY: str = "CNY"

    # -- chat notifications ----------------------------------------------------
    MESSAGING_ENABLED: bool = False
    MESSAGING_BASE_URL: str = "https://open.feishu.cn"
    MESSAGING_APP_ID: Optional[str] = None
    MESSAGING_APP_SECRET: Optional[str] = None
    MESSAGING_WEBHOOK_CHAT_ID: Optional[str] = None
    MESSAGING_TIMEOUT_SECONDS: int = 10


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
