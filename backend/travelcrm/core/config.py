import os
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _build_default_database_url() -> str:
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "travelcrm")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{db}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    PROJECT_NAME: str = "Travel CRM API"
    API_V1_STR: str = "/api/v1"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    SEED_ENABLED: bool = True
    SEED_AGENCY_NAME: str = "Demo Travels"
    SEED_AGENCY_CODE: str = "DEMO"

    DATABASE_URL: str = Field(default_factory=_build_default_database_url)
    REDIS_URL: str = "redis://localhost:6379/0"
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    # Bulk lead import pipeline
    LEAD_IMPORT_STREAM_KEY: str = "lead:imports"
    LEAD_IMPORT_GROUP: str = "lead-import-processors"
    LEAD_IMPORT_CONSUMER_PREFIX: str = "lead-import-consumer"
    LEAD_IMPORT_BATCH_SIZE: int = 50
    LEAD_IMPORT_BLOCK_MS: int = 5000
    LEAD_IMPORT_STATUS_TTL: int = 3600
    LEAD_IMPORT_SHUTDOWN_TIMEOUT: float = 5.0
    LEAD_IMPORT_WORKERS: int = 1
    LEAD_IMPORT_WORKERS_ENABLED: bool = False
    # 0 disables the pending-entry sweep
    LEAD_IMPORT_RECLAIM_IDLE_MS: int = 60000
    LEAD_IMPORT_RECLAIM_EVERY: int = 12
    LEAD_IMPORT_RECLAIM_COUNT: int = 10
    LEAD_NUMBER_PAD_LENGTH: int = 5

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_cors_origins(cls, value):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @field_validator("SEED_ENABLED")
    @classmethod
    def _validate_seed_enabled(cls, value, info):
        env = str(info.data.get("ENV", "dev")).lower()
        if env != "dev" and value:
            raise ValueError("SEED_ENABLED must be false in non-dev environments")
        return value

    @field_validator(
        "LEAD_IMPORT_BATCH_SIZE",
        "LEAD_IMPORT_WORKERS",
        "LEAD_IMPORT_RECLAIM_EVERY",
        "LEAD_IMPORT_RECLAIM_COUNT",
    )
    @classmethod
    def _validate_positive(cls, value, info):
        if value < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return value

    @field_validator("LEAD_IMPORT_RECLAIM_IDLE_MS", "LEAD_IMPORT_BLOCK_MS")
    @classmethod
    def _validate_non_negative(cls, value, info):
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return value

    @field_validator("LEAD_NUMBER_PAD_LENGTH")
    @classmethod
    def _validate_pad_length(cls, value):
        if not 1 <= value <= 12:
            raise ValueError("LEAD_NUMBER_PAD_LENGTH must be between 1 and 12")
        return value


settings = Settings()
