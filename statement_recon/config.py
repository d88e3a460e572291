"""
Runtime settings, read from the environment and an optional .env file.
"""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Matching
    INVOICE_MATCH_MAX_DAYS: int = 120
    INVOICE_MATCH_MAX_CANDIDATES: int = 5

    # Artifacts
    STATEMENTS_OUTPUT_DIR: Path = Path("data/statements/pdf")
    OPERATIONS_INDEX_PATH: Path = Path("data/statements/pdf/operations-index.json")

    # Parsing
    STATEMENT_TEMPLATE: str = "belfius_fr"

    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
