from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BUDGET_", env_file=".env", extra="ignore")

    database_url: str = "sqlite+pysqlite:///./budget.db"

    # Logging
    debug: bool = False
    log_level: str = "INFO"

    # Transfer matching
    match_window_days: int = 3
    max_candidates_per_transaction: int = 25


settings = Settings()
