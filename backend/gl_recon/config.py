"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: str = Field(default="development")
    app_debug: bool = Field(default=False)
    app_log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    # Match Scorer weights
    weight_amount: float = Field(default=0.5, ge=0.0)
    weight_account: float = Field(default=0.0, ge=0.0)
    weight_reference: float = Field(default=0.3, ge=0.0)
    weight_date: float = Field(default=0.2, ge=0.0)

    # Date proximity decays to zero beyond this many months
    date_window_months: int = Field(default=2, ge=0)

    # Fuzzy Matcher
    min_fuzzy_score: float = Field(default=0.6, ge=0.0, le=1.0)

    # Orchestrator persistence
    persist_batch_size: int = Field(default=50, ge=1)

    # Storage
    reports_dir: Path = Field(default=Path("./data/reports"))

    # Manual override audit trail kept in memory (most recent entries)
    override_audit_max_entries: int = Field(default=10000, ge=1)

    def scoring_snapshot(self) -> Dict[str, float]:
        """Scoring parameters recorded with every reconciliation log."""
        return {
            "weight_amount": self.weight_amount,
            "weight_account": self.weight_account,
            "weight_reference": self.weight_reference,
            "weight_date": self.weight_date,
            "date_window_months": float(self.date_window_months),
            "min_fuzzy_score": self.min_fuzzy_score,
        }

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
