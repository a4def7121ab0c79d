"""Configuration management for Candle Insight."""

import logging
from datetime import timedelta
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CANDLE_INSIGHT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    log_level: str = "INFO"

    # Prediction Tracking Settings
    outcome_threshold: float = 0.015  # 1.5% move to call a direction
    retention_minutes: int = 60  # 1 hour of wall-clock history
    recent_results_count: int = 10

    # Forecast Settings
    default_horizon: int = 3  # candles

    # Sample Data Settings
    sample_seed: int = 42

    @field_validator("outcome_threshold")
    @classmethod
    def validate_outcome_threshold(cls, v):
        """Validate outcome threshold is within acceptable bounds."""
        if not 0.001 <= v <= 0.10:  # 0.1% to 10%
            raise ValueError("Outcome threshold must be between 0.1% and 10%")
        return v

    @field_validator("retention_minutes", "recent_results_count", "default_horizon")
    @classmethod
    def validate_positive(cls, v):
        """Validate counters and windows are positive."""
        if v <= 0:
            raise ValueError("Value must be a positive integer")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# Global settings instance
settings = Settings()


class TrackerConfig:
    """Prediction tracker configuration helper."""

    @staticmethod
    def get_outcome_threshold() -> float:
        """Get the price change needed to call a bullish/bearish outcome."""
        return settings.outcome_threshold

    @staticmethod
    def get_retention() -> timedelta:
        """Get how long predictions and results are retained."""
        return timedelta(minutes=settings.retention_minutes)

    @staticmethod
    def get_recent_results_count() -> int:
        """Get default number of results returned by recent-result queries."""
        return settings.recent_results_count


class ForecastConfig:
    """Forecast configuration helper."""

    @staticmethod
    def get_default_horizon() -> int:
        """Get default forecast horizon in candles."""
        return settings.default_horizon


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging using the configured level."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Export commonly used configs
__all__ = ["settings", "Settings", "TrackerConfig", "ForecastConfig", "configure_logging"]
