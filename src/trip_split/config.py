"""Configuration management for TripSplit."""

from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRIP_SPLIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Trip defaults
    base_currency: str = "CNY"

    # Exchange rate API
    exchange_rate_api_url: str = "https://api.exchangerate-api.com/v4/latest"
    exchange_rate_cache_seconds: int = 30 * 60
    exchange_rate_timeout: float = 10.0

    # Duplicate detection
    duplicate_window_seconds: int = 60
    duplicate_amount_tolerance: Decimal = Decimal("0.01")

    # Database path
    database_path: Path = Path.home() / ".trip_split" / "trip_split.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path = self.database_path.expanduser()
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the TripSplit variables in your "
            f"environment or .env file.\n"
            f"Error: {e}"
        ) from e
