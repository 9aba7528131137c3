"""Configuration management for TripSplit."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OCR service (optional - pasted text works without it)
    ocr_api_url: str | None = None
    ocr_api_key: str | None = None
    ocr_language: str = "eng"
    ocr_timeout_seconds: float = 60.0

    # Display settings
    currency_symbol: str = "$"

    # Roster settings
    default_participant_prefix: str = "Person"  # New participants: "Person 1", ...


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your environment variables "
            f"or .env file. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
