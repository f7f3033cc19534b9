"""Configuration management for ThinkBack."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Process configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="THINKBACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Gemini
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key (AI features fall back when empty)",
    )
    text_model: str = Field(
        default="gemini-3-flash-preview",
        description="Gemini model for summaries, reminders, scans and translation",
    )
    tts_model: str = Field(
        default="gemini-2.5-flash-preview-tts",
        description="Gemini model for speech synthesis",
    )

    # Speech output
    speech_sample_rate: int = Field(
        default=24000,
        ge=8000,
        le=48000,
        description="Sample rate of synthesized PCM audio",
    )

    # Database
    database_path: Path = Field(
        default=Path("data/thinkback.db"),
        description="Path to SQLite snapshot database",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Logging level for the CLI",
    )

    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


@lru_cache
def get_config() -> AppConfig:
    """Get cached configuration instance."""
    return AppConfig()
