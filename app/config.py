"""
Configuration management using pydantic-settings.
Loads from environment variables and .env file.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class ReconstructSettings(BaseSettings):
    """
    Drawing reconstruction settings.

    These settings can be overridden with environment variables.
    """
    # API settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "TechDraw Translator"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = "logs"

    # CORS settings (comma-separated string)
    BACKEND_CORS_ORIGINS: str = "*"

    # Gemini annotation service
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_MAX_RETRIES: int = 3
    DEFAULT_TARGET_LANG: str = "English"

    # Text fitting (drawings use small, uniform lettering)
    MIN_FONT_PX: int = 9
    MAX_FONT_PX: int = 16

    # Erase (tight padding so nearby geometry lines survive)
    PADDING_PX: float = 1.0
    BRIGHTNESS_THRESHOLD: float = 120.0
    SAMPLE_THICKNESS: int = 3

    # Rendering
    LINE_HEIGHT: float = 1.2
    BASELINE_SHIFT: float = 0.1
    TEXT_COLOR: str = "#1f2937"
    FONT_PATHS: str = ""  # comma-separated, tried before system fonts

    @field_validator("GEMINI_API_KEY", mode="before")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """
        Validate Gemini API key.
        """
        if not v:
            logger.warning("GEMINI_API_KEY is not set. Drawing analysis will not work.")
        return v or None

    @property
    def font_paths(self) -> List[str]:
        return [p.strip() for p in self.FONT_PATHS.split(",") if p.strip()]

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Allow extra fields in .env
    )


class Settings(ReconstructSettings):
    """
    Combined application settings.
    """
    pass


# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
