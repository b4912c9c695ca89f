"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App metadata
    APP_NAME: str = "QuickChat Launcher"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    HOST: str = "127.0.0.1"
    PORT: int = 8765

    # Database
    DATABASE_URL: str = "sqlite:///./data/quickchat.db"

    # Query deadlines (seconds): streaming attempt > fallback > probe
    LLM_STREAM_TIMEOUT: float = 120.0
    LLM_FALLBACK_TIMEOUT: float = 60.0
    LLM_PROBE_TIMEOUT: float = 15.0
    LLM_CONNECT_TIMEOUT: float = 10.0

    # Request defaults
    LLM_DEFAULT_TEMPERATURE: float = 0.7
    LLM_DEFAULT_MAX_TOKENS: int = 4096
    ANTHROPIC_API_VERSION: str = "2023-06-01"

    # Diagnostics
    LLM_ERROR_EXCERPT_CHARS: int = 500

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "tauri://localhost,http://localhost:1420"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/quickchat.log"

    class Config:
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),  # repo root
            str(Path(__file__).parent.parent.parent / ".env"),  # backend/.env (fallback)
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Singleton instance
settings = Settings()
