"""
jobdecoder Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Versioning ---
    CORE_VERSION: str = "1.0.0"
    API_VERSION: str = "1"

    # --- Cache bounds ---
    MATCH_CACHE_SIZE: int = int(os.getenv("JOBDECODER_MATCH_CACHE_SIZE", "500"))
    SIMILARITY_CACHE_SIZE: int = int(
        os.getenv("JOBDECODER_SIMILARITY_CACHE_SIZE", "2000")
    )

    # --- Request limits ---
    MAX_TEXT_LENGTH: int = int(os.getenv("JOBDECODER_MAX_TEXT_LENGTH", "50000"))

    # --- Server ---
    HOST: str = os.getenv("JOBDECODER_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("JOBDECODER_PORT", "8000"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("JOBDECODER_CORS_ORIGINS", "*")


settings = Settings()
