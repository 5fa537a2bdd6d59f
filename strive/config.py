"""Configuration loading from .env file."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()


class Config:
    """Application configuration."""

    # TMDB (metadata provider)
    TMDB_API_KEY: str = os.getenv("TMDB_API_KEY", "")

    # IMDb (secondary ratings provider, no credential required)
    IMDB_API_BASE_URL: str = os.getenv("IMDB_API_BASE_URL", "https://api.imdbapi.dev")

    # Simkl (sync provider)
    SIMKL_CLIENT_ID: str = os.getenv("SIMKL_CLIENT_ID", "")

    # External calls
    FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "8"))  # seconds
    EXPORT_CONCURRENCY: int = int(os.getenv("EXPORT_CONCURRENCY", "8"))
    ANALYZE_CONCURRENCY: int = int(os.getenv("ANALYZE_CONCURRENCY", "6"))

    # Background enrichment
    ENRICH_BATCH_SIZE: int = int(os.getenv("ENRICH_BATCH_SIZE", "5"))
    ENRICH_DELAY: float = float(os.getenv("ENRICH_DELAY", "2"))  # seconds
    ENRICH_INTERVAL: int = int(os.getenv("ENRICH_INTERVAL", "15"))  # minutes, 0 disables

    # Storage
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "data/strive.db"))
    OUTPUT_DIR: Path = Path(os.getenv("OUTPUT_DIR", "./output"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Web interface
    WEB_PORT: int = int(os.getenv("WEB_PORT", "19876"))

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration. Returns list of errors."""
        errors = []

        if cls.FETCH_TIMEOUT <= 0:
            errors.append("FETCH_TIMEOUT must be positive")

        if cls.EXPORT_CONCURRENCY < 1 or cls.ANALYZE_CONCURRENCY < 1:
            errors.append("EXPORT_CONCURRENCY and ANALYZE_CONCURRENCY must be at least 1")

        if cls.ENRICH_BATCH_SIZE < 1:
            errors.append("ENRICH_BATCH_SIZE must be at least 1")

        if cls.ENRICH_DELAY < 0 or cls.ENRICH_INTERVAL < 0:
            errors.append("ENRICH_DELAY and ENRICH_INTERVAL cannot be negative")

        return errors

    @classmethod
    def ensure_directories(cls) -> None:
        """Create output, data and logs directories if they don't exist."""
        cls.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
        Path("logs").mkdir(parents=True, exist_ok=True)
