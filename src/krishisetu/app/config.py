"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env and uploads/ from the project root regardless of CWD
_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Document store: "sql" persists through SQLAlchemy, "memory" keeps
    # everything in-process (demo mode, lost on restart)
    document_backend: str = "sql"
    database_url: str = "sqlite+aiosqlite:///./krishisetu.db"

    # Object storage for listing photos and avatars
    uploads_dir: str = str(_PROJECT_ROOT / "uploads")
    public_base_url: str = "http://localhost:8000"

    # Auth / JWT
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60 * 24 * 30

    # Marketplace
    listing_result_cap: int = 50

    # CORS
    cors_origins: str = "http://localhost:3000"

    # General
    debug: bool = True

    model_config = {
        "env_file": str(_ENV_FILE),
        "env_file_encoding": "utf-8",
        "env_prefix": "KRISHISETU_",
        "extra": "ignore",
    }

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] so phones on the LAN can reach the API.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
