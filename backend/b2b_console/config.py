"""Application configuration module."""

from pathlib import Path
from typing import Literal
from pydantic_settings import BaseSettings

# Resolve the project root relative to this file so .env is found from any cwd
_THIS_DIR = Path(__file__).parent  # backend/b2b_console/
_BACKEND_ROOT = _THIS_DIR.parent  # backend/
_PROJECT_ROOT = _BACKEND_ROOT.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    # Marketplace backend (catalog, pricing, quotation and cost endpoints)
    marketplace_api_url: str = "http://localhost:5000/admin"
    marketplace_api_token: str = ""
    marketplace_timeout_seconds: float = 30.0

    # Pricing
    scenario_pricing_debounce_ms: int = 500
    rate_card_debounce_ms: int = 0

    # Quotations
    default_validity_days: int = 30
    default_terms: str = "Payment within 30 days of service completion."

    # Mirror lifecycle and ledger writes to the marketplace backend
    sync_remote: bool = False

    # Selection sessions
    session_ttl_seconds: int = 3600
    max_sessions: int = 500
    session_sweep_interval_seconds: int = 300

    # Backend Configuration
    backend_host: str = "localhost"
    backend_port: int = 8000
    backend_debug: bool = False

    # Logging
    log_level: str = "INFO"

    def price_debounce_seconds(
        self, path: Literal["rate_card", "scenario"] = "rate_card"
    ) -> float:
        """Debounce window for a pricing path, in seconds."""
        if path == "scenario":
            return self.scenario_pricing_debounce_ms / 1000
        return self.rate_card_debounce_ms / 1000

    model_config = {
        "env_file": str(_ENV_FILE),
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
