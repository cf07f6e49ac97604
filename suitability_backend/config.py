from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Runtime settings, read from the environment (and a .env file if present)."""

    app_name: str = "Portfolio Suitability Dashboard"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])

    # Username of the advisor the dashboard acts as; None means the first seeded user
    demo_username: Optional[str] = None
    seed_sample_data: bool = True

    anthropic_api_key: Optional[str] = None
    analysis_model: str = "claude-3-haiku-20240307"
    analysis_timeout: float = 20.0
    analysis_max_tokens: int = 1500

    # External portfolio-management system opened on "Accept and change"
    portfolio_redirect_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            host=os.getenv("HOST", defaults.host),
            port=int(os.getenv("PORT", defaults.port)),
            cors_origins=_env_list("CORS_ORIGINS", defaults.cors_origins),
            demo_username=os.getenv("DEMO_USERNAME") or None,
            seed_sample_data=_env_bool("SEED_SAMPLE_DATA", defaults.seed_sample_data),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            analysis_model=os.getenv("ANALYSIS_MODEL", defaults.analysis_model),
            analysis_timeout=float(os.getenv("ANALYSIS_TIMEOUT", defaults.analysis_timeout)),
            analysis_max_tokens=int(os.getenv("ANALYSIS_MAX_TOKENS", defaults.analysis_max_tokens)),
            portfolio_redirect_url=os.getenv("PORTFOLIO_REDIRECT_URL") or None,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
