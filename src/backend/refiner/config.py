# [Core: Configuration]
"""
Process configuration via environment variables.

Budgets per run live in tracks.shared.modes; this module only covers
where the oracle is, how long to wait for it, and how long cached
responses stay valid.
"""
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment / .env file."""

    # App
    app_name: str = "Prompt Refiner"
    debug: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Oracle
    oracle_backend: str = "cli"  # "cli" or "api"
    oracle_cli_command: str = "claude -p"
    oracle_base_url: str = ""  # OpenAI-compatible endpoint for api mode
    oracle_api_key: str = ""
    oracle_model_id: str = "claude-sonnet"
    oracle_max_tokens: int = 4096
    oracle_temperature: float = 0.4
    oracle_timeout_seconds: float = 120.0

    # Response caches (seconds)
    refine_cache_ttl_seconds: int = 3600
    enhance_cache_ttl_seconds: int = 2700
    dynamic_cache_ttl_seconds: int = 1800
    cache_max_entries: int = Field(100, ge=1)

    # Refinement
    default_mode: str = "balanced"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
