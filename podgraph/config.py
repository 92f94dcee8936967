from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # Generation service
    llm_provider: Literal["anthropic", "openai"] = "anthropic"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    llm_model: str = "claude-sonnet-4-20250514"
    fast_llm_model: str = "claude-3-5-haiku-20241022"  # segments and per-segment context
    openai_model: str = "gpt-4o"
    openai_fast_model: str = "gpt-4o-mini"

    # Narrows metadata API
    narrows_api_url: str = ""
    narrows_api_key: str = ""

    # Graphiti knowledge-graph endpoint
    graphiti_api_url: str = ""
    graphiti_api_key: str = ""
    graphiti_graph_id: str = ""

    # Transcript storage: HTTP base URL wins over the local directory when both are set
    media_base_url: str = ""
    transcript_dir: str = "data/media"

    # App config
    http_timeout: float = 30.0
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
