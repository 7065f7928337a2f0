"""
Central configuration for the Story Architect orchestrator.

Values come from environment variables (or an optional .env file) and are
validated at startup, so a misconfigured deployment fails loudly before any
run is attempted.

    MANAGER_AI_PROVIDER=anthropic   # anthropic | openai | ollama
    WORKER_AI_PROVIDER=anthropic
    MANAGER_MODEL=                  # optional explicit model ids
    WORKER_MODEL=
    AI_DEFAULT_TIMEOUT=30           # seconds, per provider call
    AI_MAX_RETRIES=                 # optional override of every retry preset
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Provider selection per role
    manager_ai_provider: str = "anthropic"
    worker_ai_provider: str = "anthropic"
    manager_model: Optional[str] = None
    worker_model: Optional[str] = None

    # Manager plans, classifies and critiques; worker writes
    manager_temperature: float = 0.0
    worker_temperature: float = 0.7

    ai_default_timeout: float = 30.0
    ai_max_retries: Optional[int] = None

    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3"

    # Vector index
    chroma_persist_dir: str = "./chroma_db"
    chroma_collection: str = "story_architect_embeddings"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, parsed once."""
    return Settings()
