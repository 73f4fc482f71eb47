"""
Application configuration management.
"""

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "GiveHub Assist"
    app_env: str = "development"
    debug: bool = True

    # Storage ("" keeps the flat-file JSON store)
    database_url: str = ""
    data_file: str = "./data/givehub.json"

    # LLM Providers
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    llm_provider: str = "anthropic"  # "openai", "anthropic", or "mock"
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-sonnet-4-20250514"
    llm_timeout_seconds: float = 20.0
    llm_max_tokens: int = 1000

    # Prompt overrides (empty uses the built-in prompts)
    planner_system_prompt: str = ""
    executor_system_prompt: str = ""

    # Authentication
    jwt_secret: str = "fallback-secret-key-for-development"
    jwt_algorithm: str = "HS256"
    auth_cookie_name: str = "auth-token"

    # API
    cors_origins: List[str] = ["http://localhost:3000"]

    # Assistant limits
    planner_context_messages: int = 8
    executor_context_messages: int = 6
    search_result_limit: int = 10
    suggest_fallback_limit: int = 5

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            import json
            return json.loads(v)
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
