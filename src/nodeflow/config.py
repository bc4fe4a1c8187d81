"""Environment-driven settings (NODEFLOW_* variables, optional .env file)."""

from __future__ import annotations
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NODEFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_file: Optional[str] = None

    # Chat nodes
    chat_timeout: float = Field(default=30.0, ge=1, le=300)
    default_chat_model: str = "gpt-4o-mini"

    # Provider keys use the conventional unprefixed names
    openai_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPENAI_API_KEY", "NODEFLOW_OPENAI_API_KEY"))
    groq_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GROQ_API_KEY", "NODEFLOW_GROQ_API_KEY"))
    openrouter_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPENROUTER_API_KEY", "NODEFLOW_OPENROUTER_API_KEY"))
    anthropic_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ANTHROPIC_API_KEY", "NODEFLOW_ANTHROPIC_API_KEY"))
    gemini_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GEMINI_API_KEY", "NODEFLOW_GEMINI_API_KEY"))

    def api_key_for(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_api_key", None)


@lru_cache
def get_settings() -> Settings:
    return Settings()
