"""
Centralized Configuration Management

This module provides centralized configuration management for the chatroom server.
It loads and validates configuration from environment variables and .env files,
grouped into nested sections per concern.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AIConfig(BaseSettings):
    """Language model configuration for the reasoning service."""

    model_config = SettingsConfigDict(env_prefix="AI_")

    model: str = "gpt-4.1-2025-04-14"
    api_url: str = "https://api.openai.com/v1/chat/completions"
    temperature: float = 0.7
    max_tokens: int = 200
    timeout: float = 30.0
    max_retries: int = 2

    # Upper bound for one whole reasoning call, retries included
    reasoning_timeout: float = 90.0


class BotConfig(BaseSettings):
    """Bot persona and behaviour configuration."""

    model_config = SettingsConfigDict(env_prefix="BOT_")

    display_name: str = "Bot"
    stable_id: str = "bot"
    persona_name: str = "Chatitude"
    audience: str = "technical developers"

    # How many recent messages are rendered into each prompt
    classification_history: int = 100
    commentary_history: int = 50

    commentary_enabled: bool = True
    commentary_interval_seconds: float = 60.0


class StorageConfig(BaseSettings):
    """Storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    database_path: str = "data/database.json"


class AppConfig(BaseSettings):
    """
    Centralized application configuration with nested sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Core server settings
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"
    log_file: Optional[str] = None

    # Credential for the reasoning service; the bot is disabled without it
    openai_api_key: Optional[str] = None

    # Nested configuration sections
    ai: AIConfig = Field(default_factory=AIConfig)
    bot: BotConfig = Field(default_factory=BotConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def create_settings() -> AppConfig:
    """Create settings instance from environment variables and .env files only."""
    return AppConfig()


settings = create_settings()


def get_settings() -> AppConfig:
    """Get the global settings instance."""
    return settings
