import os
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_ID = "claude-3-5-sonnet-20241022"


class ConfigurationError(Exception):
    """Raised when the process cannot start with the given configuration."""


class Config(BaseSettings):
    """
    Typed configuration for the chat proxy and the chat view, loaded from
    environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    port: int = Field(default=8080, alias="PORT")
    host: str = Field(default="0.0.0.0", alias="HOST")

    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com/v1/", alias="ANTHROPIC_API_BASE_URL"
    )
    anthropic_temperature: float = Field(default=0.7, alias="ANTHROPIC_TEMPERATURE")
    anthropic_max_tokens: int = Field(default=4096, alias="ANTHROPIC_MAX_TOKENS")

    deepseek_api_key: Optional[str] = Field(default=None, alias="DEEPSEEK_API_KEY")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com", alias="DEEPSEEK_API_BASE_URL"
    )
    deepseek_temperature: float = Field(default=0.7, alias="DEEPSEEK_TEMPERATURE")
    deepseek_max_tokens: int = Field(default=2048, alias="DEEPSEEK_MAX_TOKENS")

    default_model: str = Field(default=DEFAULT_MODEL_ID, alias="DEFAULT_MODEL")
    strict_models: bool = Field(default=False, alias="STRICT_MODELS")
    system_prompt_file: Optional[str] = Field(default=None, alias="SYSTEM_PROMPT_FILE")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="rich", alias="LOG_FORMAT")

    # Chat view settings
    proxy_url: str = Field(default="http://localhost:8080", alias="CHAT_PROXY_URL")
    history_file: str = Field(default="data/chat_sessions.json", alias="HISTORY_FILE")
    reveal_interval_ms: int = Field(default=30, alias="REVEAL_INTERVAL_MS", ge=0)
    title_max_chars: int = Field(default=30, alias="TITLE_MAX_CHARS", gt=0)

    @field_validator("log_level")
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "TRACE"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v):
        if v.lower() not in ("rich", "json"):
            raise ValueError("log_format must be 'rich' or 'json'")
        return v.lower()

    @property
    def reveal_interval(self) -> float:
        """Reveal tick period in seconds."""
        return self.reveal_interval_ms / 1000.0

    def resolve_system_prompt_path(self) -> str:
        """Returns the configured prompt file, or the bundled default."""
        if self.system_prompt_file:
            return self.system_prompt_file
        # __file__ is chatweb/config.py
        return os.path.join(os.path.dirname(__file__), "prompts", "system.md")

    def require_provider_keys(self) -> None:
        """Fail fast when the default provider has no API key."""
        if not self.anthropic_api_key:
            raise ConfigurationError(
                "Missing ANTHROPIC_API_KEY environment variable"
            )
