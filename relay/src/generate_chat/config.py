"""Relay function configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Relay settings, read from the process environment on every request."""

    # Upstream secret; absence is reported to callers, never raised
    openrouter_api_key: str = ""
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    default_model: str = "openrouter/auto"
    upstream_timeout: float = 60.0

    # OpenRouter attribution headers
    app_url: str = ""
    app_title: str = "Chatrelay"

    # Server
    host: str = "0.0.0.0"
    port: int = 8001

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
