"""Configuration management."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field


class Settings(BaseSettings):
    """Application settings."""

    # Database (PostgreSQL) - constructed from parts
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "chatrelay"
    db_user: str = "chatrelay"
    db_password: str = ""

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from parts."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Relay function
    relay_url: str = "http://localhost:8001/generate-chat"
    relay_api_key: str = ""  # Sent as apikey/Authorization when set
    relay_timeout: float = 60.0
    relay_model: str | None = None  # None lets the relay pick its default

    # Chat views
    context_window: int = 10  # Prior messages sent along with a new one
    default_conversation_title: str = "New Chat"
    sse_heartbeat_interval: int = 30
    view_queue_size: int = 256  # Pending events per view before dropping
    view_idle_timeout: float = 300.0  # Seconds a view without a stream may sit idle
    view_reap_interval: float = 60.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
