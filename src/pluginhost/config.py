"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Plugin host settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLUGINHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Registration
    reject_duplicates: bool = False     # False = last registration wins

    # Host notification channel
    host_ready_event: str = "host_ready"
    plugins_ready_event: str = "plugins_ready"
    event_queue_size: int = 1000        # Per queue subscriber

    # Diagnostics
    diagnostics_limit: int = 500        # Records kept in memory by the default sink


settings = Settings()
