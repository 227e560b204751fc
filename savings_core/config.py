"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class SavingsConfig(BaseSettings):
    """Savings core configuration"""

    model_config = SettingsConfigDict(
        env_prefix="SAVINGS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    database_url: str = "sqlite:///savings.db"  # memory:// for the volatile store
    sqlite_timeout_seconds: float = 5.0  # Busy timeout for locked databases
    sqlite_journal_mode: str = "WAL"  # Ignored for :memory: databases

    # Business rules configuration
    default_interest_rate: str = "0.042"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr


# Global configuration instance
config = SavingsConfig()


def get_config() -> SavingsConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> SavingsConfig:
    """Reload configuration from environment"""
    global config
    config = SavingsConfig()
    return config
