"""Configuration utilities for the request validator."""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from request_validator.utils.logging_utils import setup_json_logging


class Settings(BaseSettings):
    """Settings loaded from environment variables and an optional .env file."""

    # Service configuration
    log_level: str = Field("INFO", description="Logging level")
    log_output: str = Field("stdout", description="Log destination: stdout or file")
    log_file_path: Optional[str] = Field(None, description="Log file path when log_output is 'file'")

    # Relational store used by the unique/exists rules
    database_url: Optional[str] = Field(None, description="Full SQLAlchemy URL; overrides the db_* fields")
    db_driver: str = Field("mysql+pymysql", description="SQLAlchemy dialect+driver")
    db_host: str = Field("localhost", description="Database host")
    db_port: Optional[int] = Field(None, description="Database port")
    db_user: str = Field("root", description="Database user")
    db_password: SecretStr = Field(SecretStr(""), description="Database password")
    db_database: str = Field("validator", description="Database name")
    db_pool_size: int = Field(10, description="Connection pool size", ge=1)

    # Upload handling
    cleanup_uploads_on_failure: bool = Field(
        True, description="Delete every uploaded file when a request fails validation"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Normalize the log level and reject names the logging module does not know.

        Args:
            v: Log level name

        Returns:
            str: Upper-cased log level

        Raises:
            ValueError: If the level is unknown
        """
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_output")
    @classmethod
    def validate_log_output(cls, v: str) -> str:
        if v not in ("stdout", "file"):
            raise ValueError("log_output must be 'stdout' or 'file'")
        return v

    @property
    def database_url_resolved(self) -> str:
        """
        SQLAlchemy URL for the existence lookup store.

        Returns:
            str: ``database_url`` when set, otherwise a URL built from the db_* fields
        """
        if self.database_url:
            return self.database_url
        url = URL.create(
            drivername=self.db_driver,
            username=self.db_user,
            password=self.db_password.get_secret_value() or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_database,
        )
        return url.render_as_string(hide_password=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Create and cache settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Install JSON logging using the configured level and destination."""
    settings = settings or get_settings()
    return setup_json_logging(settings.log_level, settings.log_output, settings.log_file_path)
