"""
Configuration management using environment variables.
Handles database and logging settings with proper validation and defaults.
"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BookTrackerConfig(BaseSettings):
    """
    Configuration class for database and logging settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(
        default="mongodb://localhost:27017",
        validation_alias=AliasChoices("MONGODB_URL", "MONGO_URI"),
    )
    mongodb_database: str = Field(default="book_tracker", validation_alias="MONGODB_DATABASE")
    mongodb_collection: str = Field(default="books", validation_alias="MONGODB_COLLECTION")

    # Connection pool
    mongodb_max_pool_size: int = Field(default=50, validation_alias="MONGODB_MAX_POOL_SIZE")
    mongodb_min_pool_size: int = Field(default=10, validation_alias="MONGODB_MIN_POOL_SIZE")
    mongodb_socket_timeout_ms: int = Field(default=45000, validation_alias="MONGODB_SOCKET_TIMEOUT_MS")
    mongodb_server_selection_timeout_ms: int = Field(
        default=5000, validation_alias="MONGODB_SERVER_SELECTION_TIMEOUT_MS"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, validation_alias="LOG_FILE")

    # Runtime
    environment: str = Field(default="production", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("mongodb_max_pool_size")
    @classmethod
    def validate_max_pool_size(cls, v):
        """Ensure the pool size is reasonable."""
        if v < 1 or v > 500:
            raise ValueError("mongodb_max_pool_size must be between 1 and 500")
        return v

    @field_validator("mongodb_min_pool_size")
    @classmethod
    def validate_min_pool_size(cls, v):
        if v < 0:
            raise ValueError("mongodb_min_pool_size cannot be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_client_options(self) -> dict:
        """Keyword arguments for the motor client's connection pool."""
        return {
            "maxPoolSize": self.mongodb_max_pool_size,
            "minPoolSize": min(self.mongodb_min_pool_size, self.mongodb_max_pool_size),
            "socketTimeoutMS": self.mongodb_socket_timeout_ms,
            "serverSelectionTimeoutMS": self.mongodb_server_selection_timeout_ms,
        }


# Global configuration instance
config = BookTrackerConfig()
