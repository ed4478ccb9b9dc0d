"""
API configuration settings.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Book Tracker API"
    api_version: str = "1.0.0"
    api_description: str = """
    REST API for a personal book tracker.

    ## Features

    * **Books**: list, filter, search, paginate, create, update and delete book records
    * **Shelves**: read / currently-reading / to-read plus free-text bookshelf tags
    * **Statistics**: shelf counts, pages read, average rating and top authors
    * **Import/Export**: bulk import with per-item errors and a streamed JSON export

    ## Rate Limiting

    Each client IP is limited to 100 requests per 15 minutes on `/api` routes.
    Rate limit information is included in response headers.
    """

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False
    environment: str = "production"

    # CORS Settings
    cors_origin: str = "http://localhost:5173"
    cors_allow_credentials: bool = True

    # Rate Limiting (per client IP, applied to /api routes)
    rate_limit_requests: int = Field(100, ge=1)
    rate_limit_window_seconds: int = Field(900, ge=1)
    # Only honour X-Forwarded-For when the API sits behind a proxy that sets it
    trust_forwarded_for: bool = False

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "ignore"
    }

    def get_cors_origins(self) -> List[str]:
        """CORS_ORIGIN may hold a comma-separated list."""
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]

    def expose_error_details(self) -> bool:
        """Whether 500 responses may carry the exception message."""
        return self.debug or self.environment.lower() == "development"


# Global config instance
config = APIConfig()
