"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Farm Registry Configuration
    farm_registry_base_url: str = Field(
        default="https://registry.example.com/api",
        description="Base URL for the farm registry API"
    )
    farm_registry_api_key: str = Field(
        default="",
        description="API key for authentication"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for registry calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Plot Grouping Engine Constants
    grouping_compact_span_multiple: float = Field(
        default=2.0,
        description="Cluster diameter, as a multiple of the proximity threshold, "
                    "below which a cluster is always considered compact"
    )
    grouping_max_elongation: float = Field(
        default=2.5,
        description="Maximum ratio of cluster diameter to the square root of its area (m²)"
    )
    grouping_border_buffer_m: float = Field(
        default=10.0,
        description="Buffer in meters applied around member plots when drawing a group boundary"
    )
    grouping_suggestion_radius_m: float = Field(
        default=5000.0,
        description="Maximum distance to a group for suggesting a manual assignment"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Rice Production Group Formation Service",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
