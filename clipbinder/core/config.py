"""Application configuration using Pydantic Settings.

This module defines the process-level configuration loaded from environment
variables. Provider credentials arrive here already resolved (the secrets
store that owns them is outside this package), so the pipeline never reads
credential storage itself.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration.

    All configuration is loaded from environment variables or .env file.
    Validation happens automatically via Pydantic.

    Example:
        >>> config = Config()
        >>> print(config.app_name)
        'ClipBinder'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Application Settings
    # ============================================
    app_name: str = Field(default="ClipBinder", description="Application name")
    app_env: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    # ============================================
    # Provider Credentials (already resolved)
    # ============================================
    pexels_api_key: str = Field(default="", description="Pexels API key")
    pixabay_api_key: str = Field(default="", description="Pixabay API key")
    openai_api_key: str = Field(default="", description="OpenAI API key (DALL-E)")

    # ============================================
    # Local Image Generation
    # ============================================
    sd_enabled: bool = Field(default=False, description="Enable local Stable Diffusion")
    sd_service_url: str = Field(
        default="http://localhost:7860", description="Stable Diffusion service URL"
    )

    # ============================================
    # Project Media
    # ============================================
    media_root: Path = Field(
        default=Path("./media"),
        description="Project media directory (contains video/ and images/)",
    )
    acquisition_config_path: Path | None = Field(
        default=None,
        description="Optional YAML file overriding acquisition defaults",
    )

    # ============================================
    # HTTP
    # ============================================
    http_timeout: float = Field(default=30.0, ge=1.0, le=600.0, description="HTTP timeout")
    http_max_connections: int = Field(default=20, ge=1, le=200, description="Max connections")

    @field_validator("sd_service_url", mode="before")
    @classmethod
    def validate_sd_service_url(cls, v: str) -> str:
        """Ensure the SD service URL is an http(s) URL without trailing slash.

        Args:
            v: Service URL string

        Returns:
            Normalized URL

        Raises:
            ValueError: If URL is not http(s)
        """
        if isinstance(v, str):
            if not v.startswith(("http://", "https://")):
                raise ValueError("sd_service_url must start with http:// or https://")
            return v.rstrip("/")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode.

        Returns:
            True if app_env is 'development'
        """
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode.

        Returns:
            True if app_env is 'production'
        """
        return self.app_env == "production"


# =============================================================================
# Singleton accessor
# =============================================================================

_config: Config | None = None


def get_config() -> Config:
    """Get the global Config singleton.

    This function provides a lazy-loaded singleton instance of Config.
    Use this instead of importing `container.config()` to avoid circular imports.

    Returns:
        The global Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached Config so the next access re-reads the environment."""
    global _config
    _config = None
