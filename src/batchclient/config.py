"""
Configuration management for the batch client.

Supports configuration via environment variables and .env files.
"""

from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientConfig(BaseSettings):
    """
    Configuration settings for the batch client.

    All settings can be configured via environment variables with the
    BATCHCLIENT_ prefix. ``extra_options`` is read as JSON.
    """

    model_config = SettingsConfigDict(
        env_prefix="BATCHCLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Batching parameters
    batch_size: int = Field(
        default=10,
        ge=1,
        description="Number of requests dispatched concurrently per batch"
    )
    select_timeout: float = Field(
        default=1.0,
        gt=0,
        description="Upper bound in seconds for one wait of the multiplexed loop"
    )
    dispatch_deadline: Optional[float] = Field(
        default=None,
        gt=0,
        description="Default overall deadline in seconds for send_requests (None = unbounded)"
    )

    # Transport defaults
    timeout: Optional[float] = Field(
        default=30.0,
        gt=0,
        description="Per-operation timeout in seconds (None = unbounded)"
    )
    connect_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Connect timeout in seconds (None = same as timeout)"
    )
    verify_tls: bool = Field(
        default=True,
        description="Verify TLS certificates"
    )
    follow_redirects: bool = Field(
        default=True,
        description="Follow redirects unless overridden"
    )
    max_redirects: int = Field(
        default=20,
        ge=0,
        description="Maximum number of redirects to follow"
    )

    # Global transport overrides, applied over request-derived options
    extra_options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Transport options that override request-derived defaults"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ClientConfig()
    return _config


def set_config(config: Optional[ClientConfig]) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _config
    _config = config
