"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two modes:
    - DEVELOPMENT: Uses mock services (in-memory venue, simulated GPS fixes)
    - PRODUCTION: Uses the real venue backend over HTTP and the device position feed

The ENV_MODE variable controls which services are instantiated throughout
the package, enabling seamless switching between local testing and a
real deployment on a customer's device.

Usage:
    from table_checkin.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # Use mock services
    else:
        # Use real backend

Author: Your Name
Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with mock services
        PRODUCTION: Live venue backend and device positioning
        STAGING: Pre-production venue backend with test data
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging

        # Venue backend
        backend_base_url: Base URL of the venue API
        backend_timeout_seconds: Transport-level request timeout
        restaurant_id: Restaurant the device checks in to

        # Geolocation
        geo_timeout_seconds: Bounded wait for a position fix
        geo_max_attempts: Sampling attempts before surfacing the failure
        geo_retry_delay_seconds: Linear backoff step between attempts

        # Table matching
        ambiguity_epsilon_m: Distance gap below which GPS cannot tell tables apart
        fallback_radius_m: Widest radius still offered as a low-confidence match
        default_detection_radius_m: Table radius when the backend omits one
        widen_radius_by_accuracy: Use max(table radius, GPS accuracy)
        scan_radius_m: Radius requested from the nearby-tables lookup
        server_side_detection: Ask the backend to match before matching locally
        confirm_delay_seconds: Display delay before auto-confirming a table

        # Session persistence
        session_store_path: JSON document holding the active session
        session_lock_timeout: Seconds to wait for the store file lock

        # Presence monitoring
        presence_interval_seconds: Zone re-check interval
        presence_grace_seconds: Time outside the zone before auto-logout
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Table Check-in",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="Venue emulator host"
    )
    api_port: int = Field(
        default=5000,
        description="Venue emulator port"
    )

    # ==========================================================================
    # VENUE BACKEND
    # ==========================================================================

    backend_base_url: Optional[str] = Field(
        default=None,
        description="Venue API base URL (e.g. https://venue.example.com/api)"
    )
    backend_timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout applied by the HTTP transport"
    )
    restaurant_id: str = Field(
        default="default",
        description="Restaurant identifier sent with QR verification"
    )

    # ==========================================================================
    # GEOLOCATION
    # ==========================================================================

    geo_timeout_seconds: float = Field(
        default=10.0,
        ge=10.0,
        le=15.0,
        description="Maximum wait for a position fix"
    )
    geo_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Position sampling attempts"
    )
    geo_retry_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Linear backoff step between sampling attempts"
    )

    # ==========================================================================
    # TABLE MATCHING
    # ==========================================================================

    ambiguity_epsilon_m: float = Field(
        default=0.05,
        gt=0.0,
        description="Top-two distance gap treated as indistinguishable"
    )
    fallback_radius_m: float = Field(
        default=20.0,
        gt=0.0,
        description="Widest radius offered as a low-confidence match"
    )
    default_detection_radius_m: float = Field(
        default=0.9144,
        gt=0.0,
        description="Table detection radius when not configured (3 ft)"
    )
    widen_radius_by_accuracy: bool = Field(
        default=False,
        description="Use max(table radius, GPS accuracy) as the detection radius"
    )
    scan_radius_m: float = Field(
        default=20.0,
        gt=0.0,
        description="Radius requested from the nearby-tables lookup"
    )
    server_side_detection: bool = Field(
        default=False,
        description="Try the backend detect endpoint before local matching"
    )
    confirm_delay_seconds: float = Field(
        default=1.5,
        ge=0.0,
        description="Display delay before a high-confidence auto-confirm"
    )

    # ==========================================================================
    # SESSION STORE
    # ==========================================================================

    session_store_path: str = Field(
        default="data/customer_session.json",
        description="File holding the active client session record"
    )
    session_lock_timeout: int = Field(
        default=30,
        description="Seconds to wait for the store file lock"
    )

    # ==========================================================================
    # PRESENCE MONITORING
    # ==========================================================================

    presence_interval_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Zone re-check interval while a session is active"
    )
    presence_grace_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Time outside the zone before auto-logout"
    )

    # ==========================================================================
    # MOCK SERVICES
    # ==========================================================================

    mock_failure_rate: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Probability of a simulated backend failure"
    )
    mock_min_latency: float = Field(
        default=0.1,
        description="Minimum simulated latency in seconds"
    )
    mock_max_latency: float = Field(
        default=0.4,
        description="Maximum simulated latency in seconds"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def is_staging(self) -> bool:
        """Check if running in staging mode."""
        return self.env_mode == EnvironmentMode.STAGING

    @property
    def use_real_services(self) -> bool:
        """Check if the real venue backend should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.backend_base_url:
                missing.append("BACKEND_BASE_URL")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are loaded only once,
    keeping every service factory on the same configuration.

    Returns:
        Settings: Configured application settings

    Example:
        >>> settings = get_settings()
        >>> print(settings.env_mode)
        EnvironmentMode.DEVELOPMENT
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure package-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    # Set level based on debug mode
    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)

    return logging.getLogger("table_checkin")


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
