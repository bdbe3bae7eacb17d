"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management for the QR phone scanner using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Computed properties for derived values (poll interval, camera constraints)

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        camera_index: OpenCV index of the server-attached camera
        camera_facing_mode: Preferred camera facing ("environment" = rear)
        camera_ideal_width: Preferred capture width in pixels
        camera_ideal_height: Preferred capture height in pixels
        poll_interval_ms: Delay between live decode ticks
        decoder_symbols: Symbologies handed to the decoder
        extractor_digit_fallback: Strip-all-digits fallback when no pattern validates
        handoff_scheme: URI scheme of the messaging hand-off link
        payload_preview_chars: Payload characters quoted in error messages
        payload_echo_chars: Payload characters kept as debug echo
        max_upload_bytes: Largest accepted image upload
        max_sessions: Concurrent in-memory scan sessions
        notice_history: Notifications kept per session

    Example:
        >>> settings = Settings()
        >>> settings.poll_interval
        0.2
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="QR Phone Scanner",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # CAPTURE SETTINGS
    # =========================================================================
    camera_index: int = Field(
        default=0,
        ge=0,
        description="OpenCV camera index (0 = default device)"
    )

    camera_facing_mode: str = Field(
        default="environment",
        description="Preferred camera facing: environment or user"
    )

    camera_ideal_width: int = Field(
        default=1280,
        ge=160,
        le=7680,
        description="Preferred capture width"
    )

    camera_ideal_height: int = Field(
        default=720,
        ge=120,
        le=4320,
        description="Preferred capture height"
    )

    poll_interval_ms: int = Field(
        default=200,
        ge=20,
        le=5000,
        description="Delay between live decode ticks in milliseconds"
    )

    # =========================================================================
    # DECODE / EXTRACTION SETTINGS
    # =========================================================================
    decoder_symbols: str = Field(
        default='["QRCODE"]',
        description="pyzbar symbol names as JSON array string"
    )

    extractor_digit_fallback: bool = Field(
        default=True,
        description="Fall back to all digits of the payload when no pattern validates"
    )

    payload_preview_chars: int = Field(
        default=100,
        ge=10,
        description="Payload characters quoted in user-facing messages"
    )

    payload_echo_chars: int = Field(
        default=200,
        ge=10,
        description="Payload characters kept as debug echo"
    )

    # =========================================================================
    # SESSION / HAND-OFF SETTINGS
    # =========================================================================
    handoff_scheme: str = Field(
        default="sms",
        min_length=1,
        description="URI scheme used for the messaging hand-off"
    )

    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Largest accepted image upload in bytes"
    )

    max_sessions: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum concurrent scan sessions"
    )

    notice_history: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Notifications retained per session"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.

        Unknown values fall back to 'development' with a warning.
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("camera_facing_mode")
    @classmethod
    def validate_facing_mode(cls, value: str) -> str:
        """Only 'environment' and 'user' facing modes exist."""
        normalized = value.lower().strip()
        if normalized not in {"environment", "user"}:
            raise ValueError(
                f"Unsupported facing mode: {value}. Supported: environment, user"
            )
        return normalized

    @field_validator("handoff_scheme")
    @classmethod
    def validate_handoff_scheme(cls, value: str) -> str:
        """Strip a trailing colon so 'sms:' and 'sms' are equivalent."""
        return value.strip().rstrip(":").lower()

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000.0

    @property
    def capture_constraints(self) -> Dict[str, object]:
        """Constraints passed to capture-device providers on acquire."""
        return {
            "facing_mode": self.camera_facing_mode,
            "width": self.camera_ideal_width,
            "height": self.camera_ideal_height,
        }

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from JSON string to list."""
        return self._parse_json_list(self.cors_origins, ["*"], "CORS origins")

    @property
    def decoder_symbols_list(self) -> List[str]:
        """Parse decoder symbol names from JSON string to list."""
        symbols = self._parse_json_list(self.decoder_symbols, ["QRCODE"], "decoder symbols")
        return [str(s).upper() for s in symbols]

    @staticmethod
    def _parse_json_list(raw: str, default: List[str], label: str) -> List[str]:
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return parsed
            return default
        except json.JSONDecodeError:
            logger.warning(f"Invalid {label} JSON: {raw}, defaulting to {default}")
            return default

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
