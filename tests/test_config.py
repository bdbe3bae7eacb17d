"""
==============================================================================
Configuration Tests
==============================================================================

Tests for settings validation, derived properties and the startup banner.

==============================================================================
"""

import logging

import pytest

from phonescan.config import Settings
from phonescan.main import Application


class TestSettings:
    """Tests for Settings validators and computed properties."""

    @pytest.mark.parametrize("value, expected", [
        ("PRODUCTION", "production"),
        (" staging ", "staging"),
        ("qa", "development"),
    ])
    def test_app_env_normalized(self, value: str, expected: str):
        assert Settings(app_env=value).app_env == expected

    def test_handoff_scheme_colon_stripped(self):
        assert Settings(handoff_scheme="SMS:").handoff_scheme == "sms"

    def test_poll_interval_seconds(self):
        assert Settings(poll_interval_ms=250).poll_interval == 0.25

    def test_capture_constraints(self):
        settings = Settings(camera_facing_mode="user", camera_ideal_width=640, camera_ideal_height=480)
        assert settings.capture_constraints == {"facing_mode": "user", "width": 640, "height": 480}


class TestStartupBanner:
    """Tests for the application startup log."""

    def test_banner_names_environment(self, caplog: pytest.LogCaptureFixture):
        application = Application()

        with caplog.at_level(logging.INFO, logger="phonescan.main"):
            application._startup()

        assert f"({application._settings.app_env})" in caplog.text
