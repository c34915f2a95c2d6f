"""Tests for settings and logging setup."""

import structlog
import structlog.testing

import topswap.config
from topswap.config import Settings, get_settings
from topswap.logging import (
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    unbind_context,
)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        """Defaults apply without environment overrides."""
        monkeypatch.delenv("TOPSWAP_POLL_INTERVAL_SECONDS", raising=False)
        settings = Settings(_env_file=None)

        assert settings.poll_interval_seconds == 5.0
        assert settings.drain_timeout_seconds == 600.0
        assert settings.database_url.startswith("sqlite+aiosqlite")

    def test_env_prefix(self, monkeypatch):
        """TOPSWAP_ variables override defaults."""
        monkeypatch.setenv("TOPSWAP_POLL_INTERVAL_SECONDS", "0.5")
        monkeypatch.setenv("TOPSWAP_DRAIN_TIMEOUT_SECONDS", "90")

        settings = Settings(_env_file=None)

        assert settings.poll_interval_seconds == 0.5
        assert settings.drain_timeout_seconds == 90.0

    def test_api_settings_from_env(self, monkeypatch):
        """The management API location is configurable."""
        monkeypatch.setenv("TOPSWAP_API_URL", "http://search-admin:8080")
        monkeypatch.setenv("TOPSWAP_API_TIMEOUT_SECONDS", "12.5")

        settings = Settings(_env_file=None)

        assert settings.api_url == "http://search-admin:8080"
        assert settings.api_timeout_seconds == 12.5

    def test_get_settings_is_cached(self):
        """get_settings returns one shared instance."""
        topswap.config.get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            topswap.config.get_settings.cache_clear()


class TestLogging:
    """Tests for structured logging setup."""

    def test_bind_and_clear_context(self):
        """Bound context variables are kept until cleared."""
        clear_context()
        bind_context(application="search-app", run_id="r1")
        try:
            assert structlog.contextvars.get_contextvars() == {
                "application": "search-app",
                "run_id": "r1",
            }
            unbind_context("run_id")
            assert structlog.contextvars.get_contextvars() == {"application": "search-app"}
        finally:
            clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_events_carry_fields(self):
        """Loggers emit snake_case events with keyword fields."""
        configure_logging(json_format=False, level="DEBUG", add_timestamp=False)
        with structlog.testing.capture_logs() as logs:
            get_logger(__name__).warning("swap_timed_out", previous_id="T1", checks=5)

        assert logs == [
            {"event": "swap_timed_out", "previous_id": "T1", "checks": 5, "log_level": "warning"}
        ]

    def test_configure_from_settings(self):
        """Debug settings select the console renderer, otherwise JSON lines."""
        try:
            configure_from_settings(Settings(_env_file=None, debug=True))
            assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)

            configure_from_settings(Settings(_env_file=None, log_level="WARNING"))
            assert isinstance(
                structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer
            )
        finally:
            structlog.reset_defaults()
