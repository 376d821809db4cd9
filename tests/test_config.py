"""
Tests for settings, sync configuration and time helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from ledgersync.core.config import Settings
from ledgersync.core.timeutil import to_utc
from ledgersync.sync.config import SyncConfig


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("BANK_CLIENT_TYPE", raising=False)
        settings = Settings(_env_file=None)

        assert settings.SYNC_COOLDOWN_MINUTES == 60
        assert settings.SYNC_EXCLUDE_BOUNDARY_ID is False
        assert settings.BANK_CLIENT_TYPE == "qonto"
        assert settings.database_url == "sqlite+aiosqlite:///./ledgersync.db"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SYNC_COOLDOWN_MINUTES", "15")
        monkeypatch.setenv("SYNC_EXCLUDE_BOUNDARY_ID", "true")
        monkeypatch.setenv("BANK_API_LOGIN", "acme-1234")

        settings = Settings(_env_file=None)

        assert settings.SYNC_COOLDOWN_MINUTES == 15
        assert settings.SYNC_EXCLUDE_BOUNDARY_ID is True
        assert settings.BANK_API_LOGIN == "acme-1234"


class TestSyncConfig:
    """Tests for SyncConfig."""

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            SYNC_COOLDOWN_MINUTES=30,
            BANK_CLIENT_TYPE="mock",
            BANK_API_PAGE_SIZE=25,
        )

        config = SyncConfig.from_settings(settings)

        assert config.cooldown_minutes == 30
        assert config.get_cooldown() == timedelta(minutes=30)
        assert config.client_type == "mock"
        assert config.page_size == 25

    def test_page_size_capped(self):
        with pytest.raises(ValidationError):
            SyncConfig(page_size=500)

    def test_negative_cooldown_rejected(self):
        with pytest.raises(ValidationError):
            SyncConfig(cooldown_minutes=-1)


class TestTimeHelpers:
    """Tests for UTC normalization."""

    def test_naive_is_utc(self):
        value = to_utc(datetime(2024, 3, 1, 9, 0))
        assert value == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def test_offset_converted(self):
        value = to_utc(datetime(2024, 3, 1, 11, 0, tzinfo=timezone(timedelta(hours=2))))
        assert value.tzinfo == timezone.utc
        assert value.hour == 9

    def test_none_passthrough(self):
        assert to_utc(None) is None

