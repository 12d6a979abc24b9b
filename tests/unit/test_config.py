"""Test Settings loading and store validation."""

import pytest
from pydantic import ValidationError

from training_booking.core.config import BookingConfig, Settings, load_settings
from training_booking.core.enums import StoreBackend
from training_booking.core.errors import ConfigError


class TestSettingsDefaults:
    def test_default_settings(self):
        settings = Settings()
        assert settings.store_backend == StoreBackend.MEMORY
        assert settings.seed_demo_data is False

    def test_booking_defaults(self):
        settings = Settings()
        assert settings.booking.max_attempts == 3
        assert settings.booking.retry_backoff_seconds == 0.05
        assert settings.booking.transaction_timeout_seconds == 5.0

    def test_database_defaults(self):
        settings = Settings()
        assert settings.database.url.startswith("postgresql+asyncpg://")
        assert settings.database.isolation_level == "READ COMMITTED"
        assert settings.database.create_tables is False

    def test_api_defaults(self):
        settings = Settings()
        assert settings.api.port == 8080
        assert settings.observability.metrics_enabled is False


class TestBookingConfigValidation:
    def test_zero_attempts_rejected(self):
        with pytest.raises(ValidationError):
            BookingConfig(max_attempts=0)

    def test_negative_backoff_rejected(self):
        with pytest.raises(ValidationError):
            BookingConfig(retry_backoff_seconds=-1)

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValidationError):
            BookingConfig(transaction_timeout_seconds=0)


class TestValidateStore:
    def test_memory_passes(self):
        Settings().validate_store()  # Should not raise

    def test_postgres_with_default_url_passes(self):
        Settings(store_backend=StoreBackend.POSTGRES).validate_store()

    def test_postgres_without_url_raises(self):
        settings = Settings(store_backend=StoreBackend.POSTGRES, database={"url": ""})
        with pytest.raises(ConfigError, match="BOOKING_DATABASE__URL"):
            settings.validate_store()

    def test_postgres_with_sync_driver_raises(self):
        settings = Settings(
            store_backend=StoreBackend.POSTGRES,
            database={"url": "postgresql://u:p@localhost/db"},
        )
        with pytest.raises(ConfigError, match="asyncpg"):
            settings.validate_store()


class TestLoadSettings:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("BOOKING_STORE_BACKEND", "postgres")
        monkeypatch.setenv("BOOKING_BOOKING__MAX_ATTEMPTS", "7")
        settings = load_settings()
        assert settings.store_backend == StoreBackend.POSTGRES
        assert settings.booking.max_attempts == 7

    def test_toml_file(self, tmp_path):
        path = tmp_path / "booking.toml"
        path.write_text(
            'seed_demo_data = true\n'
            '\n'
            '[booking]\n'
            'max_attempts = 5\n'
            '\n'
            '[api]\n'
            'port = 9000\n'
        )
        settings = load_settings(path)
        assert settings.seed_demo_data is True
        assert settings.booking.max_attempts == 5
        assert settings.api.port == 9000

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.toml")
        assert settings.booking.max_attempts == 3

    def test_overrides_win_over_file(self, tmp_path):
        path = tmp_path / "booking.toml"
        path.write_text("seed_demo_data = false\n")
        settings = load_settings(path, {"seed_demo_data": True})
        assert settings.seed_demo_data is True

    def test_nested_overrides_keep_other_file_keys(self, tmp_path):
        path = tmp_path / "booking.toml"
        path.write_text(
            '[api]\n'
            'title = "Custom Booking"\n'
            'port = 9000\n'
        )
        settings = load_settings(path, {"api": {"host": "127.0.0.1"}})
        assert settings.api.title == "Custom Booking"
        assert settings.api.port == 9000
        assert settings.api.host == "127.0.0.1"
