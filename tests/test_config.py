"""Tests for configuration management."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from email_platform.core.config import Settings, parse_size


class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.PORT == 3001
            assert settings.NODE_ENV == "development"
            assert settings.BCRYPT_ROUNDS == 12
            assert settings.RATE_LIMIT_WINDOW_MS == 900000
            assert settings.RATE_LIMIT_MAX_REQUESTS == 1000
            assert settings.JWT_EXPIRES_MINUTES == 60 * 24 * 7
            assert settings.is_production is False
            assert len(settings.JWT_SECRET) > 20

    def test_database_url_from_parts(self):
        with patch.dict(os.environ, {
            "DB_HOST": "db.internal",
            "DB_PORT": "6543",
            "DB_USER": "mailer",
            "DB_PASSWORD": "pw",
            "DB_NAME": "mail",
        }, clear=True):
            settings = Settings(_env_file=None)
            assert settings.database_url == "postgresql+asyncpg://mailer:pw@db.internal:6543/mail"

    def test_database_url_override(self):
        with patch.dict(os.environ, {"DATABASE_URL": "sqlite+aiosqlite:///x.db"}, clear=True):
            assert Settings(_env_file=None).database_url == "sqlite+aiosqlite:///x.db"

    def test_rate_limit_string(self):
        settings = Settings(_env_file=None, RATE_LIMIT_WINDOW_MS=60000, RATE_LIMIT_MAX_REQUESTS=100)
        assert settings.rate_limit == "100/60 second"

    def test_sub_second_window_is_rounded_up(self):
        settings = Settings(_env_file=None, RATE_LIMIT_WINDOW_MS=200)
        assert settings.rate_limit.endswith("/1 second")

    def test_production_flag(self):
        assert Settings(_env_file=None, NODE_ENV="production").is_production is True

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_bcrypt_rounds_bounds(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, BCRYPT_ROUNDS=2)

    def test_invalid_max_file_size(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MAX_FILE_SIZE="ten megabytes")


class TestParseSize:
    """Tests for size string parsing."""

    def test_units(self):
        assert parse_size("10mb") == 10 * 1024 * 1024
        assert parse_size("512kb") == 512 * 1024
        assert parse_size("1GB") == 1024 ** 3
        assert parse_size("300") == 300

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_size("lots")
