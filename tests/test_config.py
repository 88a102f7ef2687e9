# tests/test_config.py
import pytest
from pydantic import ValidationError

from app.config import ProductionConfig, Settings, TestingConfig, get_config_by_env

from helpers import TEST_SECRET_KEY


def test_short_secret_key_is_rejected():
    with pytest.raises(ValidationError):
        Settings(SECRET_KEY="too-short")


def test_database_url_must_be_postgres_or_sqlite():
    with pytest.raises(ValidationError):
        Settings(SECRET_KEY=TEST_SECRET_KEY, DATABASE_URL="mysql://root@localhost/hospital")


def test_cors_origins_accept_comma_separated_string():
    settings = Settings(SECRET_KEY=TEST_SECRET_KEY, CORS_ORIGINS="http://a.test, http://b.test")
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


def test_config_selected_by_environment_name(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", TEST_SECRET_KEY)
    assert isinstance(get_config_by_env("Production"), ProductionConfig)
    assert get_config_by_env("production").is_production
    testing = get_config_by_env("testing")
    assert isinstance(testing, TestingConfig)
    assert testing.rate_limit_enabled is False
    assert type(get_config_by_env("staging")) is Settings
