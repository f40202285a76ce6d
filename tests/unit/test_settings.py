"""Tests for connection settings validation and loading."""

import pytest
from pydantic import ValidationError

from lakequery.common.exceptions import ConfigurationError
from lakequery.settings import ConnectionSettings, get_settings, reload_settings


class TestConnectionSettings:
    """Test field validation."""

    def test_defaults(self):
        settings = ConnectionSettings(base_url="https://engine.example.com:9047/")

        assert settings.base_url == "https://engine.example.com:9047"
        assert settings.api_url == "https://engine.example.com:9047/api/v3"
        assert settings.page_size == 500
        assert settings.poll_base_interval == 0.2
        assert settings.poll_max_interval == 5.0
        assert settings.query_timeout_seconds == 600.0
        assert settings.max_retries == 3
        assert settings.time_zone == "UTC"

    def test_rejects_non_http_url(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(base_url="engine.example.com")

    def test_rejects_max_interval_below_base(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(base_url="http://h", poll_base_interval=2.0, poll_max_interval=1.0)

    def test_token_and_password_are_exclusive(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(base_url="http://h", auth_token="t", username="u", password="p")

    def test_password_login_needs_both_fields(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(base_url="http://h", username="u")

    def test_password_login(self):
        settings = ConnectionSettings(base_url="http://h", username="u", password="p")

        assert settings.uses_password_login is True
        assert settings.password.get_secret_value() == "p"
        assert str(settings.password) == "**********"

    def test_unknown_time_zone(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(base_url="http://h", time_zone="Mars/Olympus")

    def test_api_path_normalized(self):
        settings = ConnectionSettings(base_url="http://h", api_path="api/v3/")

        assert settings.api_url == "http://h/api/v3"


class TestGetSettings:
    """Test environment loading and caching."""

    def test_loads_from_environment(self, monkeypatch):
        monkeypatch.setattr("lakequery.settings.main._settings", None)
        monkeypatch.setenv("LAKEQUERY_BASE_URL", "http://env-host:9047")
        monkeypatch.setenv("LAKEQUERY_PAGE_SIZE", "250")

        settings = reload_settings()

        assert settings.base_url == "http://env-host:9047"
        assert settings.page_size == 250
        assert get_settings() is settings

    def test_force_reload_replaces_instance(self, monkeypatch):
        monkeypatch.setattr("lakequery.settings.main._settings", None)
        monkeypatch.setenv("LAKEQUERY_BASE_URL", "http://env-host:9047")
        first = get_settings()

        monkeypatch.setenv("LAKEQUERY_PAGE_SIZE", "42")

        assert get_settings() is first
        assert get_settings(force_reload=True).page_size == 42

    def test_missing_base_url_is_configuration_error(self, monkeypatch, tmp_path):
        monkeypatch.delenv("LAKEQUERY_BASE_URL", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("lakequery.settings.main._settings", None)

        with pytest.raises(ConfigurationError) as exc_info:
            get_settings()
        assert exc_info.value.details["config_key"] == "base_url"
