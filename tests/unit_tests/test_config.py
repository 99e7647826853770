"""Tests for settings loading and persistence."""

import json

import pydantic
import pytest
from structlog.testing import capture_logs

from flashforge.webui import config


def test_defaults():
    s = config.Settings()
    assert s.webui_password.get_secret_value() == "changeme"
    assert s.uses_default_password
    assert s.webui_port == 3000
    assert s.session_timeout_hours == 24
    assert s.temp_session_timeout_minutes == 60
    assert s.login_max_attempts == 5


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("FFUI_WEBUI_PASSWORD", "from-env")
    monkeypatch.setenv("FFUI_WEBUI_PORT", "4000")

    s = config.Settings()

    assert s.webui_password.get_secret_value() == "from-env"
    assert not s.uses_default_password
    assert s.webui_port == 4000


def test_config_json_is_loaded(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text(json.dumps({"webui_port": 3100, "session_timeout_hours": 12}))

    s = config.Settings()

    assert s.webui_port == 3100
    assert s.session_timeout_hours == 12


def test_environment_overrides_config_json(isolated_config, monkeypatch):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text(json.dumps({"webui_port": 3100}))
    monkeypatch.setenv("FFUI_WEBUI_PORT", "3200")

    assert config.Settings().webui_port == 3200


def test_broken_config_json_is_ignored(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("{broken")

    with capture_logs() as logs:
        assert config.load_json_config() == {}
    assert any(entry["event"] == "Failed to read config.json" for entry in logs)


def test_non_object_config_json_is_ignored(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("[1, 2]")
    assert config.load_json_config() == {}


def test_invalid_values_rejected():
    with pytest.raises(pydantic.ValidationError):
        config.Settings(webui_port=0)
    with pytest.raises(pydantic.ValidationError):
        config.Settings(session_timeout_hours=-1)


def test_save_json_config_preserves_unknown_keys(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text(json.dumps({"theme": "dark"}))

    path = config.save_json_config(config.Settings(webui_port=3300))

    assert path == isolated_config
    data = json.loads(isolated_config.read_text())
    assert data["theme"] == "dark"
    assert data["webui_port"] == 3300
    assert "webui_password" not in data


def test_lazy_settings(monkeypatch):
    monkeypatch.setattr(config, "_settings", None)

    first = config.settings
    assert isinstance(first, config.Settings)
    assert config.settings is first


def test_unknown_module_attribute():
    with pytest.raises(AttributeError):
        config.does_not_exist  # noqa: B018
