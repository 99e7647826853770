"""Configuration for the WebUI core.

Settings are read, in priority order, from constructor arguments, `FFUI_*`
environment variables, a `.env` file and finally `config.json` in the platform
user config directory.

How to use the most important parts:
- `Settings`: instantiate directly (tests, embedding) or use the lazily created
  module attribute `config.settings`.
- `save_json_config`: persist the user-editable subset back to `config.json`.
"""

import json
import pathlib
import typing

import platformdirs
import pydantic
import pydantic_settings
import structlog

from flashforge.webui import consts

logger = structlog.get_logger(__name__)


def get_config_file() -> pathlib.Path:
    """Path of `config.json` in the platform user config directory."""
    config_dir = pathlib.Path(platformdirs.user_config_dir(consts.APP_NAME, consts.APP_AUTHOR))
    return config_dir / "config.json"


def load_json_config() -> dict[str, typing.Any]:
    """Load configuration from config.json."""
    config_file = get_config_file()
    logger.debug("Attempting to load config.json", config_file=str(config_file))
    if not config_file.exists():
        logger.debug("No config.json found.")
        return {}
    try:
        with config_file.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        logger.exception("Failed to read config.json", config_file=str(config_file))
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config.json that is not a JSON object", config_file=str(config_file))
        return {}
    return data


class Settings(pydantic_settings.BaseSettings):
    """WebUI settings loaded from config.json, .env or environment variables."""

    webui_password: pydantic.SecretStr = pydantic.SecretStr(consts.DEFAULT_WEBUI_PASSWORD)
    webui_port: int = pydantic.Field(default=consts.DEFAULT_WEBUI_PORT, ge=1, le=65535)

    session_timeout_hours: float = pydantic.Field(default=consts.DEFAULT_SESSION_TIMEOUT_HOURS, gt=0)
    temp_session_timeout_minutes: float = pydantic.Field(default=consts.DEFAULT_TEMP_SESSION_TIMEOUT_MINUTES, gt=0)
    token_salt: str = consts.DEFAULT_TOKEN_SALT

    login_max_attempts: int = pydantic.Field(default=consts.DEFAULT_LOGIN_MAX_ATTEMPTS, ge=1)
    login_window_minutes: float = pydantic.Field(default=consts.DEFAULT_LOGIN_WINDOW_MINUTES, gt=0)

    model_config = pydantic_settings.SettingsConfigDict(env_prefix="FFUI_", env_file=".env", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[pydantic_settings.BaseSettings],
        init_settings: pydantic_settings.PydanticBaseSettingsSource,
        env_settings: pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[pydantic_settings.PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include config.json."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            pydantic_settings.InitSettingsSource(settings_cls, load_json_config()),
            file_secret_settings,
        )

    @property
    def uses_default_password(self) -> bool:
        return self.webui_password.get_secret_value() == consts.DEFAULT_WEBUI_PASSWORD


def save_json_config(current_settings: Settings) -> pathlib.Path:
    """Save the user-editable settings to config.json and return its path."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)

    save_data = load_json_config()
    save_data["webui_port"] = current_settings.webui_port
    save_data["session_timeout_hours"] = current_settings.session_timeout_hours
    save_data["temp_session_timeout_minutes"] = current_settings.temp_session_timeout_minutes

    with config_file.open("w", encoding="utf-8") as f:
        json.dump(save_data, f, indent=4)
    logger.info("Saved config.json", config_file=str(config_file))
    return config_file


if typing.TYPE_CHECKING:
    settings: Settings

_settings: Settings | None = None


def __getattr__(name: str) -> typing.Any:
    """Implement lazy loading for settings to allow logging initialization first."""
    if name == "settings":
        global _settings
        if _settings is None:
            _settings = Settings()
        return _settings
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
