import os
from unittest.mock import patch

import pytest

from flashforge.webui import config
from flashforge.webui.router import CommandResult
from flashforge.webui.schemas import PrinterStatusData


def pytest_load_initial_conftests(early_config, parser, args):
    """Conditionally append coverage report to GITHUB_STEP_SUMMARY.

    Only applies when running in GitHub Actions.
    """
    summary_file = os.getenv("GITHUB_STEP_SUMMARY")
    if (
        os.getenv("GITHUB_ACTIONS") == "true"
        and summary_file
        and not any(arg.startswith("--cov-report=markdown-append:") for arg in args)
    ):
        args.append(f"--cov-report=markdown-append:{summary_file}")


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config.json at a temp dir and drop any FFUI_* variables from the environment."""
    for key in list(os.environ):
        if key.startswith("FFUI_"):
            monkeypatch.delenv(key)
    config_file = tmp_path / "config" / "config.json"
    with patch("flashforge.webui.config.get_config_file", return_value=config_file):
        yield config_file


@pytest.fixture
def settings() -> config.Settings:
    return config.Settings(webui_password="s3cret", token_salt="test-salt")


class FakeClock:
    """Manually advanced wall clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FakeDriver:
    """Records every call and answers with a configurable CommandResult."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.result = CommandResult(success=True)
        self.status: PrinterStatusData | None = None

    def _record(self, name: str, *args) -> CommandResult:
        self.calls.append((name, *args))
        return self.result

    def get_status(self):
        return self.status

    def execute_gcode(self, gcode):
        return self._record("execute_gcode", gcode)

    def home_axes(self):
        return self._record("home_axes")

    def clear_status(self):
        return self._record("clear_status")

    def set_led_enabled(self, enabled):
        return self._record("set_led_enabled", enabled)

    def set_bed_temperature(self, temperature):
        return self._record("set_bed_temperature", temperature)

    def set_extruder_temperature(self, temperature):
        return self._record("set_extruder_temperature", temperature)

    def pause_print(self):
        return self._record("pause_print")

    def resume_print(self):
        return self._record("resume_print")

    def cancel_print(self):
        return self._record("cancel_print")

    def set_filtration(self, mode):
        return self._record("set_filtration", mode)

    def get_printer_data(self):
        return self._record("get_printer_data")

    def get_recent_files(self):
        return self._record("get_recent_files")

    def get_local_files(self):
        return self._record("get_local_files")

    def start_job(self, filename, leveling, start_now, material_mappings=None):
        return self._record("start_job", filename, leveling, start_now, material_mappings)

    def get_model_preview(self, filename):
        return self._record("get_model_preview", filename)


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


class FakeChannel:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def make_channel():
    """Factory for additional WebSocket channels in a single test."""
    return FakeChannel
