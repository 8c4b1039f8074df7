"""Unit tests for dashboard_lite.core.config_manager."""

import os
from pathlib import Path
from types import SimpleNamespace

import pytest

from dashboard_lite.calendar.lite_fetcher import DEFAULT_RELAY_URL
from dashboard_lite.core.config_manager import (
    ConfigManager,
    clamp_fetch_concurrency,
    get_config_value,
    parse_env_file,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]

ENV_VARS = (
    "DASHBOARD_DATA_DIR",
    "DASHBOARD_WEB_HOST",
    "DASHBOARD_WEB_PORT",
    "DASHBOARD_RELAY_URL",
    "DASHBOARD_FETCH_TIMEOUT",
    "DASHBOARD_FETCH_CONCURRENCY",
    "DASHBOARD_TIMEZONE",
    "DASHBOARD_DEBUG",
)


@pytest.fixture(autouse=True)
def clear_dashboard_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_parse_env_file_when_comments_and_quotes_then_cleaned(tmp_path: Path) -> None:
    """Comments and blank lines are skipped and quotes stripped."""
    env_file = tmp_path / ".env"
    env_file.write_text(
        '# dashboard settings\n\nDASHBOARD_WEB_PORT=8080\nDASHBOARD_WEB_HOST = "127.0.0.1"\n'
        "DASHBOARD_TIMEZONE='America/Chicago'\nnot a pair\n",
        encoding="utf-8",
    )

    assert parse_env_file(env_file) == {
        "DASHBOARD_WEB_PORT": "8080",
        "DASHBOARD_WEB_HOST": "127.0.0.1",
        "DASHBOARD_TIMEZONE": "America/Chicago",
    }


def test_parse_env_file_when_missing_then_empty(tmp_path: Path) -> None:
    """A missing file yields no values."""
    assert parse_env_file(tmp_path / "missing.env") == {}


def test_load_env_file_when_variable_already_set_then_not_overridden(tmp_path: Path, monkeypatch) -> None:
    """Real environment variables take precedence over .env defaults."""
    env_file = tmp_path / ".env"
    env_file.write_text("DASHBOARD_WEB_PORT=8080\nDASHBOARD_WEB_HOST=127.0.0.1\n", encoding="utf-8")
    monkeypatch.setenv("DASHBOARD_WEB_PORT", "9000")
    # Registered so monkeypatch removes it again after the test
    monkeypatch.setenv("DASHBOARD_WEB_HOST", "placeholder")
    monkeypatch.delenv("DASHBOARD_WEB_HOST")

    loaded = ConfigManager(env_file).load_env_file()

    assert loaded == ["DASHBOARD_WEB_HOST"]
    assert os.environ["DASHBOARD_WEB_PORT"] == "9000"
    assert os.environ["DASHBOARD_WEB_HOST"] == "127.0.0.1"


def test_build_config_from_env_when_nothing_set_then_defaults(tmp_path: Path) -> None:
    """Every key is present with its default."""
    config = ConfigManager(tmp_path / ".env").build_config_from_env()

    assert config == {
        "data_dir": Path("./data"),
        "server_bind": "0.0.0.0",
        "server_port": 3000,
        "relay_url": DEFAULT_RELAY_URL,
        "fetch_timeout_seconds": 10.0,
        "fetch_concurrency": 4,
        "timezone": None,
        "debug": False,
    }


def test_build_config_from_env_when_values_set_then_parsed(tmp_path: Path, monkeypatch) -> None:
    """Environment values are converted to their types."""
    monkeypatch.setenv("DASHBOARD_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DASHBOARD_WEB_PORT", "8081")
    monkeypatch.setenv("DASHBOARD_RELAY_URL", "  ")
    monkeypatch.setenv("DASHBOARD_FETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("DASHBOARD_FETCH_CONCURRENCY", "20")
    monkeypatch.setenv("DASHBOARD_DEBUG", "yes")

    config = ConfigManager(tmp_path / ".env").build_config_from_env()

    assert config["data_dir"] == tmp_path
    assert config["server_port"] == 8081
    assert config["relay_url"] == ""
    assert config["fetch_timeout_seconds"] == 2.5
    assert config["fetch_concurrency"] == 8
    assert config["debug"] is True


def test_build_config_from_env_when_numbers_invalid_then_defaults_with_warning(tmp_path: Path, monkeypatch, caplog) -> None:
    """Unparsable or non-positive numbers fall back to defaults."""
    monkeypatch.setenv("DASHBOARD_WEB_PORT", "eighty")
    monkeypatch.setenv("DASHBOARD_FETCH_TIMEOUT", "-1")

    config = ConfigManager(tmp_path / ".env").build_config_from_env()

    assert config["server_port"] == 3000
    assert config["fetch_timeout_seconds"] == 10.0
    assert "DASHBOARD_WEB_PORT" in caplog.text


@pytest.mark.parametrize(("value", "expected"), [(-3, 1), (0, 1), (1, 1), (5, 5), (8, 8), (64, 8)])
def test_clamp_fetch_concurrency_when_out_of_range_then_clamped(value: int, expected: int) -> None:
    """Concurrency is clamped to 1..8."""
    assert clamp_fetch_concurrency(value) == expected


def test_get_config_value_when_dict_or_object_then_both_supported() -> None:
    """Dicts and attribute objects are read the same way."""
    assert get_config_value({"a": 1}, "a") == 1
    assert get_config_value(SimpleNamespace(a=2), "a") == 2
    assert get_config_value({}, "missing", "fallback") == "fallback"
