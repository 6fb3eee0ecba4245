# pylint: disable=missing-module-docstring,missing-function-docstring
import pytest

from config import AppConfig


_VARS = (
    "ENV",
    "LOG_LEVEL",
    "HOST",
    "PORT",
    "RECOGNITION_LANG",
    "DEFAULT_CLIENT_CLASS",
    "CALL_START_TIMEOUT_MS",
    "ENABLE_JSON_LOGS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AppConfig.load_from_env()

    assert config.env == "dev"
    assert config.port == 8000
    assert config.recognition_lang == "en-US"
    assert config.default_client_class == "desktop"
    assert config.call_start_timeout_ms == 15_000
    assert config.enable_json_logs is True


def test_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("PORT", "9001")
    monkeypatch.setenv("RECOGNITION_LANG", "de-DE")
    monkeypatch.setenv("DEFAULT_CLIENT_CLASS", "mobile")
    monkeypatch.setenv("CALL_START_TIMEOUT_MS", "5000")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")

    config = AppConfig.load_from_env()

    assert config.env == "prod"
    assert config.port == 9001
    assert config.recognition_lang == "de-DE"
    assert config.default_client_class == "mobile"
    assert config.call_start_timeout_ms == 5_000
    assert config.enable_json_logs is False


def test_invalid_client_class_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DEFAULT_CLIENT_CLASS", "tablet")

    with pytest.raises(ValueError, match="DEFAULT_CLIENT_CLASS"):
        AppConfig.load_from_env()


def test_malformed_port_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PORT", "eighty")

    with pytest.raises(ValueError):
        AppConfig.load_from_env()
