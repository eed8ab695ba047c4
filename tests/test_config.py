from __future__ import annotations

import pytest

from pharma_console.config import ConfigError, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PHARMA_CONSOLE_ENV",
        "PHARMA_CONSOLE_API_BASE_URL",
        "PHARMA_CONSOLE_API_BASE_URL_DEV",
        "PHARMA_CONSOLE_API_BASE_URL_STAGING",
        "PHARMA_CONSOLE_ACCESS_TOKEN",
        "PHARMA_CONSOLE_PER_PAGE",
        "PHARMA_CONSOLE_VERIFY_SSL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_config_requires_base_url() -> None:
    with pytest.raises(ConfigError):
        load_config()


def test_load_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PHARMA_CONSOLE_API_BASE_URL", "https://api.example.com/api/")
    monkeypatch.setenv("PHARMA_CONSOLE_ACCESS_TOKEN", "  secret  ")
    cfg = load_config()
    assert cfg.api_base_url == "https://api.example.com/api"
    assert cfg.env_name == "dev"
    assert cfg.access_token == "secret"
    assert cfg.per_page == 20
    assert cfg.local_per_page == 10
    assert cfg.verify_ssl is True
    assert cfg.telemetry_enabled is False


def test_load_config_profile_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PHARMA_CONSOLE_ENV", "staging")
    monkeypatch.setenv("PHARMA_CONSOLE_API_BASE_URL", "https://api.example.com")
    monkeypatch.setenv("PHARMA_CONSOLE_API_BASE_URL_STAGING", "https://staging.example.com")
    cfg = load_config()
    assert cfg.api_base_url == "https://staging.example.com"
    assert cfg.normalized_env == "staging"


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("PHARMA_CONSOLE_TIMEOUT_SECONDS", "0"),
        ("PHARMA_CONSOLE_RETRIES", "-1"),
        ("PHARMA_CONSOLE_MAX_CONNECTIONS", "0"),
        ("PHARMA_CONSOLE_PER_PAGE", "0"),
        ("PHARMA_CONSOLE_LOCAL_PER_PAGE", "abc"),
        ("PHARMA_CONSOLE_MAX_WORKERS", "0"),
    ],
)
def test_load_config_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
    monkeypatch.setenv("PHARMA_CONSOLE_API_BASE_URL", "https://api.example.com")
    monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError) as exc:
        load_config()
    assert key in str(exc.value)


def test_verify_ssl_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PHARMA_CONSOLE_API_BASE_URL", "https://api.example.com")
    monkeypatch.setenv("PHARMA_CONSOLE_VERIFY_SSL", "false")
    assert load_config().verify_ssl is False
