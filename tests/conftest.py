from __future__ import annotations

import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = BASE_DIR / "src"
TESTS_DIR = Path(__file__).resolve().parent

for path in (SRC_DIR, TESTS_DIR):
    sys.path.insert(0, str(path))

from pharma_console.config import ClientConfig  # noqa: E402
from pharma_console.http_client import HttpClient  # noqa: E402

from console_helpers import BASE_URL  # noqa: E402


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(
        env_name="test",
        api_base_url=BASE_URL,
        access_token="token",
        retries=0,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def http(config: ClientConfig) -> HttpClient:
    return HttpClient(config)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PHARMA_CONSOLE_TELEMETRY_ENABLED", raising=False)
