from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable

from dotenv import load_dotenv

ENV_PREFIX = "PHARMA_CONSOLE_"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ClientConfig:
    env_name: str
    api_base_url: str
    access_token: str | None = None
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 30.0
    retries: int = 2
    retry_backoff_seconds: float = 0.3
    max_connections: int = 20
    verify_ssl: bool = True
    per_page: int = 20
    local_per_page: int = 10
    max_workers: int = 8
    telemetry_enabled: bool = False

    @property
    def normalized_env(self) -> str:
        return self.env_name.lower().strip()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _require(values: dict[str, str | None], required: Iterable[str]) -> None:
    missing = [key for key in required if not values.get(key)]
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}")


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = _env(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {ENV_PREFIX}{name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = _env(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {ENV_PREFIX}{name}: expected an integer, got {raw!r}") from exc


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> ClientConfig:
    """Load config from environment with optional .env override."""
    load_dotenv(env_file)

    env_name = (_env("ENV") or "dev").strip()
    env_key = env_name.upper()

    api_base_url = (
        (_env(f"API_BASE_URL_{env_key}") or "").strip()
        or (_env("API_BASE_URL") or "").strip()
    )
    _require({f"{ENV_PREFIX}API_BASE_URL": api_base_url}, [f"{ENV_PREFIX}API_BASE_URL"])

    timeout_seconds = _read_float("TIMEOUT_SECONDS", "30")
    _validate(timeout_seconds > 0, f"Invalid {ENV_PREFIX}TIMEOUT_SECONDS: expected > 0, got {timeout_seconds}")

    connect_timeout_seconds = _read_float("CONNECT_TIMEOUT_SECONDS", str(min(timeout_seconds, 5.0)))
    _validate(
        connect_timeout_seconds > 0,
        f"Invalid {ENV_PREFIX}CONNECT_TIMEOUT_SECONDS: expected > 0, got {connect_timeout_seconds}",
    )

    read_timeout_seconds = _read_float(
        "READ_TIMEOUT_SECONDS",
        str(max(timeout_seconds, connect_timeout_seconds)),
    )
    _validate(
        read_timeout_seconds > 0,
        f"Invalid {ENV_PREFIX}READ_TIMEOUT_SECONDS: expected > 0, got {read_timeout_seconds}",
    )

    retries = _read_int("RETRIES", "2")
    _validate(retries >= 0, f"Invalid {ENV_PREFIX}RETRIES: expected >= 0, got {retries}")

    retry_backoff_seconds = _read_float("RETRY_BACKOFF_SECONDS", "0.3")
    _validate(
        retry_backoff_seconds >= 0,
        f"Invalid {ENV_PREFIX}RETRY_BACKOFF_SECONDS: expected >= 0, got {retry_backoff_seconds}",
    )

    max_connections = _read_int("MAX_CONNECTIONS", "20")
    _validate(max_connections >= 1, f"Invalid {ENV_PREFIX}MAX_CONNECTIONS: expected >= 1, got {max_connections}")

    per_page = _read_int("PER_PAGE", "20")
    _validate(per_page >= 1, f"Invalid {ENV_PREFIX}PER_PAGE: expected >= 1, got {per_page}")

    local_per_page = _read_int("LOCAL_PER_PAGE", "10")
    _validate(local_per_page >= 1, f"Invalid {ENV_PREFIX}LOCAL_PER_PAGE: expected >= 1, got {local_per_page}")

    max_workers = _read_int("MAX_WORKERS", "8")
    _validate(max_workers >= 1, f"Invalid {ENV_PREFIX}MAX_WORKERS: expected >= 1, got {max_workers}")

    access_token = (_env("ACCESS_TOKEN") or "").strip() or None

    return ClientConfig(
        env_name=env_name,
        api_base_url=api_base_url.rstrip("/"),
        access_token=access_token,
        connect_timeout_seconds=connect_timeout_seconds,
        read_timeout_seconds=read_timeout_seconds,
        retries=retries,
        retry_backoff_seconds=retry_backoff_seconds,
        max_connections=max_connections,
        verify_ssl=_coerce_bool(_env("VERIFY_SSL"), True),
        per_page=per_page,
        local_per_page=local_per_page,
        max_workers=max_workers,
        telemetry_enabled=_coerce_bool(_env("TELEMETRY_ENABLED"), False),
    )
