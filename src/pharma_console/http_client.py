from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .error_mapper import map_error
from .exceptions import ApiError, AuthError, NetworkError
from .logs import log_json

LOG = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-ID"
# requests headers are case-insensitive; the gateway answers with either name.
_RESPONSE_TRACE_HEADERS = (TRACE_HEADER, "X-Request-ID")

UnauthorizedHook = Callable[[AuthError], None]


@dataclass
class LastOperation:
    method: str
    path: str
    duration_ms: int
    result: str
    trace_id: str | None


@dataclass
class HttpClient:
    config: ClientConfig
    session: requests.Session | None = None
    on_unauthorized: UnauthorizedHook | None = None
    last_operation: LastOperation | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.config.max_connections,
                pool_maxsize=self.config.max_connections,
            )
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def _build_url(self, path: str) -> str:
        base = self.config.api_base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        retry_mutation: bool = False,
    ) -> dict[str, Any] | list[Any] | None:
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        trace_id = str(uuid.uuid4())
        request_headers[TRACE_HEADER] = trace_id

        normalized_method = method.upper()
        url = self._build_url(path)
        can_retry = normalized_method in {"GET", "HEAD"} or retry_mutation
        attempts = self.config.retries + 1 if can_retry else 1

        started = time.monotonic()
        response: requests.Response | None = None
        for attempt in range(attempts):
            try:
                response = self.session.request(
                    method=normalized_method,
                    url=url,
                    headers=request_headers,
                    json=json_body,
                    params=params,
                    timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                    verify=self.config.verify_ssl,
                )
            except requests.RequestException as exc:
                if attempt >= attempts - 1:
                    self._record(normalized_method, path, started, "network_error", trace_id)
                    timed_out = isinstance(exc, requests.Timeout)
                    raise NetworkError(
                        code="TIMEOUT_ERROR" if timed_out else "NETWORK_ERROR",
                        message=(
                            "The reporting API took too long to respond"
                            if timed_out
                            else "Could not reach the reporting API"
                        ),
                        details={"type": type(exc).__name__, "error": str(exc)},
                        trace_id=trace_id,
                        status_code=0,
                    ) from exc
            else:
                if response.status_code < 500 or attempt >= attempts - 1:
                    break
            log_json(
                LOG,
                {"event": "http_retry", "method": normalized_method, "path": path, "attempt": attempt + 1},
                level=logging.WARNING,
            )
            time.sleep(self.config.retry_backoff_seconds * (2**attempt))

        if response is None:
            raise RuntimeError("HTTP request finished without a response")

        trace_id = _response_trace_id(response, trace_id)
        if response.ok:
            self._record(normalized_method, path, started, "success", trace_id)
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return {"message": response.text}

        payload: Any = None
        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"message": response.text, "details": payload}
        error = map_error(response.status_code, payload, trace_id)
        self._record(normalized_method, path, started, "error", error.trace_id)
        self._notify_unauthorized(error)
        raise error

    def raise_for_envelope(self, payload: dict[str, Any]) -> None:
        """Raise when a 2xx body carries an error status in its {status, message, data} envelope."""
        status = payload.get("status")
        if isinstance(status, int) and status >= 400:
            error = map_error(status, payload, None)
            self._notify_unauthorized(error)
            raise error

    def _notify_unauthorized(self, error: ApiError) -> None:
        if isinstance(error, AuthError) and self.on_unauthorized:
            self.on_unauthorized(error)

    def _record(self, method: str, path: str, started: float, result: str, trace_id: str | None) -> None:
        with self._lock:
            self.last_operation = LastOperation(
                method=method,
                path=path,
                duration_ms=int((time.monotonic() - started) * 1000),
                result=result,
                trace_id=trace_id,
            )


def _response_trace_id(response: requests.Response, sent: str) -> str:
    for header in _RESPONSE_TRACE_HEADERS:
        value = response.headers.get(header)
        if value:
            return value
    return sent
