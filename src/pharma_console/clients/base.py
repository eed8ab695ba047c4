from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, TypeAdapter

from ..exceptions import MalformedPayloadError
from ..filters import FilterCriteria
from ..http_client import HttpClient
from ..queries import ReportQuery

API_PREFIX = "/administrator"

M = TypeVar("M", bound=BaseModel)
Q = TypeVar("Q", bound=ReportQuery)


@dataclass
class BaseClient:
    http: HttpClient
    access_token: str | None = None

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _request(self, method: str, path: str, **kwargs):
        headers = kwargs.pop("headers", {})
        merged = {**self._auth_headers(), **headers}
        return self.http.request(method, f"{API_PREFIX}{path}", headers=merged, **kwargs)

    def _get_data(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._unwrap(path, self._request("GET", path, params=params or None))

    def _unwrap(self, path: str, payload: Any) -> Any:
        """Return the `data` member of a {status, message, data} envelope."""
        if not isinstance(payload, dict):
            raise MalformedPayloadError(
                code="MALFORMED_PAYLOAD",
                message=f"Expected {path} response to be a JSON object",
                raw_payload=payload,
            )
        self.http.raise_for_envelope(payload)
        if "data" not in payload:
            raise MalformedPayloadError(
                code="MALFORMED_PAYLOAD",
                message=f"Expected {path} response to carry a data member",
                raw_payload=payload,
            )
        return payload["data"]


def parse_model(model_type: type[M], data: Any, *, path: str) -> M:
    try:
        return model_type.model_validate(data)
    except pydantic.ValidationError as exc:
        raise MalformedPayloadError(
            code="MALFORMED_PAYLOAD",
            message=f"Unexpected {path} payload shape",
            details=exc.errors(include_url=False, include_context=False),
            raw_payload=data,
        ) from exc


def parse_list(model_type: type[M], data: Any, *, path: str) -> list[M]:
    try:
        return TypeAdapter(list[model_type]).validate_python(data)
    except pydantic.ValidationError as exc:
        raise MalformedPayloadError(
            code="MALFORMED_PAYLOAD",
            message=f"Unexpected {path} payload shape",
            details=exc.errors(include_url=False, include_context=False),
            raw_payload=data,
        ) from exc


def build_query(model_type: type[Q], filters: Any) -> Q:
    """Accept a FilterCriteria snapshot, a ready query model or a plain mapping."""
    if filters is None:
        return model_type()
    if isinstance(filters, FilterCriteria):
        return model_type.from_criteria(filters)
    if isinstance(filters, model_type):
        return filters
    return model_type.model_validate(filters)
