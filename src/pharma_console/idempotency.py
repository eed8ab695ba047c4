from __future__ import annotations

import uuid


def new_idempotency_key(operation: str | None = None) -> str:
    token = str(uuid.uuid4())
    return f"{operation}:{token}" if operation else token


def idempotency_headers(idempotency_key: str) -> dict[str, str]:
    return {"Idempotency-Key": idempotency_key}
