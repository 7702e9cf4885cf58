from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import ValidationError

DEFAULT_REGION = "us-east-1"


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be a number: {raw!r}") from err


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be an integer: {raw!r}") from err


@dataclass(frozen=True)
class StoreSettings:
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    connect_timeout: float = 1.0
    read_timeout: float = 3.0
    max_attempts: int = 3

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> StoreSettings:
        region = (environ.get("DYNAMODB_REGION") or environ.get("AWS_REGION") or DEFAULT_REGION).strip()
        endpoint_url = (environ.get("DYNAMODB_ENDPOINT") or "").strip() or None
        return cls(
            region=region,
            endpoint_url=endpoint_url,
            connect_timeout=_float(environ, "DYNAMODB_CONNECT_TIMEOUT", cls.connect_timeout),
            read_timeout=_float(environ, "DYNAMODB_READ_TIMEOUT", cls.read_timeout),
            max_attempts=_int(environ, "DYNAMODB_MAX_ATTEMPTS", cls.max_attempts),
        )


def resolve_table_name(env_var: str | None, environ: Mapping[str, str] = os.environ) -> str:
    if not env_var:
        raise ValidationError("no table name configured")
    name = (environ.get(env_var) or "").strip()
    if not name:
        raise ValidationError(f"table name is not configured: set {env_var}")
    return name
