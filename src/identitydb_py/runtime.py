from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .config import StoreSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


def log_store_call(metric: StoreCallMetric) -> None:
    logger.debug(
        "%s.%s finished in %.3fs ok=%s", metric.service, metric.operation, metric.seconds, metric.ok
    )


def create_boto3_config(settings: StoreSettings) -> Config:
    return Config(
        region_name=settings.region,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": "adaptive"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[StoreCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._on_call(
                    StoreCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=ok,
                    )
                )

        return wrapped


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[StoreCallMetric], None] = log_store_call,
) -> Any:
    return _InstrumentedClient(client, service, on_call)


_clients: dict[tuple[str, str | None], Any] = {}
_clients_lock = threading.Lock()


def get_dynamodb_client(
    settings: StoreSettings | None = None,
    *,
    session: Any | None = None,
    metrics: Callable[[StoreCallMetric], None] | None = None,
) -> Any:
    """Return the shared DynamoDB client for the configured region and endpoint."""
    settings = settings or StoreSettings.from_env()
    key = (settings.region, settings.endpoint_url)

    with _clients_lock:
        existing = _clients.get(key)
        if existing is not None:
            return existing

        sess = session or boto3.session.Session(region_name=settings.region)
        client = cast(Any, sess).client(
            "dynamodb",
            region_name=settings.region,
            endpoint_url=settings.endpoint_url,
            config=create_boto3_config(settings),
        )
        if metrics is not None:
            client = instrument_boto3_client(client, service="dynamodb", on_call=metrics)

        _clients[key] = client
        logger.debug("created dynamodb client region=%s endpoint=%s", settings.region, settings.endpoint_url)
        return client


def _reset_clients_for_tests() -> None:
    with _clients_lock:
        _clients.clear()
