from __future__ import annotations

import logging

import pytest

from identitydb_py.config import StoreSettings
from identitydb_py.mocks import FakeDynamoDBClient
from identitydb_py.runtime import (
    StoreCallMetric,
    _reset_clients_for_tests,
    create_boto3_config,
    get_dynamodb_client,
    instrument_boto3_client,
)


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(StoreSettings(region="eu-west-1", connect_timeout=2.0, read_timeout=4.0, max_attempts=5))
    assert cfg.region_name == "eu-west-1"
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries["max_attempts"] == 5


def test_instrument_boto3_client_records_calls() -> None:
    metrics: list[StoreCallMetric] = []

    client = FakeDynamoDBClient()
    client.expect("put_item", response={})
    wrapped = instrument_boto3_client(client, service="dynamodb", on_call=metrics.append)
    wrapped.put_item(TableName="t", Item={})
    assert [(m.operation, m.ok) for m in metrics] == [("put_item", True)]

    client2 = FakeDynamoDBClient()
    client2.expect("get_item", error=RuntimeError("boom"))
    wrapped2 = instrument_boto3_client(client2, service="dynamodb", on_call=metrics.append)
    with pytest.raises(RuntimeError, match="boom"):
        wrapped2.get_item(TableName="t", Key={})
    assert [(m.operation, m.ok) for m in metrics][-1] == ("get_item", False)
    assert wrapped2.calls == client2.calls


def test_default_metrics_go_to_debug_log(caplog: pytest.LogCaptureFixture) -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", response={})
    wrapped = instrument_boto3_client(client, service="dynamodb")

    with caplog.at_level(logging.DEBUG, logger="identitydb_py.runtime"):
        wrapped.scan(TableName="t")

    assert "dynamodb.scan finished" in caplog.text


class FakeSession:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def client(self, service_name: str, **kwargs: object) -> object:
        assert service_name == "dynamodb"
        self.calls.append(kwargs)
        return object()


def test_get_dynamodb_client_caches_per_region_and_endpoint() -> None:
    _reset_clients_for_tests()
    sess = FakeSession()
    local = StoreSettings(region="us-east-1", endpoint_url="http://localhost:8000")

    c1 = get_dynamodb_client(local, session=sess)
    c2 = get_dynamodb_client(local, session=sess)
    c3 = get_dynamodb_client(StoreSettings(region="us-west-2"), session=sess)

    assert c1 is c2
    assert c3 is not c1
    assert len(sess.calls) == 2
    assert sess.calls[0]["endpoint_url"] == "http://localhost:8000"
    assert sess.calls[1]["region_name"] == "us-west-2"
    _reset_clients_for_tests()


def test_get_dynamodb_client_can_instrument() -> None:
    _reset_clients_for_tests()
    metrics: list[StoreCallMetric] = []

    client = get_dynamodb_client(StoreSettings(), session=FakeSession(), metrics=metrics.append)

    assert hasattr(client, "_on_call")
    _reset_clients_for_tests()
