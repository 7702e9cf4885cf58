from __future__ import annotations

import os
import uuid
from collections.abc import Iterator
from typing import Any

import boto3
import pytest

from identitydb_py import (
    Account,
    Entity,
    Identifier,
    IdentifierRecord,
    ItemDecision,
    NotFoundError,
    ScanIterator,
    stream_mutations,
)


def _dynamodb_endpoint() -> str:
    return os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000")


def _client() -> Any:
    return boto3.client(
        "dynamodb",
        endpoint_url=_dynamodb_endpoint(),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def _create_table(client: Any, name: str, *, email_index: bool = False) -> None:
    attrs = [{"AttributeName": "id", "AttributeType": "S"}]
    extra: dict[str, Any] = {}
    if email_index:
        attrs.append({"AttributeName": "email", "AttributeType": "S"})
        extra["GlobalSecondaryIndexes"] = [
            {
                "IndexName": "email-index",
                "KeySchema": [{"AttributeName": "email", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
        ]
    client.create_table(
        TableName=name,
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=attrs,
        BillingMode="PAY_PER_REQUEST",
        **extra,
    )
    client.get_waiter("table_exists").wait(TableName=name)


@pytest.fixture
def tables() -> Iterator[tuple[str, str]]:
    client = _client()
    suffix = uuid.uuid4().hex[:12]
    users, identifiers = f"identitydb_users_{suffix}", f"identitydb_identifiers_{suffix}"
    _create_table(client, users, email_index=True)
    _create_table(client, identifiers)

    Entity.bind(client)
    Account.bind(table_name=users)
    IdentifierRecord.bind(table_name=identifiers)
    try:
        yield users, identifiers
    finally:
        IdentifierRecord.unbind()
        Account.unbind()
        Entity.unbind()
        client.delete_table(TableName=users)
        client.delete_table(TableName=identifiers)


def test_identifier_login_flow(tables: tuple[str, str]) -> None:
    account = Account(id="u-1", email="ann@example.com").save()
    IdentifierRecord.upsert(account.id, "email", "ann@example.com")

    found = IdentifierRecord.get_user_and_push_identifiers(
        [Identifier("g-1", "googleId"), Identifier("ann@example.com", "email")]
    )
    assert found.id == "u-1"
    assert IdentifierRecord.get_user("g-1").id == "u-1"

    assert Account.get({"email": "ann@example.com"}, "email-index").id == "u-1"

    account.hard_delete()
    with pytest.raises(NotFoundError):
        IdentifierRecord.get_user("g-1")


def test_bulk_touch_through_scan(tables: tuple[str, str]) -> None:
    users, _ = tables
    for i in range(30):
        Account(id=f"u-{i:02d}").save()

    client = Account.table().client
    stream_mutations(
        client,
        "put",
        lambda r: ItemDecision.write({**r, "touched": True}),
        ScanIterator(client, users, limit=7),
        users,
        quiet=True,
    )

    assert all(r["touched"] for r in ScanIterator(client, users))
