from __future__ import annotations

import logging
import os
import uuid

import boto3

from identitydb_py import Account, Entity, Identifier, IdentifierRecord, UnauthorizedError


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def _create_table(client, name: str) -> None:
    client.create_table(
        TableName=name,
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=name)


def main() -> None:
    logging.basicConfig(level=logging.DEBUG)
    client = _client()
    suffix = uuid.uuid4().hex[:12]
    users, identifiers = f"identitydb_example_users_{suffix}", f"identitydb_example_ids_{suffix}"
    _create_table(client, users)
    _create_table(client, identifiers)

    Entity.bind(client)
    Account.bind(table_name=users)
    IdentifierRecord.bind(table_name=identifiers)

    try:
        account = Account(id=str(uuid.uuid4()), email="ann@example.com").save()
        IdentifierRecord.upsert(account.id, "email", "ann@example.com")

        # a later sign-in through Google links the new identity to the same account
        found = IdentifierRecord.get_user_and_push_identifiers(
            [Identifier("google-sub-123", "googleId"), Identifier("ann@example.com", "email")]
        )
        print("signed in:", found.id, found.email)
        print("google resolves to:", IdentifierRecord.get_user("google-sub-123").id)

        try:
            IdentifierRecord.get_user_and_push_identifiers([Identifier("stranger@example.com", "email")])
        except UnauthorizedError as err:
            print("rejected:", err)
    finally:
        client.delete_table(TableName=users)
        client.delete_table(TableName=identifiers)


if __name__ == "__main__":
    main()
