from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .errors import ValidationError
from .marshal import deserialize_record, serialize_values
from .query import Page, PagedRecords, encode_cursor, start_key_from_cursor
from .validation import validate_expression, validate_table_name

logger = logging.getLogger(__name__)


def build_scan_request(
    table_name: str,
    *,
    filter_expression: str | None = None,
    expression_attribute_names: Mapping[str, str] | None = None,
    expression_attribute_values: Mapping[str, Any] | None = None,
    limit: int | None = None,
    cursor: str | None = None,
    consistent_read: bool = False,
) -> dict[str, Any]:
    validate_table_name(table_name)
    if limit is not None and limit <= 0:
        raise ValidationError("limit must be > 0")

    req: dict[str, Any] = {"TableName": table_name}
    if filter_expression:
        validate_expression(filter_expression)
        req["FilterExpression"] = filter_expression
    if expression_attribute_names:
        req["ExpressionAttributeNames"] = dict(expression_attribute_names)
    if expression_attribute_values:
        req["ExpressionAttributeValues"] = serialize_values(expression_attribute_values)
    if limit is not None:
        req["Limit"] = limit
    if cursor is not None:
        req["ExclusiveStartKey"] = start_key_from_cursor(cursor, index_name=None)
    if consistent_read:
        req["ConsistentRead"] = True
    return req


def run_scan(
    client: Any,
    table_name: str,
    *,
    filter_expression: str | None = None,
    expression_attribute_names: Mapping[str, str] | None = None,
    expression_attribute_values: Mapping[str, Any] | None = None,
    limit: int | None = None,
    cursor: str | None = None,
    consistent_read: bool = False,
) -> Page[dict[str, Any]]:
    req = build_scan_request(
        table_name,
        filter_expression=filter_expression,
        expression_attribute_names=expression_attribute_names,
        expression_attribute_values=expression_attribute_values,
        limit=limit,
        cursor=cursor,
        consistent_read=consistent_read,
    )

    try:
        resp = client.scan(**req)
    except ClientError as err:
        raise map_client_error(err) from err

    items = [deserialize_record(item) for item in resp.get("Items", [])]
    last = resp.get("LastEvaluatedKey")
    logger.debug("scan %s returned %d item(s), more=%s", table_name, len(items), bool(last))
    return Page(items=items, next_cursor=encode_cursor(last) if last else None)


class ScanIterator(PagedRecords):
    """Lazy full-table scan, yielding records in page order.

    Records are not normalized; numbers arrive as ``Decimal``. To resume a
    scan later, persist ``resume_cursor`` and pass it as ``cursor`` to a new
    iterator.
    """

    def __init__(
        self,
        client: Any,
        table_name: str,
        *,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        consistent_read: bool = False,
    ) -> None:
        def fetch(page_cursor: str | None) -> Page[dict[str, Any]]:
            return run_scan(
                client,
                table_name,
                filter_expression=filter_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
                limit=limit,
                cursor=page_cursor,
                consistent_read=consistent_read,
            )

        super().__init__(fetch, cursor)
