from __future__ import annotations

import base64
import binascii
import json
import logging
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .errors import ValidationError
from .marshal import deserialize_record, serialize_value
from .validation import validate_attribute_name, validate_index_name, validate_table_name

logger = logging.getLogger(__name__)

QUERY_PAGE_LIMIT = 300


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    next_cursor: str | None


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, Any]
    index: str | None = None


def _key_av_to_json(av: Any) -> dict[str, str]:
    if not isinstance(av, dict) or len(av) != 1:
        raise ValueError("key attribute value must be a single-key map")
    ((kind, value),) = av.items()

    if kind in {"S", "N"}:
        if not isinstance(value, str):
            raise ValueError(f"{kind} value must be a string")
        return {kind: value}
    if kind == "B":
        if not isinstance(value, (bytes, bytearray)):
            raise ValueError("B value must be bytes")
        return {"B": base64.b64encode(bytes(value)).decode("ascii")}

    raise ValueError(f"unsupported key attribute type: {kind}")


def _key_av_from_json(enc: Any) -> dict[str, Any]:
    if not isinstance(enc, dict) or len(enc) != 1:
        raise ValueError("key attribute value must be a single-key map")
    ((kind, value),) = enc.items()
    if not isinstance(value, str):
        raise ValueError(f"{kind} value must be a string")

    if kind in {"S", "N"}:
        return {kind: value}
    if kind == "B":
        return {"B": base64.b64decode(value)}

    raise ValueError(f"unsupported key attribute type: {kind}")


def encode_cursor(last_key: Any, *, index: str | None = None) -> str:
    if not last_key:
        return ""
    if not isinstance(last_key, dict):
        raise ValueError("last_key must be a map")

    payload: dict[str, Any] = {"lastKey": {str(k): _key_av_to_json(last_key[k]) for k in sorted(last_key)}}
    if index is not None:
        payload["index"] = index

    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> Cursor:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    try:
        parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError) as err:
        raise ValueError("cursor is not valid base64 json") from err
    if not isinstance(parsed, dict):
        raise ValueError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValueError("cursor lastKey is invalid")

    index = parsed.get("index")
    return Cursor(
        last_key={str(k): _key_av_from_json(v) for k, v in last_key_raw.items()},
        index=index if isinstance(index, str) else None,
    )


def start_key_from_cursor(cursor: str, *, index_name: str | None) -> dict[str, Any]:
    try:
        decoded = decode_cursor(cursor)
    except ValueError as err:
        raise ValidationError("invalid cursor") from err
    if decoded.index != index_name:
        raise ValidationError("cursor index does not match request")
    return decoded.last_key


def build_query_request(
    table_name: str,
    hash_field: str,
    hash_value: Any,
    range_field: str | None = None,
    range_value: Any | None = None,
    index_name: str | None = None,
    cursor: str | None = None,
    *,
    consistent_read: bool = False,
) -> dict[str, Any]:
    validate_table_name(table_name)
    validate_attribute_name(hash_field)
    if hash_value is None:
        raise ValidationError("hash value is required")

    key_expr = f"{hash_field} = :pkey"
    values: dict[str, Any] = {":pkey": serialize_value(hash_value)}

    # None and "not given" are the same thing: a hash-only query.
    if range_field is not None and range_value is not None:
        validate_attribute_name(range_field)
        key_expr += f" and {range_field} = :skey"
        values[":skey"] = serialize_value(range_value)

    req: dict[str, Any] = {
        "TableName": table_name,
        "KeyConditionExpression": key_expr,
        "ExpressionAttributeValues": values,
        "Limit": QUERY_PAGE_LIMIT,
    }
    if index_name is not None:
        validate_index_name(index_name)
        req["IndexName"] = index_name
    if cursor is not None:
        req["ExclusiveStartKey"] = start_key_from_cursor(cursor, index_name=index_name)
    if consistent_read:
        req["ConsistentRead"] = True
    return req


def run_query(
    client: Any,
    table_name: str,
    hash_field: str,
    hash_value: Any,
    range_field: str | None = None,
    range_value: Any | None = None,
    index_name: str | None = None,
    cursor: str | None = None,
    *,
    consistent_read: bool = False,
) -> Page[dict[str, Any]]:
    """Fetch a single page of a hash (or hash and range) equality query.

    Items are returned as deserialized records with numbers still boxed as
    ``Decimal``; ``next_cursor`` is ``None`` once the query is exhausted.
    """
    req = build_query_request(
        table_name,
        hash_field,
        hash_value,
        range_field,
        range_value,
        index_name,
        cursor,
        consistent_read=consistent_read,
    )

    try:
        resp = client.query(**req)
    except ClientError as err:
        raise map_client_error(err) from err

    items = [deserialize_record(item) for item in resp.get("Items", [])]
    last = resp.get("LastEvaluatedKey")
    logger.debug("query %s returned %d item(s), more=%s", table_name, len(items), bool(last))
    return Page(items=items, next_cursor=encode_cursor(last, index=index_name) if last else None)


class PagedRecords(Iterator[dict[str, Any]]):
    """Pull-based record sequence over a paged read.

    Pages are fetched only when the buffered items run out. ``resume_cursor``
    is the cursor that produced the page currently being consumed, so a new
    sequence started from it replays that page rather than skipping any of it.
    """

    def __init__(self, fetch: Callable[[str | None], Page[dict[str, Any]]], cursor: str | None = None) -> None:
        self._fetch = fetch
        self._next_cursor = cursor
        self._buffer: deque[dict[str, Any]] = deque()
        self._done = False
        self.resume_cursor: str | None = cursor
        self.pages_read = 0

    @property
    def exhausted(self) -> bool:
        return self._done and not self._buffer

    def __iter__(self) -> PagedRecords:
        return self

    def __next__(self) -> dict[str, Any]:
        while not self._buffer:
            if self._done:
                raise StopIteration
            self._read_page()
        return self._buffer.popleft()

    def _read_page(self) -> None:
        self.resume_cursor = self._next_cursor
        page = self._fetch(self._next_cursor)
        self.pages_read += 1
        self._buffer.extend(page.items)
        self._next_cursor = page.next_cursor
        if page.next_cursor is None:
            self._done = True


class QueryIterator(PagedRecords):
    def __init__(
        self,
        client: Any,
        table_name: str,
        hash_field: str,
        hash_value: Any,
        range_field: str | None = None,
        range_value: Any | None = None,
        index_name: str | None = None,
        cursor: str | None = None,
        *,
        consistent_read: bool = False,
    ) -> None:
        def fetch(page_cursor: str | None) -> Page[dict[str, Any]]:
            return run_query(
                client,
                table_name,
                hash_field,
                hash_value,
                range_field,
                range_value,
                index_name,
                page_cursor,
                consistent_read=consistent_read,
            )

        super().__init__(fetch, cursor)
