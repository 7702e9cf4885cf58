from __future__ import annotations

import copy
import json
import re
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .marshal import deserialize_record, serialize_record
from .normalize import unwrap_numbers


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    if expected is ANY:
        return

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            raise AssertionError(f"{path}: expected dict, got {type(actual).__name__}")
        for k, v in expected.items():
            if k not in actual:
                raise AssertionError(f"{path}: missing key {k!r}")
            _assert_match(v, actual[k], path=f"{path}.{k}")
        return

    if isinstance(expected, list):
        if not isinstance(actual, list):
            raise AssertionError(f"{path}: expected list, got {type(actual).__name__}")
        if len(expected) != len(actual):
            raise AssertionError(f"{path}: expected {len(expected)} items, got {len(actual)}")
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            _assert_match(e, a, path=f"{path}[{i}]")
        return

    if expected != actual:
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """Scripted client: each call must match the next expectation, in order."""

    def __init__(self) -> None:
        self._expected: list[ExpectedCall] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._expected.append(ExpectedCall(method=method, expected=expected, response=response, error=error))

    def assert_no_pending(self) -> None:
        if self._expected:
            raise AssertionError(f"pending expected calls: {self._expected!r}")

    def _handle(self, method: str, req: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append((method, dict(req)))
        if not self._expected:
            raise AssertionError(f"unexpected call: {method}")

        call = self._expected.pop(0)
        if call.method != method:
            raise AssertionError(f"expected {call.method}, got {method}")

        if callable(call.expected):
            call.expected(req)
        elif call.expected is not None:
            _assert_match(dict(call.expected), req, path=method)

        if call.error is not None:
            raise call.error

        return dict(call.response or {})

    def put_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("put_item", kwargs)

    def get_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("get_item", kwargs)

    def delete_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("delete_item", kwargs)

    def query(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("query", kwargs)

    def scan(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("scan", kwargs)

    def batch_write_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("batch_write_item", kwargs)


@dataclass(frozen=True)
class MemoryTableSchema:
    hash_key: str
    range_key: str | None = None
    indexes: Mapping[str, tuple[str, str | None]] = field(default_factory=dict)


_KEY_CONDITION_PART = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(:[A-Za-z0-9_]+)\s*$")


class MemoryDynamoDBClient:
    """Thread-safe in-memory stand-in for the low-level DynamoDB client.

    Understands the request shapes this package emits: single-item
    get/put/delete, equality key-condition queries (optionally on an index),
    unfiltered scans and batch writes. Items are returned in first-write
    order; a key keeps its position across delete and re-put.
    """

    def __init__(self, tables: Mapping[str, MemoryTableSchema]) -> None:
        self._schemas = dict(tables)
        self._items: dict[str, dict[str, dict[str, Any]]] = {name: {} for name in tables}
        self._positions: dict[str, dict[str, int]] = {name: {} for name in tables}
        self._errors: dict[str, list[Exception]] = {}
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def fail_next(self, method: str, error: Exception) -> None:
        with self._lock:
            self._errors.setdefault(method, []).append(error)

    def seed(self, table_name: str, *records: Mapping[str, Any]) -> None:
        for record in records:
            self.put_item(TableName=table_name, Item=serialize_record(record))

    def records(self, table_name: str) -> list[dict[str, Any]]:
        with self._lock:
            positions = self._positions[table_name]
            ordered = sorted(self._items[table_name].items(), key=lambda kv: positions[kv[0]])
            items = [item for _, item in ordered]
        return [unwrap_numbers(deserialize_record(item)) for item in items]

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def get_item(self, *, TableName: str, Key: Mapping[str, Any], **kwargs: Any) -> dict[str, Any]:  # noqa: N803
        with self._lock:
            self._enter("get_item", dict(kwargs, TableName=TableName, Key=Key))
            item = self._table(TableName).get(self._key_id(TableName, Key))
            return {"Item": copy.deepcopy(item)} if item is not None else {}

    def put_item(self, *, TableName: str, Item: Mapping[str, Any], **kwargs: Any) -> dict[str, Any]:  # noqa: N803
        with self._lock:
            self._enter("put_item", dict(kwargs, TableName=TableName, Item=Item))
            self._put(TableName, Item)
            return {}

    def delete_item(self, *, TableName: str, Key: Mapping[str, Any], **kwargs: Any) -> dict[str, Any]:  # noqa: N803
        with self._lock:
            self._enter("delete_item", dict(kwargs, TableName=TableName, Key=Key))
            self._table(TableName).pop(self._key_id(TableName, Key), None)
            return {}

    def query(self, **req: Any) -> dict[str, Any]:
        with self._lock:
            self._enter("query", req)
            table_name = req["TableName"]
            values = req.get("ExpressionAttributeValues", {})
            conditions: list[tuple[str, Any]] = []
            for part in re.split(r"\s+and\s+", req["KeyConditionExpression"], flags=re.IGNORECASE):
                match = _KEY_CONDITION_PART.match(part)
                if match is None:
                    raise AssertionError(f"unsupported key condition: {part!r}")
                conditions.append((match.group(1), values[match.group(2)]))

            matches = [
                item
                for item in self._table(table_name).values()
                if all(item.get(name) == value for name, value in conditions)
            ]
            return self._page(table_name, matches, req)

    def scan(self, **req: Any) -> dict[str, Any]:
        with self._lock:
            self._enter("scan", req)
            if req.get("FilterExpression"):
                raise AssertionError("MemoryDynamoDBClient does not evaluate filter expressions")
            table_name = req["TableName"]
            return self._page(table_name, list(self._table(table_name).values()), req)

    def batch_write_item(self, *, RequestItems: Mapping[str, Any]) -> dict[str, Any]:  # noqa: N803
        with self._lock:
            self._enter("batch_write_item", {"RequestItems": RequestItems})
            for table_name, requests in RequestItems.items():
                for request in requests:
                    if "PutRequest" in request:
                        self._put(table_name, request["PutRequest"]["Item"])
                    else:
                        key = request["DeleteRequest"]["Key"]
                        self._table(table_name).pop(self._key_id(table_name, key), None)
            return {"UnprocessedItems": {}}

    def _enter(self, method: str, req: dict[str, Any]) -> None:
        self.calls.append((method, copy.deepcopy(req)))
        pending = self._errors.get(method)
        if pending:
            raise pending.pop(0)

    def _table(self, table_name: str) -> dict[str, dict[str, Any]]:
        if table_name not in self._items:
            raise AssertionError(f"unknown table: {table_name}")
        return self._items[table_name]

    def _key_attrs(self, table_name: str) -> list[str]:
        schema = self._schemas[table_name]
        return [schema.hash_key] + ([schema.range_key] if schema.range_key else [])

    def _key_id(self, table_name: str, key: Mapping[str, Any]) -> str:
        parts = []
        for attr in self._key_attrs(table_name):
            if attr not in key:
                raise AssertionError(f"key is missing {attr}")
            parts.append(key[attr])
        return json.dumps(parts, sort_keys=True, default=repr)

    def _put(self, table_name: str, item: Mapping[str, Any]) -> None:
        table = self._table(table_name)
        key_id = self._key_id(table_name, item)
        positions = self._positions[table_name]
        if key_id not in positions:
            positions[key_id] = len(positions)
        table[key_id] = copy.deepcopy(dict(item))

    def _page(self, table_name: str, items: list[dict[str, Any]], req: Mapping[str, Any]) -> dict[str, Any]:
        positions = self._positions[table_name]
        ordered = sorted(items, key=lambda item: positions[self._key_id(table_name, item)])

        # a start key keeps its position after the item itself is deleted
        start_key = req.get("ExclusiveStartKey")
        if start_key:
            after = positions.get(self._key_id(table_name, start_key), -1)
            ordered = [item for item in ordered if positions[self._key_id(table_name, item)] > after]

        limit = req.get("Limit") or len(ordered)
        page = ordered[:limit]
        resp: dict[str, Any] = {"Items": copy.deepcopy(page), "Count": len(page)}
        if limit < len(ordered) and page:
            last = page[-1]
            key_attrs = set(self._key_attrs(table_name))
            index = self._schemas[table_name].indexes.get(req.get("IndexName") or "")
            if index is not None:
                key_attrs.update(a for a in index if a)
            resp["LastEvaluatedKey"] = {a: copy.deepcopy(last[a]) for a in key_attrs if a in last}
        return resp
