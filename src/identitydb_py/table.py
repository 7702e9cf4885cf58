from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import is_dataclass
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .errors import NotFoundError, ValidationError
from .marshal import deserialize_record, serialize_record, serialize_value
from .model import ModelDefinition
from .normalize import unwrap_numbers
from .query import QueryIterator
from .validation import validate_table_name

logger = logging.getLogger(__name__)


def to_record[T](model: ModelDefinition[T], item: T) -> dict[str, Any]:
    """Flatten an entity into a plain store record keyed by attribute name."""
    if not is_dataclass(item):
        raise ValidationError("item must be a dataclass instance")

    out: dict[str, Any] = {}
    if model.extras_field is not None:
        extras = getattr(item, model.extras_field) or {}
        for k, v in extras.items():
            if v is not None:
                out[str(k)] = copy.deepcopy(v)

    # declared attributes win over extras with the same name
    for field_name, attr_def in model.attributes.items():
        value = getattr(item, field_name)
        if value is None:
            out.pop(attr_def.attribute_name, None)
            continue
        if attr_def.json:
            value = json.dumps(value, separators=(",", ":"), sort_keys=True)
        out[attr_def.attribute_name] = copy.deepcopy(value)

    return out


def from_record[T](model: ModelDefinition[T], record: Mapping[str, Any]) -> T:
    """Build an entity from a record keyed by attribute name or python field name.

    Keys that match no declared attribute land in the extras map when the
    model has one and are dropped otherwise. The record is deep-copied.
    """
    kwargs: dict[str, Any] = {}
    extras: dict[str, Any] = {}

    for key, raw in copy.deepcopy(dict(record)).items():
        attr_def = model.attribute_for(str(key))
        if attr_def is None:
            if model.extras_field is not None and key != model.extras_field:
                extras[str(key)] = raw
            continue
        if attr_def.json and isinstance(raw, str):
            raw = json.loads(raw)
        kwargs[attr_def.python_name] = raw

    if model.extras_field is not None:
        given = record.get(model.extras_field)
        if isinstance(given, Mapping):
            extras = {**copy.deepcopy(dict(given)), **extras}
        kwargs[model.extras_field] = extras

    try:
        return model.model_type(**kwargs)
    except TypeError as err:
        raise ValidationError(str(err)) from err


class Table[T]:
    def __init__(self, model: ModelDefinition[T], *, client: Any, table_name: str | None = None) -> None:
        if table_name is None:
            table_name = model.table_name
        if not table_name:
            raise ValidationError("table_name is required (or set ModelDefinition.table_name)")
        validate_table_name(table_name)

        self._model = model
        self._table_name = table_name
        self._client = client

    @property
    def model(self) -> ModelDefinition[T]:
        return self._model

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def client(self) -> Any:
        return self._client

    def to_record(self, item: T) -> dict[str, Any]:
        return to_record(self._model, item)

    def from_record(self, record: Mapping[str, Any]) -> T:
        return from_record(self._model, record)

    def get(self, key: Mapping[str, Any], *, consistent_read: bool = False) -> T:
        try:
            resp = self._client.get_item(
                TableName=self._table_name,
                Key=self._key(key),
                ConsistentRead=consistent_read,
            )
        except ClientError as err:
            raise map_client_error(err) from err

        item = resp.get("Item")
        if not item:
            raise NotFoundError(f"item not found in {self._table_name}")
        return self.from_record(unwrap_numbers(deserialize_record(item)))

    def put(self, item: T) -> dict[str, Any]:
        """Write the whole item and return the record as stored."""
        record = self.to_record(item)
        if record.get(self._model.pk.attribute_name) in (None, ""):
            raise ValidationError("missing pk")
        if self._model.sk is not None and record.get(self._model.sk.attribute_name) in (None, ""):
            raise ValidationError("missing sk")

        try:
            self._client.put_item(TableName=self._table_name, Item=serialize_record(record))
        except ClientError as err:
            raise map_client_error(err) from err
        logger.debug("put %s into %s", record[self._model.pk.attribute_name], self._table_name)
        return record

    def delete(self, key: Mapping[str, Any]) -> None:
        try:
            self._client.delete_item(TableName=self._table_name, Key=self._key(key))
        except ClientError as err:
            raise map_client_error(err) from err

    def key_of(self, item: T) -> dict[str, Any]:
        key = {self._model.pk.attribute_name: getattr(item, self._model.pk.python_name)}
        if self._model.sk is not None:
            key[self._model.sk.attribute_name] = getattr(item, self._model.sk.python_name)
        return key

    def query_index(
        self,
        index_name: str,
        key: Mapping[str, Any],
        *,
        consistent_read: bool = False,
    ) -> Iterator[T]:
        idx = self._model.index(index_name)
        if idx is None:
            raise ValidationError(f"unknown index: {index_name}")

        by_attribute = self._by_attribute_name(key)
        if by_attribute.get(idx.partition) is None:
            raise ValidationError(f"index {index_name}: missing partition value: {idx.partition}")

        records = QueryIterator(
            self._client,
            self._table_name,
            idx.partition,
            by_attribute[idx.partition],
            idx.sort,
            by_attribute.get(idx.sort) if idx.sort is not None else None,
            index_name,
            consistent_read=consistent_read,
        )
        for record in records:
            yield self.from_record(unwrap_numbers(record))

    def _by_attribute_name(self, key: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in key.items():
            attr_def = self._model.attribute_for(name)
            out[attr_def.attribute_name if attr_def is not None else name] = value
        return out

    def _key(self, key: Mapping[str, Any]) -> dict[str, Any]:
        by_attribute = self._by_attribute_name(key)

        pk_value = by_attribute.get(self._model.pk.attribute_name)
        if pk_value is None:
            raise ValidationError("pk is required")
        out = {self._model.pk.attribute_name: serialize_value(pk_value)}

        if self._model.sk is not None:
            sk_value = by_attribute.get(self._model.sk.attribute_name)
            if sk_value is None:
                raise ValidationError("sk is required")
            out[self._model.sk.attribute_name] = serialize_value(sk_value)
        return out
