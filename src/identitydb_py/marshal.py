from __future__ import annotations

from collections.abc import Mapping
from decimal import DecimalException
from typing import Any

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .errors import ValidationError
from .normalize import box_numbers

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def serialize_value(value: Any) -> dict[str, Any]:
    try:
        return _serializer.serialize(box_numbers(value))
    except (TypeError, DecimalException) as err:
        raise ValidationError(str(err)) from err


def serialize_record(record: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k): serialize_value(v) for k, v in record.items() if v is not None}


def serialize_key(record: Mapping[str, Any], key_name: str) -> dict[str, Any]:
    if key_name not in record or record[key_name] is None:
        raise ValidationError(f"record is missing key field: {key_name}")
    return {key_name: serialize_value(record[key_name])}


def deserialize_record(item: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k): _deserializer.deserialize(v) for k, v in item.items()}


def serialize_values(values: Mapping[str, Any]) -> dict[str, Any]:
    return {k: serialize_value(v) for k, v in values.items()}
