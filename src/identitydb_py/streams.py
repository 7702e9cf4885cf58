from __future__ import annotations

import base64
import binascii
from typing import Any

from .entity import Entity
from .errors import ValidationError
from .marshal import deserialize_record
from .normalize import unwrap_numbers

_BINARY_KINDS = {"B", "BS"}


def _decode_stream_av(av: Any) -> dict[str, Any]:
    if not isinstance(av, dict) or len(av) != 1:
        raise ValidationError("stream attribute value must be a single-key map")
    ((kind, value),) = av.items()

    if kind in _BINARY_KINDS:
        # stream payloads carry binary as base64 text
        try:
            if kind == "B":
                return {"B": base64.b64decode(value, validate=True)}
            return {"BS": [base64.b64decode(v, validate=True) for v in value]}
        except (binascii.Error, TypeError) as err:
            raise ValidationError(f"stream {kind} value is not valid base64") from err
    if kind == "M":
        if not isinstance(value, dict):
            raise ValidationError("stream map value must be a map")
        return {"M": {k: _decode_stream_av(v) for k, v in value.items()}}
    if kind == "L":
        if not isinstance(value, list):
            raise ValidationError("stream list value must be a list")
        return {"L": [_decode_stream_av(v) for v in value]}
    return {kind: value}


def unmarshal_stream_image[E: Entity](entity_cls: type[E], image: Any) -> E:
    if not isinstance(image, dict):
        raise ValidationError("stream image must be a map")
    try:
        record = deserialize_record({k: _decode_stream_av(v) for k, v in image.items()})
    except TypeError as err:
        raise ValidationError(str(err)) from err
    return entity_cls.from_partial(unwrap_numbers(record))


def unmarshal_stream_record[E: Entity](entity_cls: type[E], record: Any, *, image: str = "NewImage") -> E | None:
    """Decode one DynamoDB Streams record; ``None`` when the image is absent (e.g. REMOVE)."""
    if not isinstance(record, dict):
        raise ValidationError("record must be a map")
    dynamodb = record.get("dynamodb")
    if not isinstance(dynamodb, dict):
        raise ValidationError("record.dynamodb must be a map")
    stream_image = dynamodb.get(image)
    if stream_image is None:
        return None
    return unmarshal_stream_image(entity_cls, stream_image)
