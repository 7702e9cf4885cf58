from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Literal, get_args

from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .errors import BatchIncompleteError, ValidationError
from .marshal import serialize_key, serialize_record

logger = logging.getLogger(__name__)

type BatchOperation = Literal["read", "put", "delete"]

BATCH_WRITE_LIMIT = 25
BATCH_PACING_SECONDS = 0.01

_OPERATIONS = frozenset(get_args(BatchOperation.__value__))


def do_batch_op(
    client: Any,
    operation: BatchOperation,
    items: Sequence[Mapping[str, Any]],
    table_name: str,
    key_name: str | None = None,
    *,
    sleep: Callable[[float], None] | None = time.sleep,
    pacing_seconds: float = BATCH_PACING_SECONDS,
) -> int:
    """Write ``items`` in one ``BatchWriteItem`` call and return how many were sent.

    ``read`` sends nothing. ``delete`` keys each request on ``key_name``. The
    caller keeps each call within ``BATCH_WRITE_LIMIT``. Unprocessed items are
    reported as :class:`BatchIncompleteError`, never retried here.
    """
    if operation not in _OPERATIONS:
        raise ValidationError(f"unsupported batch operation: {operation!r}")
    if len(items) > BATCH_WRITE_LIMIT:
        raise ValidationError(f"a batch supports at most {BATCH_WRITE_LIMIT} items (got {len(items)})")

    if operation != "read" and items:
        if operation == "put":
            requests = [{"PutRequest": {"Item": serialize_record(item)}} for item in items]
        else:
            if not key_name:
                raise ValidationError("key_name is required for delete")
            requests = [{"DeleteRequest": {"Key": serialize_key(item, key_name)}} for item in items]

        try:
            resp = client.batch_write_item(RequestItems={table_name: requests})
        except ClientError as err:
            raise map_client_error(err) from err

        unprocessed = (resp.get("UnprocessedItems") or {}).get(table_name) or []
        if unprocessed:
            raise BatchIncompleteError(operation=operation, unprocessed_count=len(unprocessed))

        logger.debug("batch %s of %d item(s) on %s", operation, len(items), table_name)

    if sleep is not None and pacing_seconds > 0:
        sleep(pacing_seconds)

    return len(items)
