from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .batch import BATCH_PACING_SECONDS, BATCH_WRITE_LIMIT, BatchOperation, do_batch_op
from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemDecision:
    changed: bool
    payload: Mapping[str, Any] | None = None

    @staticmethod
    def skip() -> ItemDecision:
        return ItemDecision(changed=False)

    @staticmethod
    def write(payload: Mapping[str, Any]) -> ItemDecision:
        return ItemDecision(changed=True, payload=payload)


@dataclass(frozen=True)
class ProgressReport:
    read: int
    written: int


type ItemTransform = Callable[[Any], ItemDecision]


def stream_mutations(
    client: Any,
    operation: BatchOperation,
    transform: ItemTransform,
    source: Iterable[Any],
    table_name: str,
    key_name: str | None = None,
    quiet: bool = False,
    *,
    on_progress: Callable[[ProgressReport], None] | None = None,
    sleep: Callable[[float], None] | None = time.sleep,
    pacing_seconds: float = BATCH_PACING_SECONDS,
) -> None:
    """Run ``transform`` over every record of ``source`` and batch-write the changes.

    Changed payloads are flushed in batches of ``BATCH_WRITE_LIMIT``, with a
    final short batch for the remainder. Any failure stops consumption of the
    source; batches already flushed stay written.
    """
    buffer: list[Mapping[str, Any]] = []
    read_count = 0
    write_count = 0

    def flush() -> None:
        nonlocal write_count
        write_count += do_batch_op(
            client,
            operation,
            buffer,
            table_name,
            key_name,
            sleep=sleep,
            pacing_seconds=pacing_seconds,
        )
        buffer.clear()
        if not quiet:
            logger.info("%d records read; %d records written", read_count, write_count)
            if on_progress is not None:
                on_progress(ProgressReport(read=read_count, written=write_count))

    for record in source:
        read_count += 1
        decision = transform(record)
        if not decision.changed:
            continue
        if decision.payload is None:
            raise ValidationError("changed decision requires a payload")

        buffer.append(decision.payload)
        if len(buffer) >= BATCH_WRITE_LIMIT:
            flush()

    if buffer:
        flush()
