from __future__ import annotations

from collections.abc import Callable

from .mocks import ANY, FakeDynamoDBClient, MemoryDynamoDBClient, MemoryTableSchema


def no_sleep(_: float) -> None:
    return None


def stepping_clock(start: int, step: int = 1) -> Callable[[], int]:
    """Millisecond clock that advances by ``step`` on every reading."""
    current = start - step

    def now() -> int:
        nonlocal current
        current += step
        return current

    return now


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "MemoryDynamoDBClient",
    "MemoryTableSchema",
    "no_sleep",
    "stepping_clock",
]
