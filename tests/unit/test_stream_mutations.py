from __future__ import annotations

import logging
from typing import Any

import pytest

from identitydb_py import ItemDecision, ProgressReport, ValidationError, stream_mutations
from identitydb_py.scan import ScanIterator
from identitydb_py.testkit import MemoryDynamoDBClient, MemoryTableSchema, no_sleep


def _client() -> MemoryDynamoDBClient:
    return MemoryDynamoDBClient({"users": MemoryTableSchema(hash_key="id")})


def _touch(record: dict[str, Any]) -> ItemDecision:
    return ItemDecision.write({**record, "touched": True})


def test_thirty_changes_flush_as_twenty_five_and_five(caplog: pytest.LogCaptureFixture) -> None:
    client = _client()
    source = [{"id": f"u-{i}"} for i in range(30)]
    reports: list[ProgressReport] = []

    with caplog.at_level(logging.INFO, logger="identitydb_py.driver"):
        stream_mutations(client, "put", _touch, source, "users", on_progress=reports.append, sleep=no_sleep)

    batches = [req["RequestItems"]["users"] for name, req in client.calls if name == "batch_write_item"]
    assert [len(b) for b in batches] == [25, 5]
    assert reports == [ProgressReport(read=25, written=25), ProgressReport(read=30, written=30)]
    assert "30 records read; 30 records written" in caplog.text
    assert all(r["touched"] for r in client.records("users"))


def test_unchanged_records_are_not_written() -> None:
    client = _client()
    source = [{"id": f"u-{i}", "n": i} for i in range(10)]

    def evens(record: dict[str, Any]) -> ItemDecision:
        return _touch(record) if record["n"] % 2 == 0 else ItemDecision.skip()

    reports: list[ProgressReport] = []
    stream_mutations(client, "put", evens, source, "users", on_progress=reports.append, sleep=no_sleep)

    assert sorted(r["id"] for r in client.records("users")) == ["u-0", "u-2", "u-4", "u-6", "u-8"]
    assert reports == [ProgressReport(read=10, written=5)]


def test_nothing_changed_means_no_batches() -> None:
    client = _client()
    stream_mutations(client, "put", lambda r: ItemDecision.skip(), [{"id": "a"}], "users", sleep=no_sleep)
    assert client.calls == []


def test_quiet_suppresses_progress(caplog: pytest.LogCaptureFixture) -> None:
    client = _client()
    reports: list[ProgressReport] = []

    with caplog.at_level(logging.INFO, logger="identitydb_py.driver"):
        stream_mutations(
            client, "put", _touch, [{"id": "a"}], "users", quiet=True, on_progress=reports.append, sleep=no_sleep
        )

    assert reports == []
    assert "records written" not in caplog.text
    assert client.count("batch_write_item") == 1


def test_changed_decision_needs_payload() -> None:
    with pytest.raises(ValidationError):
        stream_mutations(_client(), "put", lambda r: ItemDecision(changed=True), [{"id": "a"}], "users")


def test_delete_driven_by_scan() -> None:
    client = _client()
    client.seed("users", *({"id": f"u-{i}", "stale": i < 3} for i in range(6)))

    def stale(record: dict[str, Any]) -> ItemDecision:
        return ItemDecision.write(record) if record["stale"] else ItemDecision.skip()

    stream_mutations(client, "delete", stale, ScanIterator(client, "users", limit=2), "users", "id", sleep=no_sleep)

    assert [r["id"] for r in client.records("users")] == ["u-3", "u-4", "u-5"]


def test_transform_failure_stops_after_flushed_batches() -> None:
    client = _client()
    source = [{"id": f"u-{i}"} for i in range(40)]

    def explode_late(record: dict[str, Any]) -> ItemDecision:
        if record["id"] == "u-30":
            raise RuntimeError("boom")
        return _touch(record)

    with pytest.raises(RuntimeError):
        stream_mutations(client, "put", explode_late, source, "users", sleep=no_sleep)

    assert len(client.records("users")) == 25


def test_deleting_while_scanning_visits_each_record_once() -> None:
    client = _client()
    client.seed("users", *({"id": f"u-{i:02d}", "stale": i % 2 == 0} for i in range(60)))
    seen: list[str] = []

    def stale(record: dict[str, Any]) -> ItemDecision:
        seen.append(record["id"])
        return ItemDecision.write(record) if record["stale"] else ItemDecision.skip()

    stream_mutations(client, "delete", stale, ScanIterator(client, "users", limit=7), "users", "id", sleep=no_sleep)

    assert seen == [f"u-{i:02d}" for i in range(60)]
    assert [r["id"] for r in client.records("users")] == [f"u-{i:02d}" for i in range(1, 60, 2)]
