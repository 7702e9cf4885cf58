from __future__ import annotations

import json
import logging
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .errors import (
    BatchIncompleteError,
    IdentitydbPyError,
    NotFoundError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from .model import IndexDefinition, IndexSpec, ModelDefinition, ModelDefinitionError, entity_field, gsi, lsi
from .normalize import box_numbers, unwrap_numbers
from .query import Page

if TYPE_CHECKING:
    from .account import Account
    from .batch import do_batch_op
    from .config import StoreSettings, resolve_table_name
    from .driver import ItemDecision, ProgressReport, stream_mutations
    from .entity import Entity
    from .identifiers import Identifier, IdentifierRecord
    from .query import QueryIterator, build_query_request, decode_cursor, encode_cursor, run_query
    from .runtime import StoreCallMetric, get_dynamodb_client, instrument_boto3_client
    from .scan import ScanIterator, build_scan_request, run_scan
    from .streams import unmarshal_stream_image, unmarshal_stream_record
    from .table import Table

logging.getLogger(__name__).addHandler(logging.NullHandler())


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)

_LAZY_EXPORTS: dict[str, str] = {
    "Account": "account",
    "do_batch_op": "batch",
    "StoreSettings": "config",
    "resolve_table_name": "config",
    "ItemDecision": "driver",
    "ProgressReport": "driver",
    "stream_mutations": "driver",
    "Entity": "entity",
    "Identifier": "identifiers",
    "IdentifierRecord": "identifiers",
    "QueryIterator": "query",
    "build_query_request": "query",
    "decode_cursor": "query",
    "encode_cursor": "query",
    "run_query": "query",
    "StoreCallMetric": "runtime",
    "get_dynamodb_client": "runtime",
    "instrument_boto3_client": "runtime",
    "ScanIterator": "scan",
    "build_scan_request": "scan",
    "run_scan": "scan",
    "unmarshal_stream_image": "streams",
    "unmarshal_stream_record": "streams",
    "Table": "table",
}


def __getattr__(name: str) -> Any:
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)

    from importlib import import_module

    return getattr(import_module(f".{module_name}", __name__), name)


__all__ = [
    "Account",
    "BatchIncompleteError",
    "Entity",
    "Identifier",
    "IdentifierRecord",
    "IdentitydbPyError",
    "IndexDefinition",
    "IndexSpec",
    "ItemDecision",
    "ModelDefinition",
    "ModelDefinitionError",
    "NotFoundError",
    "Page",
    "ProgressReport",
    "QueryIterator",
    "ScanIterator",
    "StoreCallMetric",
    "StoreError",
    "StoreSettings",
    "Table",
    "UnauthorizedError",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "box_numbers",
    "build_query_request",
    "build_scan_request",
    "decode_cursor",
    "do_batch_op",
    "encode_cursor",
    "entity_field",
    "get_dynamodb_client",
    "gsi",
    "instrument_boto3_client",
    "lsi",
    "resolve_table_name",
    "run_query",
    "run_scan",
    "stream_mutations",
    "unmarshal_stream_image",
    "unmarshal_stream_record",
    "unwrap_numbers",
]
