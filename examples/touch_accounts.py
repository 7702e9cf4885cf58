"""Set ``updatedAt`` to now on every account that has a ``clients`` attribute.

Reads the table name from USERS_TABLE_NAME and the endpoint from
DYNAMODB_ENDPOINT (unset means the real service for the configured region).
Pass a cursor printed by an interrupted run to resume it.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from identitydb_py import ItemDecision, ScanIterator, stream_mutations
from identitydb_py.clock import now_ms
from identitydb_py.config import resolve_table_name
from identitydb_py.runtime import get_dynamodb_client

logger = logging.getLogger(__name__)


def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    table_name = resolve_table_name("USERS_TABLE_NAME")
    client = get_dynamodb_client()
    touched_at = now_ms()

    def touch(record: dict[str, Any]) -> ItemDecision:
        logger.info("updating %s", record["id"])
        return ItemDecision.write({**record, "updatedAt": touched_at})

    scan = ScanIterator(
        client,
        table_name,
        filter_expression="attribute_exists(clients)",
        cursor=argv[1] if len(argv) > 1 else None,
    )
    try:
        stream_mutations(client, "put", touch, scan, table_name)
    except Exception:
        logger.error("stopped; resume cursor: %s", scan.resume_cursor)
        raise
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
