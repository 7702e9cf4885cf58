from __future__ import annotations

from botocore.exceptions import ClientError

from .errors import StoreError


def map_client_error(err: ClientError) -> StoreError:
    error = err.response.get("Error", {})
    code = str(error.get("Code", ""))
    message = str(error.get("Message", ""))

    # Table-level ResourceNotFoundException is a store failure, not a missing record.
    return StoreError(code=code or "UnknownError", message=message or str(err))
