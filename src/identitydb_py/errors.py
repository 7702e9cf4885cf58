from __future__ import annotations


class IdentitydbPyError(Exception):
    pass


class NotFoundError(IdentitydbPyError):
    pass


class UnauthorizedError(IdentitydbPyError):
    pass


class ValidationError(IdentitydbPyError):
    pass


class StoreError(IdentitydbPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class BatchIncompleteError(StoreError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(
            code="UnprocessedItems",
            message=f"{operation}: store left {unprocessed_count} item(s) unprocessed",
        )
        self.operation = operation
        self.unprocessed_count = unprocessed_count
