from __future__ import annotations

import re
from collections.abc import Sequence

from .errors import ValidationError

MaxAttributeNameLength = 255
MaxExpressionLength = 4096

_ATTRIBUTE_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_TABLE_OR_INDEX_NAME = re.compile(r"^[a-zA-Z0-9_.-]+$")

_DANGEROUS_PATTERNS = (
    "'",
    '"',
    ";",
    "--",
    "/*",
    "*/",
)


def validate_attribute_name(name: str) -> None:
    if not name:
        raise ValidationError("attribute name cannot be empty")
    if len(name) > MaxAttributeNameLength:
        raise ValidationError("attribute name exceeds maximum length")
    if _ATTRIBUTE_NAME.match(name) is None:
        raise ValidationError(
            "attribute name must start with a letter or underscore and contain only "
            f"alphanumeric characters and underscores: {name!r}"
        )


def validate_table_name(name: str) -> None:
    if len(name) < 3 or len(name) > 255:
        raise ValidationError("table name length invalid")
    if _TABLE_OR_INDEX_NAME.match(name) is None:
        raise ValidationError(f"table name contains invalid characters: {name!r}")


def validate_index_name(name: str) -> None:
    if len(name) < 3 or len(name) > 255:
        raise ValidationError("index name length invalid")
    if _TABLE_OR_INDEX_NAME.match(name) is None:
        raise ValidationError(f"index name contains invalid characters: {name!r}")


def validate_expression(expression: str) -> None:
    if len(expression) > MaxExpressionLength:
        raise ValidationError("expression exceeds maximum length")
    if _contains_any_substring(expression.lower(), _DANGEROUS_PATTERNS):
        raise ValidationError("expression contains dangerous pattern")


def _contains_any_substring(haystack: str, needles: Sequence[str]) -> bool:
    return any(n in haystack for n in needles)
