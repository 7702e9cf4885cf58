from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from .entity import Entity
from .model import IndexSpec, entity_field, gsi


@dataclass
class Account(Entity):
    """Canonical account that identifier records resolve to.

    Only the attributes the resolution layer relies on are declared; the rest
    of the account document round-trips through ``extra``.
    """

    email: str | None = entity_field(default=None)

    table_env: ClassVar[str | None] = "USERS_TABLE_NAME"
    indexes: ClassVar[tuple[IndexSpec, ...]] = (gsi("email-index", partition="email"),)
