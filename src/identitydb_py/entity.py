"""Active-record base for persisted entities.

Subclasses are ``@dataclass`` declarations whose persisted fields are described
with :func:`~identitydb_py.model.entity_field`. Every field needs a default so
that an empty instance can be built::

    @dataclass
    class Organization(Entity):
        name: str = entity_field(default="")

        table_env: ClassVar[str | None] = "ORGANIZATIONS_TABLE_NAME"

The table comes from ``Organization.bind(table_name=...)`` or from the
environment variable named by ``table_env``; the client from ``bind(client=...)``
(inherited by subclasses) or :func:`~identitydb_py.runtime.get_dynamodb_client`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Self

from . import clock
from .config import resolve_table_name
from .errors import ValidationError
from .model import IndexSpec, ModelDefinition, entity_field
from .runtime import get_dynamodb_client
from .table import Table, from_record

logger = logging.getLogger(__name__)

_models: dict[type[Any], ModelDefinition[Any]] = {}


@dataclass
class Entity:
    id: str = entity_field(roles=["pk"], default="")
    created_at: int | None = entity_field(name="createdAt", default=None)
    updated_at: int | None = entity_field(name="updatedAt", default=None)
    deleted_at: int | None = entity_field(name="deletedAt", default=None)
    deleted_reason: str | None = entity_field(name="deletedReason", default=None)
    extra: dict[str, Any] = entity_field(extras=True, default_factory=dict)
    _purged: bool = field(
        default=False, init=False, repr=False, compare=False, metadata={"identitydb": {"ignore": True}}
    )

    table_env: ClassVar[str | None] = None
    indexes: ClassVar[tuple[IndexSpec, ...]] = ()
    _bound_client: ClassVar[Any] = None

    @classmethod
    def bind(cls, client: Any | None = None, *, table_name: str | None = None) -> None:
        if client is not None:
            cls._bound_client = client
        if table_name is not None:
            cls._bound_table_name = table_name  # type: ignore[attr-defined]

    @classmethod
    def unbind(cls) -> None:
        for name in ("_bound_client", "_bound_table_name"):
            if name in cls.__dict__:
                delattr(cls, name)

    @classmethod
    def model(cls) -> ModelDefinition[Self]:
        model = _models.get(cls)
        if model is None:
            model = ModelDefinition.from_dataclass(cls, indexes=cls.indexes)
            _models[cls] = model
        return model

    @classmethod
    def table(cls) -> Table[Self]:
        table_name = cls.__dict__.get("_bound_table_name") or resolve_table_name(cls.table_env)
        client = getattr(cls, "_bound_client", None) or get_dynamodb_client()
        return Table(cls.model(), client=client, table_name=table_name)

    @classmethod
    def from_partial(cls, data: Mapping[str, Any]) -> Self:
        """Create an instance from a deep copy of ``data``.

        Keys may be python field names or store attribute names; anything else
        goes to ``extra``.
        """
        return from_record(cls.model(), data)

    @classmethod
    def get(
        cls,
        key: Mapping[str, Any],
        index_name: str | None = None,
        consistent_read: bool = False,
    ) -> Self:
        """Load an entity by primary key, or through a secondary index.

        A direct lookup raises :class:`~identitydb_py.errors.NotFoundError` when
        the key is absent. An index lookup walks every matching page and keeps
        only the last match; with no match it returns an empty instance.
        """
        table = cls.table()
        if index_name is None:
            return table.get(key, consistent_read=consistent_read)

        last: Self | None = None
        for match in table.query_index(index_name, key, consistent_read=consistent_read):
            last = match
        if last is None:
            logger.debug("%s.get via %s matched nothing", cls.__name__, index_name)
            return cls.from_partial({})
        return last

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def save(self) -> Self:
        self._ensure_live()
        table = type(self).table()

        now = clock.now_ms()
        if self.updated_at is not None and now <= self.updated_at:
            now = self.updated_at + 1
        if self.created_at is None:
            self.created_at = now
        self.updated_at = now

        saved = table.from_record(table.put(self))
        for dc_field in fields(self):
            if dc_field.name != "_purged":
                setattr(self, dc_field.name, getattr(saved, dc_field.name))
        return self

    def soft_delete(self, reason: str | None = None) -> Self:
        self._ensure_live()
        self.deleted_reason = reason
        self.deleted_at = clock.now_ms()
        return self.save()

    def restore(self) -> Self:
        self._ensure_live()
        self.deleted_at = None
        self.deleted_reason = None
        return self.save()

    def hard_delete(self) -> None:
        self._ensure_live()
        table = type(self).table()
        table.delete(table.key_of(self))
        self._purged = True

    def _ensure_live(self) -> None:
        if self._purged:
            raise ValidationError(f"{type(self).__name__} {self.id!r} has been purged")
