"""Identifier records: many external identities resolving to one account.

Each record is keyed by the identifier value itself (an email address, a
Facebook/Google/Apple subject id) and points at the account that owns it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Self, get_args

from . import clock
from .account import Account
from .entity import Entity
from .errors import NotFoundError, UnauthorizedError, ValidationError
from .model import entity_field

logger = logging.getLogger(__name__)

type IdType = Literal["email", "facebookId", "googleId", "appleId"]

ID_TYPES: frozenset[str] = frozenset(get_args(IdType.__value__))


@dataclass(frozen=True)
class Identifier:
    id: str | int
    id_type: IdType


@dataclass
class IdentifierRecord(Entity):
    user_id: str | None = entity_field(name="userId", default=None)
    id_type: IdType | None = entity_field(name="idType", default=None)
    last_used_at: int | None = entity_field(name="lastUsedAt", default=None)

    table_env: ClassVar[str | None] = "USER_IDENTIFIER_TABLE_NAME"
    account_model: ClassVar[type[Entity]] = Account

    @classmethod
    def get_user(cls, ids: str | int | Sequence[str | int]) -> Any:
        """Resolve the account behind the first identifier that is on file.

        Candidates are tried in order. A missing identifier or account moves on
        to the next candidate; on the last candidate the
        :class:`~identitydb_py.errors.NotFoundError` propagates. Any other error
        propagates immediately.
        """
        candidates = [str(c) for c in ids] if isinstance(ids, (list, tuple)) else [str(ids)]
        if not candidates:
            raise NotFoundError("no identifiers to resolve")

        for i, candidate in enumerate(candidates[:-1]):
            try:
                return cls._resolve(candidate)
            except NotFoundError:
                logger.debug("identifier candidate %d of %d not found", i + 1, len(candidates))
        return cls._resolve(candidates[-1])

    @classmethod
    def _resolve(cls, id: str) -> Any:
        ident = cls.get({"id": id})
        return cls.account_model.get({"id": ident.user_id})

    @classmethod
    def get_user_and_push_identifiers(cls, identifiers: Sequence[Identifier]) -> Any:
        """Resolve an account from any of ``identifiers`` and link all of them to it.

        Raises :class:`~identitydb_py.errors.UnauthorizedError` when none of the
        identifiers is known.
        """
        account = None
        for ident in identifiers:
            try:
                account = cls.get_user(ident.id)
                break
            except NotFoundError:
                continue

        if account is None:
            raise UnauthorizedError("no identifier resolved to an account")

        cls.push_identifiers(account.id, identifiers)
        return account

    @classmethod
    def push_identifiers(
        cls,
        user_id: str,
        identifiers: Sequence[Identifier],
        *,
        max_workers: int | None = None,
    ) -> None:
        """Upsert every identifier against ``user_id`` concurrently.

        There is no atomicity across the set; each upsert is independent and
        safe to repeat.
        """
        if not identifiers:
            return

        workers = max_workers or len(identifiers)
        with ThreadPoolExecutor(max_workers=workers) as ex:
            futures = [ex.submit(cls.upsert, user_id, ident.id_type, ident.id) for ident in identifiers]
        for fut in futures:
            fut.result()

    @classmethod
    def upsert(cls, user_id: str, id_type: IdType, id: str | int) -> Self:
        """Create the identifier record, or refresh ``last_used_at`` on an existing one.

        An existing record keeps its ``user_id`` and ``id_type``.
        """
        if id_type not in ID_TYPES:
            raise ValidationError(f"unsupported identifier type: {id_type!r}")

        key = str(id)
        try:
            record = cls.get({"id": key})
        except NotFoundError:
            record = cls.from_partial({"id": key, "id_type": id_type, "user_id": user_id})

        record.last_used_at = clock.now_ms()
        return record.save()
