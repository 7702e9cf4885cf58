from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from typing import Any, cast

from .errors import ValidationError
from .validation import validate_attribute_name


class ModelDefinitionError(ValueError):
    pass


@dataclass(frozen=True)
class AttributeDefinition:
    python_name: str
    attribute_name: str
    roles: tuple[str, ...]
    json: bool


@dataclass(frozen=True)
class IndexSpec:
    name: str
    type: str
    partition: str
    sort: str | None = None


@dataclass(frozen=True)
class IndexDefinition:
    name: str
    type: str
    partition: str
    sort: str | None = None


def entity_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    json: bool = False,
    extras: bool = False,
    ignore: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    """Declare a persisted dataclass field.

    ``name`` is the attribute name in the store (defaults to the field name),
    ``roles`` may contain ``"pk"``/``"sk"``, ``json`` stores the value as a JSON
    string, and ``extras`` marks the open map that receives undeclared
    attributes.
    """
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("entity_field: cannot set both default and default_factory")

    opts: dict[str, Any] = {"json": json, "extras": extras, "ignore": ignore}
    if name is not None:
        opts["name"] = name
    if roles is not None:
        opts["roles"] = list(roles)

    return field(default=default, default_factory=default_factory, metadata={"identitydb": opts})


def gsi(name: str, *, partition: str, sort: str | None = None) -> IndexSpec:
    return IndexSpec(name=name, type="GSI", partition=partition, sort=sort)


def lsi(name: str, *, sort: str) -> IndexSpec:
    return IndexSpec(name=name, type="LSI", partition="__TABLE_PK__", sort=sort)


@dataclass(frozen=True)
class ModelDefinition[T]:
    model_type: type[T]
    table_name: str | None
    pk: AttributeDefinition
    sk: AttributeDefinition | None
    attributes: Mapping[str, AttributeDefinition]
    indexes: tuple[IndexDefinition, ...]
    extras_field: str | None = None

    @classmethod
    def from_dataclass(
        cls,
        model_type: type[T],
        *,
        table_name: str | None = None,
        indexes: Sequence[IndexSpec] = (),
    ) -> ModelDefinition[T]:
        if not is_dataclass(model_type):
            raise ModelDefinitionError("model_type must be a dataclass")

        attributes: dict[str, AttributeDefinition] = {}
        pk_fields: list[str] = []
        sk_fields: list[str] = []
        extras_fields: list[str] = []
        seen_attribute_names: set[str] = set()

        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get("identitydb", {}))
            if opts.get("ignore", False):
                continue
            if opts.get("extras", False):
                extras_fields.append(dc_field.name)
                continue

            roles = tuple(cast(list[str], opts.get("roles", [])))
            if "pk" in roles:
                pk_fields.append(dc_field.name)
            if "sk" in roles:
                sk_fields.append(dc_field.name)

            attribute_name = cast(str, opts.get("name", dc_field.name))
            try:
                validate_attribute_name(attribute_name)
            except ValidationError as err:
                raise ModelDefinitionError(f"{dc_field.name}: {err}") from err
            if attribute_name in seen_attribute_names:
                raise ModelDefinitionError(f"duplicate attribute name: {attribute_name}")
            seen_attribute_names.add(attribute_name)

            attributes[dc_field.name] = AttributeDefinition(
                python_name=dc_field.name,
                attribute_name=attribute_name,
                roles=roles,
                json=bool(opts.get("json", False)),
            )

        if len(pk_fields) != 1:
            raise ModelDefinitionError(f"model must define exactly one pk field (found {len(pk_fields)})")
        if len(sk_fields) > 1:
            raise ModelDefinitionError(f"model must define at most one sk field (found {len(sk_fields)})")
        if len(extras_fields) > 1:
            raise ModelDefinitionError(f"model must define at most one extras field (found {len(extras_fields)})")

        pk = attributes[pk_fields[0]]
        sk = attributes[sk_fields[0]] if sk_fields else None

        resolved_indexes: list[IndexDefinition] = []
        seen_index_names: set[str] = set()

        for spec in indexes:
            if spec.name in seen_index_names:
                raise ModelDefinitionError(f"duplicate index name: {spec.name}")
            seen_index_names.add(spec.name)

            if spec.type not in {"GSI", "LSI"}:
                raise ModelDefinitionError(f"unsupported index type: {spec.type}")

            partition_field = (
                pk.python_name if spec.type == "LSI" and spec.partition == "__TABLE_PK__" else spec.partition
            )
            if partition_field not in attributes:
                raise ModelDefinitionError(f"index {spec.name}: unknown partition field: {partition_field}")
            if spec.type == "LSI" and partition_field != pk.python_name:
                raise ModelDefinitionError(
                    f"index {spec.name}: LSI partition must be the table pk ({pk.python_name})"
                )

            sort_attr: str | None = None
            if spec.sort is not None:
                if spec.sort not in attributes:
                    raise ModelDefinitionError(f"index {spec.name}: unknown sort field: {spec.sort}")
                sort_attr = attributes[spec.sort].attribute_name

            resolved_indexes.append(
                IndexDefinition(
                    name=spec.name,
                    type=spec.type,
                    partition=attributes[partition_field].attribute_name,
                    sort=sort_attr,
                )
            )

        return cls(
            model_type=model_type,
            table_name=table_name,
            pk=pk,
            sk=sk,
            attributes=attributes,
            indexes=tuple(resolved_indexes),
            extras_field=extras_fields[0] if extras_fields else None,
        )

    def attribute_for(self, name: str) -> AttributeDefinition | None:
        """Look up an attribute by python field name or by store attribute name."""
        attr = self.attributes.get(name)
        if attr is not None:
            return attr
        for candidate in self.attributes.values():
            if candidate.attribute_name == name:
                return candidate
        return None

    def index(self, name: str) -> IndexDefinition | None:
        for idx in self.indexes:
            if idx.name == name:
                return idx
        return None
