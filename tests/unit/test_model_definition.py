from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from identitydb_py import ValidationError
from identitydb_py.model import ModelDefinition, ModelDefinitionError, entity_field, gsi, lsi
from identitydb_py.table import from_record, to_record


@dataclass
class Device:
    owner: str = entity_field(name="ownerId", roles=["pk"])
    serial: str = entity_field(roles=["sk"])
    last_seen_at: int | None = entity_field(name="lastSeenAt", default=None)
    settings: dict[str, int] = entity_field(json=True, default_factory=dict)
    extra: dict[str, Any] = entity_field(extras=True, default_factory=dict)
    scratch: str = entity_field(ignore=True, default="")


def test_model_definition_extracts_keys_attributes_and_indexes() -> None:
    model = ModelDefinition.from_dataclass(
        Device,
        table_name="devices",
        indexes=[gsi("bySerial", partition="serial"), lsi("bySeen", sort="last_seen_at")],
    )

    assert model.pk.attribute_name == "ownerId"
    assert model.sk is not None and model.sk.attribute_name == "serial"
    assert model.attributes["settings"].json is True
    assert model.extras_field == "extra"
    assert "scratch" not in model.attributes
    assert "extra" not in model.attributes

    assert model.index("bySerial") is not None and model.index("bySerial").partition == "serial"
    assert model.indexes[1].type == "LSI" and model.indexes[1].partition == "ownerId"
    assert model.indexes[1].sort == "lastSeenAt"
    assert model.index("missing") is None

    assert model.attribute_for("last_seen_at") is model.attribute_for("lastSeenAt")


def test_model_definition_rejects_missing_pk() -> None:
    @dataclass
    class Bad:
        sk: str = entity_field(roles=["sk"])

    with pytest.raises(ModelDefinitionError, match="exactly one pk"):
        ModelDefinition.from_dataclass(Bad)


def test_model_definition_rejects_duplicate_attribute_names() -> None:
    @dataclass
    class Bad:
        pk: str = entity_field(roles=["pk"])
        a: str = entity_field(name="same", default="")
        b: str = entity_field(name="same", default="")

    with pytest.raises(ModelDefinitionError, match="duplicate attribute name"):
        ModelDefinition.from_dataclass(Bad)


def test_model_definition_rejects_invalid_attribute_names() -> None:
    @dataclass
    class Bad:
        pk: str = entity_field(name="bad name", roles=["pk"])

    with pytest.raises(ModelDefinitionError):
        ModelDefinition.from_dataclass(Bad)


def test_model_definition_rejects_two_extras_maps() -> None:
    @dataclass
    class Bad:
        pk: str = entity_field(roles=["pk"])
        one: dict[str, Any] = entity_field(extras=True, default_factory=dict)
        two: dict[str, Any] = entity_field(extras=True, default_factory=dict)

    with pytest.raises(ModelDefinitionError, match="extras"):
        ModelDefinition.from_dataclass(Bad)


def test_model_definition_rejects_unknown_index_fields() -> None:
    with pytest.raises(ModelDefinitionError, match="unknown partition field"):
        ModelDefinition.from_dataclass(Device, indexes=[gsi("byNope", partition="nope")])
    with pytest.raises(ModelDefinitionError, match="duplicate index name"):
        ModelDefinition.from_dataclass(
            Device, indexes=[gsi("bySerial", partition="serial"), gsi("bySerial", partition="serial")]
        )


def test_entity_field_rejects_default_and_factory() -> None:
    with pytest.raises(ValueError):
        entity_field(default=1, default_factory=int)


def test_to_record_uses_attribute_names_and_merges_extras() -> None:
    model = ModelDefinition.from_dataclass(Device)
    device = Device(
        owner="u-1",
        serial="s-1",
        settings={"volume": 3},
        extra={"color": "red", "lastSeenAt": 1, "nothing": None},
        scratch="not stored",
    )

    record = to_record(model, device)

    assert record == {
        "ownerId": "u-1",
        "serial": "s-1",
        "settings": '{"volume":3}',
        "color": "red",
    }


def test_from_record_routes_unknown_keys_to_extras_and_copies() -> None:
    model = ModelDefinition.from_dataclass(Device)
    nested = {"shade": "dark"}
    record = {"ownerId": "u-1", "serial": "s-1", "settings": '{"volume":3}', "color": nested}

    device = from_record(model, record)

    assert device.owner == "u-1"
    assert device.settings == {"volume": 3}
    assert device.extra == {"color": {"shade": "dark"}}
    assert device.extra["color"] is not nested


def test_from_record_rejects_missing_required_fields() -> None:
    model = ModelDefinition.from_dataclass(Device)
    with pytest.raises(ValidationError):
        from_record(model, {"ownerId": "u-1"})


@dataclass
class Plain:
    pk: str = entity_field(roles=["pk"])
    tags: list[str] = field(default_factory=list)


def test_models_without_extras_drop_unknown_keys() -> None:
    model = ModelDefinition.from_dataclass(Plain)
    assert from_record(model, {"pk": "a", "tags": ["x"], "other": 1}) == Plain(pk="a", tags=["x"])
