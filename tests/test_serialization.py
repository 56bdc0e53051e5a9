"""
Tests for serialization and deserialization of schema model objects.

These tests ensure lossless JSON/YAML round-trip using the explicit
serialization functions in `flowschema.serialization`, and pin down the
camelCase layout of the schema JSON.
"""

import json

import pytest

from flowschema.examples import build_example_items_model
from flowschema.model import (
    GWT,
    ApiOrigin,
    DatabaseDestination,
    DatabaseOrigin,
    DataSource,
    ErrorSpec,
    ErrorType,
    Example,
    Field,
    MessageKind,
    MessageTarget,
    ReadModelOrigin,
    TopicDestination,
)
from flowschema.serialization import (
    destination_from_dict,
    destination_to_dict,
    field_to_dict,
    gwt_from_dict,
    gwt_to_dict,
    model_from_json,
    model_from_yaml,
    model_to_dict,
    model_to_json,
    model_to_yaml,
    origin_from_dict,
    origin_to_dict,
    pipeline_entry_from_dict,
    pipeline_entry_to_dict,
)


def test_json_roundtrip():
    model = build_example_items_model()
    before = model_to_dict(model)
    json_str = model_to_json(model)
    restored = model_from_json(json_str)
    after = model_to_dict(restored)
    assert before == after
    assert restored == model


def test_yaml_roundtrip():
    model = build_example_items_model()
    before = model_to_dict(model)
    yaml_str = model_to_yaml(model)
    restored = model_from_yaml(yaml_str)
    after = model_to_dict(restored)
    assert before == after
    assert restored == model


def test_json_is_stable():
    model = build_example_items_model()
    assert model_to_json(model) == model_to_json(model_from_json(model_to_json(model)))


def test_top_level_layout():
    d = json.loads(model_to_json(build_example_items_model()))
    assert sorted(d) == ["flows", "integrations", "messages"]
    assert d["integrations"][0] == {
        "name": "Supplier",
        "source": "@examples/supplier",
        "description": "Purchase orders",
    }
    assert d["integrations"][1] == {"name": "Inventory", "source": "@examples/inventory"}


def test_message_layout():
    d = model_to_dict(build_example_items_model())
    create_item = d["messages"][0]
    assert create_item["type"] == "command"
    assert create_item["metadata"] == {"version": 1}
    assert create_item["fields"][2] == {
        "name": "quantity",
        "type": "number",
        "required": False,
        "defaultValue": 0,
    }
    assert d["messages"][1]["metadata"] == {"version": 2}
    assert "description" not in d["messages"][1]


def test_slice_layout():
    d = model_to_dict(build_example_items_model())
    command_slice = d["flows"][0]["slices"][0]
    assert command_slice["type"] == "command"
    assert command_slice["id"] == "create-item"
    assert command_slice["client"] == {
        "description": "Item form",
        "specs": ["require a label", "show the new item in the list"],
    }
    assert command_slice["server"]["description"] == "Validates and stores new items"
    assert "request" not in command_slice

    react_slice = d["flows"][2]["slices"][0]
    assert "client" not in react_slice
    sink = react_slice["server"]["data"][0]
    assert sink["target"] == {"type": "Command", "name": "ReorderItem"}
    assert sink["destination"] == {
        "type": "integration",
        "systems": ["Supplier"],
        "message": {"name": "PlaceOrder", "type": "command"},
    }
    assert sink["_withState"]["origin"] == {"type": "integration", "systems": ["Inventory"]}
    assert sink["_additionalInstructions"] == "Order at most 100 units"


def test_none_is_omitted():
    assert field_to_dict(Field("id", "string")) == {"name": "id", "type": "string", "required": True}


class TestGwtLayout:
    def test_command_block(self):
        gwt = GWT(
            when=Example("CreateItem", {"itemId": "x"}),
            then=(ErrorSpec(ErrorType.VALIDATION, "bad"), Example("ItemCreated")),
        )
        d = gwt_to_dict(gwt)
        assert d == {
            "when": {"ref": "CreateItem", "exampleData": {"itemId": "x"}},
            "then": [
                {"errorType": "ValidationError", "message": "bad"},
                {"ref": "ItemCreated", "exampleData": {}},
            ],
        }
        assert gwt_from_dict(d) == gwt

    def test_react_block_keeps_list(self):
        gwt = GWT(when=(Example("A"),), then=())
        d = gwt_to_dict(gwt)
        assert d["when"] == [{"ref": "A", "exampleData": {}}]
        assert gwt_from_dict(d).when == (Example("A"),)

    def test_query_block(self):
        gwt = GWT(given=(Example("A"),), then=(Example("S"),))
        d = gwt_to_dict(gwt)
        assert "when" not in d
        assert gwt_from_dict(d) == gwt


class TestPipelineLayout:
    @pytest.mark.parametrize("destination", [
        DatabaseDestination("items"),
        TopicDestination("item-events"),
    ])
    def test_destinations(self, destination):
        assert destination_from_dict(destination_to_dict(destination)) == destination

    @pytest.mark.parametrize("origin, expected", [
        (ReadModelOrigin("Items"), {"type": "readModel", "name": "Items"}),
        (DatabaseOrigin("items", {"active": True}), {"type": "database", "collection": "items", "query": {"active": True}}),
        (ApiOrigin("/items"), {"type": "api", "endpoint": "/items"}),
        (ApiOrigin("/items", "POST"), {"type": "api", "endpoint": "/items", "method": "POST"}),
    ])
    def test_origins(self, origin, expected):
        assert origin_to_dict(origin) == expected
        assert origin_from_dict(expected) == origin

    def test_source_entry(self):
        entry = DataSource(MessageTarget(MessageKind.STATE, "Items"), ReadModelOrigin("Items"), "Cache it")
        d = pipeline_entry_to_dict(entry)
        assert d == {
            "target": {"type": "State", "name": "Items"},
            "origin": {"type": "readModel", "name": "Items"},
            "_additionalInstructions": "Cache it",
        }
        assert pipeline_entry_from_dict(d) == entry


class TestInvalidInput:
    def test_unknown_destination_type(self):
        with pytest.raises(TypeError):
            destination_from_dict({"type": "carrier-pigeon"})

    def test_unknown_origin_object(self):
        with pytest.raises(TypeError):
            origin_to_dict("somewhere")

    def test_entry_without_destination_or_origin(self):
        with pytest.raises(TypeError):
            pipeline_entry_from_dict({"target": {"type": "Event", "name": "X"}})
