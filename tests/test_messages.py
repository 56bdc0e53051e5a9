"""
Tests for message declarations, alias resolution and inference.
"""

import pytest

from flowschema.errors import FlowParseError
from flowschema.messages import (
    infer_message,
    infer_type,
    normalize_type_text,
    parse_type_declarations,
    resolve_alias,
)
from flowschema.model import Field, Message, MessageKind, MessageMetadata
from flowschema.type_decls import collect_type_declarations


def declare(source: str):
    lines = source.split("\n")
    return parse_type_declarations(lines, collect_type_declarations(lines), "items.flow.ts")


class TestMessageDeclarations:
    """Event / Command / State declarations."""

    def test_event_with_fields(self):
        declared = declare("\n".join([
            "type ItemCreated = Event<'ItemCreated', {",
            "  id: string;",
            "  label?: string;",
            "  tags: Array<string>,",
            "}>;",
        ]))
        assert declared.messages == (
            Message(
                name="ItemCreated",
                kind=MessageKind.EVENT,
                fields=(
                    Field("id", "string"),
                    Field("label", "string", required=False),
                    Field("tags", "Array<string>"),
                ),
            ),
        )
        assert declared.type_names == {"ItemCreated": "ItemCreated"}

    def test_empty_fields(self):
        declared = declare("type Ping = Command<'Ping', {}>;")
        assert declared.messages == (Message("Ping", MessageKind.COMMAND),)

    def test_type_name_differs_from_message_name(self):
        declared = declare("export type ListedEvent = Event<'ItemListed', { id: string }>;")
        assert declared.messages[0].name == "ItemListed"
        assert declared.resolve("ListedEvent") == "ItemListed"
        assert declared.resolve("ItemListed") == "ItemListed"

    def test_nested_type_text_is_normalized(self):
        declared = declare("\n".join([
            "type AvailableItems = State<'AvailableItems', {",
            "  items: Array<{",
            "    id: string;",
            "    label: string",
            "  }>;",
            "  handler: (x: number) => void;",
            "}>;",
        ]))
        fields = declared.messages[0].fields
        assert fields[0].type == "Array<{ id: string; label: string }>"
        assert fields[1].type == "(x: number) => void"

    def test_doc_comments(self):
        declared = declare("\n".join([
            "/**",
            " * Raised once an item is listed.",
            " * @version 3",
            " */",
            "type ItemCreated = Event<'ItemCreated', {",
            "  /** Display label */",
            "  label: string;",
            "  /**",
            "   * How many",
            "   * @default {\"amount\": 1}",
            "   */",
            "  quantity?: { amount: number };",
            "}>;",
        ]))
        message = declared.messages[0]
        assert message.description == "Raised once an item is listed."
        assert message.metadata == MessageMetadata(version=3)
        assert message.fields[0] == Field("label", "string", description="Display label")
        assert message.fields[1] == Field(
            "quantity", "{ amount: number }", required=False, description="How many",
            default_value={"amount": 1},
        )
        assert declared.doc_lines == frozenset({0, 1, 2, 3})

    def test_quoted_field_name(self):
        declared = declare("type X = Event<'X', { 'item-id': string }>;")
        assert declared.messages[0].fields[0].name == "item-id"

    def test_other_types_are_ignored(self):
        declared = declare("\n".join([
            "type Status = 'open' | 'closed';",
            "type Shape = { id: string };",
        ]))
        assert declared.messages == ()
        assert declared.aliases == {}


class TestDeclarationErrors:
    """Malformed declarations are parse errors with file and line."""

    def test_unterminated(self):
        with pytest.raises(FlowParseError) as exc_info:
            declare("\n".join(["const a = 1;", "type Open = Event<'Open', {", "  id: string;"]))
        assert exc_info.value.file_path == "items.flow.ts"
        assert exc_info.value.line == 2
        assert "Unterminated" in exc_info.value.reason

    def test_duplicate_message_name(self):
        with pytest.raises(FlowParseError, match="Duplicate message declaration 'X'"):
            declare("type X = Event<'X', {}>;\ntype Y = Event<'X', {}>;")

    def test_duplicate_type_name(self):
        with pytest.raises(FlowParseError, match="Duplicate type declaration 'X'"):
            declare("type X = Event<'X', {}>;\ntype X = string;")

    def test_duplicate_field(self):
        with pytest.raises(FlowParseError, match="Duplicate field 'id'"):
            declare("type X = Event<'X', { id: string; id: number }>;")

    def test_message_name_must_be_string(self):
        with pytest.raises(FlowParseError, match="string literal"):
            declare("type X = Event<Name, {}>;")

    def test_invalid_default(self):
        with pytest.raises(FlowParseError, match="@default"):
            declare("type X = Event<'X', {\n  /** @default nope */\n  id: string;\n}>;")

    def test_invalid_version(self):
        with pytest.raises(FlowParseError, match="@version"):
            declare("/** @version two */\ntype X = Event<'X', {}>;")


class TestAliases:
    """`type A = B;` resolution."""

    def test_alias_chain(self):
        declared = declare("\n".join([
            "type ItemCreated = Event<'ItemCreated', {}>;",
            "type Listed = Created;",
            "type Created = ItemCreated;",
        ]))
        assert declared.aliases == {"Listed": "ItemCreated", "Created": "ItemCreated"}
        assert declared.resolve("Listed") == "ItemCreated"

    def test_alias_to_unknown_type_is_dropped(self):
        declared = declare("type Listed = SomethingImported;")
        assert declared.aliases == {}
        assert declared.resolve("Listed") == "Listed"

    def test_cycle(self):
        with pytest.raises(FlowParseError, match="Circular type alias involving A -> B"):
            declare("type A = B;\ntype B = A;")

    def test_self_cycle(self):
        with pytest.raises(FlowParseError, match="Circular"):
            resolve_alias("A", {"A": "A"}, {}, frozenset())

    def test_resolution_leaves_arguments_untouched(self):
        aliases = {"A": "B", "B": "Msg"}
        visited = frozenset({"Z"})
        assert resolve_alias("A", aliases, {}, frozenset({"Msg"}), visited=visited) == "Msg"
        assert visited == frozenset({"Z"})
        assert aliases == {"A": "B", "B": "Msg"}


class TestInference:
    """Message stubs inferred from example data."""

    def test_primitive_types(self):
        assert infer_type("x") == "string"
        assert infer_type(1) == "number"
        assert infer_type(1.5) == "number"
        assert infer_type(True) == "boolean"
        assert infer_type(None) == "unknown"

    def test_iso_date(self):
        assert infer_type("2024-01-15T10:00:00.000Z") == "Date"
        assert infer_type("2024-01-15") == "string"

    def test_structures(self):
        assert infer_type([]) == "Array<unknown>"
        assert infer_type([{"id": "a", "qty": 2}]) == "Array<{id: string, qty: number}>"
        assert infer_type({"nested": {"ok": False}}) == "{nested: {ok: boolean}}"

    def test_infer_message(self):
        message = infer_message("PlaceOrder", MessageKind.COMMAND, {"sku": "x", "amount": 2})
        assert message == Message(
            "PlaceOrder",
            MessageKind.COMMAND,
            fields=(Field("sku", "string"), Field("amount", "number")),
        )

    def test_normalize_type_text(self):
        assert normalize_type_text("  Array<{\n    id: string\n  }> ") == "Array<{ id: string }>"
