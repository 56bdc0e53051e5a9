"""
Tests for flow source generation (SchemaModel -> DSL).

The key property: extracting generated source gives back the same model,
and generating again from that model gives byte-identical source.
"""

import pytest

from flowschema.backends.flow_generator import generate_flow_source, render_message_type
from flowschema.errors import CodegenError
from flowschema.examples import build_example_items_model
from flowschema.extractor import extract_schema
from flowschema.model import (
    GWT,
    Client,
    DataSink,
    Example,
    Field,
    Flow,
    Integration,
    IntegrationDestination,
    Message,
    MessageKind,
    MessageMetadata,
    MessageTarget,
    SchemaModel,
    Server,
    Slice,
    SliceKind,
    models_equal,
)
from flowschema.serialization import model_from_json


@pytest.fixture
def ping_model():
    return SchemaModel(
        messages=(
            Message("Ping", MessageKind.COMMAND, (Field("id", "string"),)),
            Message("Pinged", MessageKind.EVENT, (Field("id", "string"),)),
        ),
        flows=(
            Flow("Pinging", slices=(
                Slice(
                    SliceKind.COMMAND,
                    "Ping",
                    server=Server(gwt=(
                        GWT(when=Example("Ping", {"id": "a"}), then=(Example("Pinged", {"id": "a"}),)),
                    )),
                ),
            )),
        ),
    )


def test_generated_layout(ping_model):
    assert generate_flow_source(ping_model) == "\n".join([
        "import { command, createBuilders, flow, specs, when } from '@auto-engineer/flow';",
        "import type { Command, Event } from '@auto-engineer/flow';",
        "",
        "type Ping = Command<'Ping', {",
        "  id: string;",
        "}>;",
        "",
        "type Pinged = Event<'Pinged', {",
        "  id: string;",
        "}>;",
        "",
        "const { Events, Commands, State } = createBuilders()",
        "  .events<Pinged>()",
        "  .commands<Ping>()",
        "  .state<{}>();",
        "",
        "flow('Pinging', () => {",
        "  command('Ping')",
        "    .server(() => {",
        "      specs('When command, then event(s)', () => {",
        "        when(Commands.Ping({ id: 'a' })).then([Events.Pinged({ id: 'a' })]);",
        "      });",
        "    });",
        "});",
        "",
    ])


def test_single_trailing_newline(ping_model):
    source = generate_flow_source(ping_model)
    assert source.endswith("});\n")
    assert not source.endswith("\n\n")


def test_deterministic():
    model = build_example_items_model()
    assert generate_flow_source(model) == generate_flow_source(model)


def test_model_is_not_modified():
    model = build_example_items_model()
    generate_flow_source(model)
    assert model == build_example_items_model()


class TestRoundTrip:
    """DSL -> schema -> DSL."""

    def test_example_model_round_trip(self):
        model = build_example_items_model()
        assert models_equal(extract_schema(generate_flow_source(model)), model)

    def test_fixed_point(self):
        first = generate_flow_source(build_example_items_model())
        second = generate_flow_source(extract_schema(first))
        assert first == second

    def test_descriptions_that_look_like_syntax(self):
        model = SchemaModel(messages=(
            Message(
                "Noted",
                MessageKind.EVENT,
                (Field("note", "string", description="Ends with */ marker"),),
                description="@mention at the start\nsecond line",
                metadata=MessageMetadata(version=4),
            ),
        ))
        assert models_equal(extract_schema(generate_flow_source(model)), model)

    def test_strings_with_quotes_and_newlines(self):
        model = SchemaModel(
            messages=(Message("Said", MessageKind.EVENT, (Field("text", "string"),)),),
            flows=(
                Flow("It's \"quoted\"", slices=(
                    Slice(
                        SliceKind.QUERY,
                        "Line\nbreak",
                        server=Server(gwt=(GWT(given=(Example("Said", {"text": "a\\b 'c'"}),)),)),
                    ),
                )),
            ),
        )
        assert models_equal(extract_schema(generate_flow_source(model)), model)


class TestSections:
    def test_no_messages_means_no_builders(self):
        source = generate_flow_source(SchemaModel(flows=(Flow("Empty"),)))
        assert source == "import { flow } from '@auto-engineer/flow';\n\nflow('Empty', () => {});\n"
        assert "createBuilders" not in source

    def test_unreferenced_messages_are_declared_without_builders(self):
        model = SchemaModel(messages=(Message("Idle", MessageKind.STATE),))
        assert generate_flow_source(model) == (
            "import type { State } from '@auto-engineer/flow';\n\n"
            "type Idle = State<'Idle', {}>;\n"
        )

    def test_slice_without_links(self):
        model = SchemaModel(flows=(Flow("F", id="f-1", slices=(Slice(SliceKind.REACT, "Nothing yet"),)),))
        source = generate_flow_source(model)
        assert "flow('F', 'f-1', () => {\n  react('Nothing yet');\n});" in source
        assert source.startswith("import { flow, react } from '@auto-engineer/flow';")

    def test_empty_client(self):
        model = SchemaModel(flows=(Flow("F", slices=(
            Slice(SliceKind.COMMAND, "Form", client=Client()),
        )),))
        source = generate_flow_source(model)
        assert "    .client(() => {\n      specs('', () => {});\n    });" in source
        assert models_equal(extract_schema(source), model)

    def test_integrations_are_imported(self):
        source = generate_flow_source(build_example_items_model())
        assert "/** @integration Supplier Purchase orders */\nimport { Supplier } from '@examples/supplier';" in source
        assert "import { Inventory } from '@examples/inventory';" in source
        assert "import type { PlaceOrder, StockLevels } from '../server/src/integrations';" in source


class TestMessageTypes:
    def test_optional_default_and_description(self):
        message = Message(
            "CreateItem",
            MessageKind.COMMAND,
            fields=(
                Field("label", "string", description="Display name"),
                Field("quantity", "number", required=False, default_value=0),
                Field("item-id", "string"),
            ),
            description="Registers an item",
        )
        assert render_message_type(message) == [
            "/** Registers an item */",
            "type CreateItem = Command<'CreateItem', {",
            "  /** Display name */",
            "  label: string;",
            "  /** @default 0 */",
            "  quantity?: number;",
            "  'item-id': string;",
            "}>;",
        ]

    def test_version_tag(self):
        lines = render_message_type(Message("X", MessageKind.EVENT, metadata=MessageMetadata(version=2)))
        assert lines == ["/** @version 2 */", "type X = Event<'X', {}>;"]

    def test_invalid_name(self):
        with pytest.raises(CodegenError, match="not a valid identifier"):
            render_message_type(Message("Bad Name", MessageKind.EVENT))


class TestCodegenErrors:
    def test_duplicate_message_names(self):
        model = SchemaModel(messages=(Message("A", MessageKind.EVENT), Message("A", MessageKind.COMMAND)))
        with pytest.raises(CodegenError, match="Duplicate message names: A"):
            generate_flow_source(model)

    def test_duplicate_integration_names(self):
        model = SchemaModel(integrations=(Integration("Crm", "@x/crm"), Integration("Crm", "@y/crm")))
        with pytest.raises(CodegenError, match="Duplicate integration names: Crm"):
            generate_flow_source(model)

    def test_duplicates_from_schema_json(self):
        schema = (
            '{"flows": [], "integrations": [], "messages": ['
            '{"name": "A", "type": "event", "fields": []}, '
            '{"name": "A", "type": "command", "fields": []}]}'
        )
        with pytest.raises(CodegenError, match="Duplicate message names"):
            generate_flow_source(model_from_json(schema))

    def test_undeclared_integration(self):
        model = SchemaModel(
            messages=(Message("Go", MessageKind.COMMAND),),
            flows=(Flow("F", slices=(
                Slice(SliceKind.REACT, "R", server=Server(data=(
                    DataSink(MessageTarget(MessageKind.COMMAND, "Go"), IntegrationDestination(("Ghost",))),
                ))),
            )),),
        )
        with pytest.raises(CodegenError, match="undeclared integration 'Ghost'"):
            generate_flow_source(model)

    def test_undeclared_message(self):
        model = SchemaModel(flows=(Flow("F", slices=(
            Slice(SliceKind.QUERY, "Q", server=Server(gwt=(GWT(then=(Example("Missing"),)),))),
        )),))
        with pytest.raises(CodegenError, match="undeclared message 'Missing'"):
            generate_flow_source(model)

    def test_non_finite_example_value(self):
        model = SchemaModel(
            messages=(Message("S", MessageKind.STATE),),
            flows=(Flow("F", slices=(
                Slice(SliceKind.QUERY, "Q", server=Server(gwt=(GWT(then=(Example("S", {"v": float("nan")}),)),))),
            )),),
        )
        with pytest.raises(CodegenError, match="non-finite"):
            generate_flow_source(model)
