"""
Tests for the GWT Code Generator.

Covers the three end-to-end chain shapes, the given([]) fallback, error
outcomes, and the model-integrity checks that raise CodegenError.
"""

import pytest

from flowschema.backends.emit import EmitContext
from flowschema.backends.gwt_generator import SPEC_TITLES, build_gwt_chain, build_gwt_spec_block
from flowschema.errors import CodegenError
from flowschema.model import (
    GWT,
    ErrorSpec,
    ErrorType,
    Example,
    Field,
    Message,
    MessageKind,
    SchemaModel,
    SliceKind,
)


@pytest.fixture
def model():
    return SchemaModel(messages=(
        Message("CreateItem", MessageKind.COMMAND, (Field("itemId", "string"),)),
        Message("Notify", MessageKind.COMMAND),
        Message("ItemCreated", MessageKind.EVENT, (Field("id", "string"),)),
        Message("A", MessageKind.EVENT),
        Message("B", MessageKind.EVENT),
        Message("AvailableItems", MessageKind.STATE),
    ))


class TestEndToEndChains:
    """One spec block per slice kind."""

    def test_command_slice(self, model):
        gwt = GWT(
            when=Example("CreateItem", {"itemId": "x"}),
            then=(Example("ItemCreated", {"id": "x"}),),
        )
        lines = build_gwt_spec_block(gwt, SliceKind.COMMAND, model)
        assert lines == [
            "specs('When command, then event(s)', () => {",
            "  when(Commands.CreateItem({ itemId: 'x' })).then([Events.ItemCreated({ id: 'x' })]);",
            "});",
        ]

    def test_react_slice(self, model):
        gwt = GWT(
            when=(Example("A", {"n": 1}), Example("B")),
            then=(Example("Notify", {"to": "ops"}),),
        )
        lines = build_gwt_spec_block(gwt, SliceKind.REACT, model)
        assert lines[0] == "specs('When event(s), then command(s)', () => {"
        assert lines[1] == "  when([Events.A({ n: 1 }), Events.B({})]).then([Commands.Notify({ to: 'ops' })]);"

    def test_query_slice(self, model):
        gwt = GWT(
            given=(Example("ItemCreated", {"id": "x"}),),
            then=(Example("AvailableItems", {"items": []}),),
        )
        lines = build_gwt_spec_block(gwt, SliceKind.QUERY, model)
        assert lines[0] == "specs('Given event(s), then state', () => {"
        assert lines[1] == "  given([Events.ItemCreated({ id: 'x' })]).then([State.AvailableItems({ items: [] })]);"

    def test_indent(self, model):
        gwt = GWT(then=(Example("AvailableItems"),))
        lines = build_gwt_spec_block(gwt, SliceKind.QUERY, model, indent="      ")
        assert all(line.startswith("      ") for line in lines)
        assert lines[-1] == "      });"

    def test_titles(self):
        assert SPEC_TITLES == {
            SliceKind.COMMAND: "When command, then event(s)",
            SliceKind.REACT: "When event(s), then command(s)",
            SliceKind.QUERY: "Given event(s), then state",
        }


class TestChainDetails:
    def test_empty_given_falls_back_to_given_list(self, model):
        chain = build_gwt_chain(GWT(then=(Example("AvailableItems"),)), SliceKind.QUERY, model, EmitContext())
        assert chain == "given([]).then([State.AvailableItems({})])"

    def test_given_when_then(self, model):
        gwt = GWT(
            given=(Example("ItemCreated", {"id": "x"}),),
            when=Example("CreateItem", {"itemId": "x"}),
            then=(ErrorSpec(ErrorType.ILLEGAL_STATE, "Item exists"),),
        )
        chain = build_gwt_chain(gwt, SliceKind.COMMAND, model, EmitContext())
        assert chain == (
            "given([Events.ItemCreated({ id: 'x' })])"
            ".when(Commands.CreateItem({ itemId: 'x' }))"
            ".then([{ errorType: 'IllegalStateError', message: 'Item exists' }])"
        )

    def test_then_items_keep_model_order(self, model):
        gwt = GWT(
            when=Example("CreateItem"),
            then=(
                ErrorSpec(ErrorType.VALIDATION),
                Example("ItemCreated"),
                Example("A"),
            ),
        )
        chain = build_gwt_chain(gwt, SliceKind.COMMAND, model, EmitContext())
        assert chain.endswith(".then([{ errorType: 'ValidationError' }, Events.ItemCreated({}), Events.A({})])")

    def test_empty_then(self, model):
        chain = build_gwt_chain(GWT(when=Example("CreateItem")), SliceKind.COMMAND, model, EmitContext())
        assert chain == "when(Commands.CreateItem({})).then([])"

    def test_context_records_usage(self, model):
        context = EmitContext()
        gwt = GWT(
            given=(Example("ItemCreated"),),
            when=Example("CreateItem"),
            then=(Example("ItemCreated"), Example("A")),
        )
        build_gwt_spec_block(gwt, SliceKind.COMMAND, model, context)
        assert context.functions == {"specs", "given", "when"}
        assert context.messages[MessageKind.EVENT] == ["ItemCreated", "A"]
        assert context.messages[MessageKind.COMMAND] == ["CreateItem"]
        assert context.messages[MessageKind.STATE] == []


class TestIntegrityErrors:
    """Model defects fail fast."""

    def test_unknown_reference(self, model):
        gwt = GWT(when=Example("CreateItem"), then=(Example("Missing"),))
        with pytest.raises(CodegenError, match="undeclared message 'Missing'"):
            build_gwt_chain(gwt, SliceKind.COMMAND, model, EmitContext())

    def test_command_when_must_be_a_command(self, model):
        gwt = GWT(when=Example("ItemCreated"), then=())
        with pytest.raises(CodegenError, match="'ItemCreated' is a event but a command is required"):
            build_gwt_chain(gwt, SliceKind.COMMAND, model, EmitContext())

    def test_react_when_must_be_events(self, model):
        gwt = GWT(when=(Example("Notify"),), then=())
        with pytest.raises(CodegenError, match="event is required"):
            build_gwt_chain(gwt, SliceKind.REACT, model, EmitContext())

    def test_shape_must_match_kind(self, model):
        with pytest.raises(CodegenError, match="single command"):
            build_gwt_chain(GWT(when=(Example("A"),)), SliceKind.COMMAND, model, EmitContext())
        with pytest.raises(CodegenError, match="list of events"):
            build_gwt_chain(GWT(when=Example("CreateItem")), SliceKind.REACT, model, EmitContext())
        with pytest.raises(CodegenError, match="cannot have a 'when'"):
            build_gwt_chain(GWT(when=Example("CreateItem")), SliceKind.QUERY, model, EmitContext())

    def test_error_outcome_outside_command_slice(self, model):
        gwt = GWT(when=(Example("A"),), then=(ErrorSpec(ErrorType.NOT_FOUND),))
        with pytest.raises(CodegenError, match="only allowed in command slices"):
            build_gwt_chain(gwt, SliceKind.REACT, model, EmitContext())
