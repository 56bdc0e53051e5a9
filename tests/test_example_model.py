"""
Test the example inventory model used by the demos.

Validates that the example builder creates one flow per slice kind, with
the messages, integrations and pipeline entries the demos rely on.
"""

from flowschema.examples import build_example_items_model
from flowschema.model import ErrorSpec, IntegrationDestination, IntegrationOrigin, MessageKind, SliceKind


def test_example_items_model_structure():
    model = build_example_items_model()

    # One flow per slice kind
    kinds = [flow.slices[0].kind for flow in model.flows]
    assert kinds == [SliceKind.COMMAND, SliceKind.QUERY, SliceKind.REACT]

    # Messages of every kind
    assert {m.kind for m in model.messages} == set(MessageKind)
    assert model.get_message("ItemCreated").metadata.version == 2

    # Command slice has a stream, client specs and an error outcome
    create_item = model.get_flow("Manage items").slices[0]
    assert create_item.stream == "item-${itemId}"
    assert len(create_item.client.specs) == 2
    errors = [t for g in create_item.server.gwt for t in g.then if isinstance(t, ErrorSpec)]
    assert len(errors) == 1

    # React slice talks to both integrations
    sink = model.get_flow("Restock").slices[0].server.data[0]
    assert isinstance(sink.destination, IntegrationDestination)
    assert sink.destination.systems == ("Supplier",)
    assert isinstance(sink.with_state.origin, IntegrationOrigin)
    assert {i.name for i in model.integrations} == {"Supplier", "Inventory"}


def test_example_model_is_fresh_each_call():
    assert build_example_items_model() is not build_example_items_model()
    assert build_example_items_model() == build_example_items_model()
