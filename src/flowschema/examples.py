"""
Example schema model for demos and tests.

Builds a small inventory project with one flow per slice kind:
    - "Manage items": a command slice with a stream, client specs, an
      error outcome and a data sink
    - "Browse items": a query slice reading a projection
    - "Restock": a react slice handing a command to an integration
"""
from flowschema.model import (
    GWT,
    Client,
    DataSink,
    DataSource,
    ErrorSpec,
    ErrorType,
    Example,
    Field,
    Flow,
    Integration,
    IntegrationDestination,
    IntegrationMessage,
    IntegrationOrigin,
    Message,
    MessageKind,
    MessageMetadata,
    MessageTarget,
    ProjectionOrigin,
    SchemaModel,
    Server,
    Slice,
    SliceKind,
    StreamDestination,
)


def build_example_items_model() -> SchemaModel:
    messages = (
        Message(
            name="CreateItem",
            kind=MessageKind.COMMAND,
            description="Registers a new item in the catalogue",
            fields=(
                Field(name="itemId", type="string"),
                Field(name="label", type="string", description="Display name"),
                Field(name="quantity", type="number", required=False, default_value=0),
            ),
        ),
        Message(
            name="ItemCreated",
            kind=MessageKind.EVENT,
            fields=(
                Field(name="itemId", type="string"),
                Field(name="label", type="string"),
                Field(name="createdAt", type="Date"),
            ),
            metadata=MessageMetadata(version=2),
        ),
        Message(
            name="StockDepleted",
            kind=MessageKind.EVENT,
            fields=(Field(name="itemId", type="string"),),
        ),
        Message(
            name="ReorderItem",
            kind=MessageKind.COMMAND,
            fields=(
                Field(name="itemId", type="string"),
                Field(name="amount", type="number"),
            ),
        ),
        Message(
            name="AvailableItems",
            kind=MessageKind.STATE,
            description="Items that can be browsed",
            fields=(
                Field(name="items", type="Array<{ itemId: string; label: string }>"),
            ),
        ),
    )

    integrations = (
        Integration(name="Supplier", source="@examples/supplier", description="Purchase orders"),
        Integration(name="Inventory", source="@examples/inventory"),
    )

    create_item = Slice(
        kind=SliceKind.COMMAND,
        name="Create item",
        id="create-item",
        stream="item-${itemId}",
        client=Client(
            description="Item form",
            specs=("require a label", "show the new item in the list"),
        ),
        server=Server(
            description="Validates and stores new items",
            data=(
                DataSink(
                    target=MessageTarget(MessageKind.EVENT, "ItemCreated"),
                    destination=StreamDestination("item-${itemId}"),
                ),
            ),
            gwt=(
                GWT(
                    when=Example("CreateItem", {"itemId": "item-1", "label": "Lamp"}),
                    then=(
                        Example(
                            "ItemCreated",
                            {"itemId": "item-1", "label": "Lamp", "createdAt": "2024-01-15T10:00:00.000Z"},
                        ),
                    ),
                ),
                GWT(
                    given=(
                        Example(
                            "ItemCreated",
                            {"itemId": "item-1", "label": "Lamp", "createdAt": "2024-01-15T10:00:00.000Z"},
                        ),
                    ),
                    when=Example("CreateItem", {"itemId": "item-1", "label": "Lamp"}),
                    then=(ErrorSpec(ErrorType.ILLEGAL_STATE, "Item already exists"),),
                ),
            ),
        ),
    )

    browse_items = Slice(
        kind=SliceKind.QUERY,
        name="Browse items",
        request="query AvailableItems {\n  items {\n    itemId\n    label\n  }\n}",
        server=Server(
            data=(
                DataSource(
                    target=MessageTarget(MessageKind.STATE, "AvailableItems"),
                    origin=ProjectionOrigin("AvailableItemsProjection", "itemId"),
                ),
            ),
            gwt=(
                GWT(
                    given=(
                        Example(
                            "ItemCreated",
                            {"itemId": "item-1", "label": "Lamp", "createdAt": "2024-01-15T10:00:00.000Z"},
                        ),
                    ),
                    then=(
                        Example("AvailableItems", {"items": [{"itemId": "item-1", "label": "Lamp"}]}),
                    ),
                ),
            ),
        ),
    )

    reorder = Slice(
        kind=SliceKind.REACT,
        name="Reorder depleted stock",
        server=Server(
            data=(
                DataSink(
                    target=MessageTarget(MessageKind.COMMAND, "ReorderItem"),
                    destination=IntegrationDestination(
                        systems=("Supplier",),
                        message=IntegrationMessage("PlaceOrder", "command"),
                    ),
                    with_state=DataSource(
                        target=MessageTarget(MessageKind.STATE, "StockLevels"),
                        origin=IntegrationOrigin(("Inventory",)),
                    ),
                    additional_instructions="Order at most 100 units",
                ),
            ),
            gwt=(
                GWT(
                    when=(Example("StockDepleted", {"itemId": "item-1"}),),
                    then=(Example("ReorderItem", {"itemId": "item-1", "amount": 10}),),
                ),
            ),
        ),
    )

    flows = (
        Flow(name="Manage items", id="manage-items", description="Catalogue maintenance", slices=(create_item,)),
        Flow(name="Browse items", slices=(browse_items,)),
        Flow(name="Restock", slices=(reorder,)),
    )

    return SchemaModel(flows=flows, messages=messages, integrations=integrations)
