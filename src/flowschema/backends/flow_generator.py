"""
Flow source composer (SchemaModel -> flow DSL source).

Output layout, sections separated by a blank line:
    1. Import declarations (only what the rendered code uses)
    2. Message type declarations, in model order
    3. The createBuilders() declaration (only if any message is referenced)
    4. One flow(...) statement per flow

Rendering is two-pass: flows are rendered first while an EmitContext
records the names they use, then the imports and builders sections are
computed from that record.
"""

import json
from typing import List, Optional

from flowschema.backends.builders_generator import build_builders_declaration
from flowschema.backends.emit import EmitContext, is_identifier, property_key, quote_string, quote_template, to_literal
from flowschema.backends.gwt_generator import build_gwt_spec_block
from flowschema.backends.imports_generator import build_imports
from flowschema.config import FlowSchemaConfig
from flowschema.doc_comments import format_doc_comment
from flowschema.errors import CodegenError
from flowschema.integrations import collect_integration_type_names
from flowschema.model import (
    ApiOrigin,
    DatabaseDestination,
    DatabaseOrigin,
    DataSink,
    DataSource,
    Flow,
    IntegrationDestination,
    IntegrationOrigin,
    Message,
    MessageKind,
    ProjectionOrigin,
    ReadModelOrigin,
    SchemaModel,
    Server,
    Slice,
    StreamDestination,
    TopicDestination,
)

INDENT = "  "

MESSAGE_WRAPPERS = {
    MessageKind.COMMAND: "Command",
    MessageKind.EVENT: "Event",
    MessageKind.STATE: "State",
}

TARGET_METHODS = {
    MessageKind.EVENT: "event",
    MessageKind.COMMAND: "command",
    MessageKind.STATE: "state",
}


def generate_flow_source(model: SchemaModel, config: Optional[FlowSchemaConfig] = None) -> str:
    """
    Render a schema model as flow DSL source.

    Args:
        model: The model to render (not modified)
        config: Import module locations

    Returns:
        Source text ending with a single newline

    Raises:
        CodegenError: The model declares a message or integration name
            twice, references undeclared messages or integrations, or a
            value has no literal form
    """
    config = config or FlowSchemaConfig()
    _check_unique("message", [message.name for message in model.messages])
    _check_unique("integration", [integration.name for integration in model.integrations])
    context = EmitContext()

    flow_sections = [render_flow(flow, model, context) for flow in model.flows]
    type_sections = [render_message_type(message) for message in model.messages]

    message_names = {message.name for message in model.messages}
    builders: List[str] = []
    if context.has_messages:
        context.use_function("createBuilders")
        builders = build_builders_declaration(
            context.messages[MessageKind.EVENT],
            context.messages[MessageKind.COMMAND],
            context.messages[MessageKind.STATE],
        )

    imports = build_imports(
        functions=context.functions,
        message_kinds=[message.kind for message in model.messages],
        integrations=model.integrations,
        integration_type_names=[
            name for name in collect_integration_type_names(model.flows) if name not in message_names
        ],
        config=config,
    )

    sections = [imports] + type_sections + [builders] + flow_sections
    text = "\n\n".join("\n".join(section) for section in sections if section)
    return text + "\n"


def _check_unique(what: str, names: List[str]) -> None:
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise CodegenError(f"Duplicate {what} names: {', '.join(duplicates)}")


# =============================================================================
# MESSAGE TYPES
# =============================================================================


def render_message_type(message: Message) -> List[str]:
    """
    Render a message as a type declaration.

    Example:
        type ItemCreated = Event<'ItemCreated', {
          id: string;
          label?: string;
        }>;
    """
    if not is_identifier(message.name):
        raise CodegenError(f"Message name '{message.name}' is not a valid identifier")

    tags = []
    if message.metadata.version != 1:
        tags.append(("version", str(message.metadata.version)))
    lines = format_doc_comment(message.description, tags)

    head = f"type {message.name} = {MESSAGE_WRAPPERS[message.kind]}<{quote_string(message.name)}, "
    if not message.fields:
        lines.append(head + "{}>;")
        return lines

    lines.append(head + "{")
    for field in message.fields:
        field_tags = []
        if field.default_value is not None:
            field_tags.append(("default", json.dumps(field.default_value)))
        lines.extend(format_doc_comment(field.description, field_tags, indent=INDENT))
        optional = "" if field.required else "?"
        lines.append(f"{INDENT}{property_key(field.name)}{optional}: {field.type};")
    lines.append("}>;")
    return lines


# =============================================================================
# FLOWS AND SLICES
# =============================================================================


def render_flow(flow: Flow, model: SchemaModel, context: EmitContext) -> List[str]:
    context.use_function("flow")
    lines = format_doc_comment(flow.description)

    args = [quote_string(flow.name)]
    if flow.id is not None:
        args.append(quote_string(flow.id))
    if not flow.slices:
        lines.append(f"flow({', '.join(args)}, () => {{}});")
        return lines

    lines.append(f"flow({', '.join(args)}, () => {{")
    for index, slice_ in enumerate(flow.slices):
        if index:
            lines.append("")
        lines.extend(render_slice(slice_, model, context, INDENT))
    lines.append("});")
    return lines


def _block(header: str, body: List[str], indent: str, footer: str = "") -> List[str]:
    """`header () => { body }footer`, collapsed to `() => {}` when empty."""
    if not body:
        return [f"{indent}{header}() => {{}}{footer}"]
    return [f"{indent}{header}() => {{"] + body + [f"{indent}}}{footer}"]


def render_slice(slice_: Slice, model: SchemaModel, context: EmitContext, indent: str) -> List[str]:
    """
    Render one slice as a method chain statement.

    Example:
        command('Create item')
          .stream('item-${id}')
          .server(() => {
            specs('When command, then event(s)', () => {
              when(Commands.CreateItem({ itemId: 'x' })).then([Events.ItemCreated({ id: 'x' })]);
            });
          });
    """
    constructor = slice_.kind.value
    context.use_function(constructor)
    args = [quote_string(slice_.name)]
    if slice_.id is not None:
        args.append(quote_string(slice_.id))
    lines = [f"{indent}{constructor}({', '.join(args)})"]

    link_indent = indent + INDENT
    body_indent = link_indent + INDENT

    if slice_.stream is not None:
        lines.append(f"{link_indent}.stream({quote_string(slice_.stream)})")

    if slice_.client is not None:
        context.use_function("specs")
        should_lines = []
        for text in slice_.client.specs:
            context.use_function("should")
            should_lines.append(f"{body_indent}{INDENT}should({quote_string(text)});")
        specs_lines = _block(
            f"specs({quote_string(slice_.client.description)}, ", should_lines, body_indent, ");"
        )
        lines.extend(_block(".client(", specs_lines, link_indent, ")"))

    if slice_.request is not None:
        context.use_function("gql")
        lines.append(f"{link_indent}.request(gql{quote_template(slice_.request)})")

    if slice_.server != Server():
        server_lines = []
        if slice_.server.data:
            server_lines.extend(render_data(slice_.server.data, model, context, body_indent))
        for gwt in slice_.server.gwt:
            server_lines.extend(build_gwt_spec_block(gwt, slice_.kind, model, context, body_indent))
        footer = ")"
        if slice_.server.description:
            footer = f", {quote_string(slice_.server.description)})"
        lines.extend(_block(".server(", server_lines, link_indent, footer))

    lines[-1] += ";"
    return lines


# =============================================================================
# DATA PIPELINE
# =============================================================================


def render_data(entries, model: SchemaModel, context: EmitContext, indent: str) -> List[str]:
    context.use_function("data")
    lines = [f"{indent}data(["]
    for entry in entries:
        lines.append(f"{indent}{INDENT}{render_pipeline_entry(entry, model, context)},")
    lines.append(f"{indent}]);")
    return lines


def _systems(systems, model: SchemaModel) -> List[str]:
    if not systems:
        raise CodegenError("Integration pipeline entries need at least one system")
    for system in systems:
        if model.get_integration(system) is None:
            raise CodegenError(f"Pipeline references undeclared integration '{system}'")
        if not is_identifier(system):
            raise CodegenError(f"Integration name '{system}' is not a valid identifier")
    return list(systems)


def render_pipeline_entry(entry, model: SchemaModel, context: EmitContext) -> str:
    """
    Render a sink or source chain.

    Examples:
        sink().event('ItemCreated').toStream('item-${id}')
        source().state('AvailableItems').fromProjection('Items', 'id')
    """
    if isinstance(entry, DataSink):
        context.use_function("sink")
        chain = f"sink().{TARGET_METHODS[entry.target.kind]}({quote_string(entry.target.name)})"
        chain += _render_destination(entry.destination, model)
        if entry.with_state is not None:
            chain += f".withState({render_pipeline_entry(entry.with_state, model, context)})"
    elif isinstance(entry, DataSource):
        context.use_function("source")
        chain = f"source().{TARGET_METHODS[entry.target.kind]}({quote_string(entry.target.name)})"
        chain += _render_origin(entry.origin, model)
    else:
        raise CodegenError(f"Unknown pipeline entry {type(entry).__name__}")

    if entry.additional_instructions is not None:
        chain += f".additionalInstructions({quote_string(entry.additional_instructions)})"
    return chain


def _render_destination(destination, model: SchemaModel) -> str:
    if isinstance(destination, StreamDestination):
        return f".toStream({quote_string(destination.pattern)})"
    if isinstance(destination, DatabaseDestination):
        return f".toDatabase({quote_string(destination.collection)})"
    if isinstance(destination, TopicDestination):
        return f".toTopic({quote_string(destination.name)})"
    if isinstance(destination, IntegrationDestination):
        args = _systems(destination.systems, model)
        if destination.message is not None:
            args.append(quote_string(destination.message.name))
            args.append(quote_string(destination.message.type))
        return f".toIntegration({', '.join(args)})"
    raise CodegenError(f"Unknown destination {type(destination).__name__}")


def _render_origin(origin, model: SchemaModel) -> str:
    if isinstance(origin, ProjectionOrigin):
        return f".fromProjection({quote_string(origin.name)}, {quote_string(origin.id_field)})"
    if isinstance(origin, ReadModelOrigin):
        return f".fromReadModel({quote_string(origin.name)})"
    if isinstance(origin, DatabaseOrigin):
        args = [quote_string(origin.collection)]
        if origin.query is not None:
            args.append(to_literal(origin.query))
        return f".fromDatabase({', '.join(args)})"
    if isinstance(origin, ApiOrigin):
        args = [quote_string(origin.endpoint)]
        if origin.method is not None:
            args.append(quote_string(origin.method))
        return f".fromApi({', '.join(args)})"
    if isinstance(origin, IntegrationOrigin):
        return f".fromIntegration({', '.join(_systems(origin.systems, model))})"
    raise CodegenError(f"Unknown origin {type(origin).__name__}")
