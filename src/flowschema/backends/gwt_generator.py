"""
GWT Code Generator

Renders one Given-When-Then block of a slice as a `specs(...)` statement:

    specs('When command, then event(s)', () => {
      when(Commands.CreateItem({ itemId: 'x' })).then([Events.ItemCreated({ id: 'x' })]);
    });

The chain depends on the slice kind:
    command: [given([...]).]when(Commands.X(...)).then([...])
    react:   when([Events.X(...), ...]).then([Commands.Y(...)])
    query:   given([...]).then([State.X(...)])

When neither `given` nor `when` applies, the chain is rooted at `given([])`
so `.then(...)` always has a receiver.
"""

from typing import List, Optional

from flowschema.backends.emit import NAMESPACE_BY_KIND, EmitContext, is_identifier, quote_string, to_literal
from flowschema.errors import CodegenError
from flowschema.model import GWT, ErrorSpec, Example, MessageKind, SchemaModel, SliceKind


SPEC_TITLES = {
    SliceKind.COMMAND: "When command, then event(s)",
    SliceKind.REACT: "When event(s), then command(s)",
    SliceKind.QUERY: "Given event(s), then state",
}


def render_example(example: Example, model: SchemaModel, context: EmitContext,
                   expected: Optional[MessageKind] = None) -> str:
    """
    Render `Events.X(data)` / `Commands.X(data)` / `State.X(data)`.

    Raises:
        CodegenError: Unknown reference, or a message kind other than `expected`
    """
    message = model.get_message(example.ref)
    if message is None:
        raise CodegenError(f"Example references undeclared message '{example.ref}'")
    if expected is not None and message.kind != expected:
        raise CodegenError(
            f"'{example.ref}' is a {message.kind.value} but a {expected.value} is required here"
        )
    if not is_identifier(message.name):
        raise CodegenError(f"Message name '{message.name}' is not a valid identifier")
    context.use_message(message)
    return f"{NAMESPACE_BY_KIND[message.kind]}.{message.name}({to_literal(example.example_data)})"


def render_error(error: ErrorSpec) -> str:
    parts = [f"errorType: {quote_string(error.error_type.value)}"]
    if error.message is not None:
        parts.append(f"message: {quote_string(error.message)}")
    return "{ " + ", ".join(parts) + " }"


def build_gwt_chain(gwt: GWT, slice_kind: SliceKind, model: SchemaModel, context: EmitContext) -> str:
    """
    Build the `given(...).when(...).then(...)` expression for one block.

    Raises:
        CodegenError: The block's shape or references do not fit the slice kind
    """
    links: List[str] = []

    if gwt.given:
        items = ", ".join(render_example(e, model, context) for e in gwt.given)
        links.append(f"given([{items}])")
        context.use_function("given")

    if slice_kind == SliceKind.COMMAND:
        if not isinstance(gwt.when, Example):
            raise CodegenError("A command slice block needs a single command in 'when'")
        links.append(f"when({render_example(gwt.when, model, context, MessageKind.COMMAND)})")
        context.use_function("when")
    elif slice_kind == SliceKind.REACT:
        if not isinstance(gwt.when, tuple):
            raise CodegenError("A react slice block needs a list of events in 'when'")
        items = ", ".join(render_example(e, model, context, MessageKind.EVENT) for e in gwt.when)
        links.append(f"when([{items}])")
        context.use_function("when")
    elif gwt.when is not None:
        raise CodegenError("A query slice block cannot have a 'when'")

    if not links:
        links.append("given([])")
        context.use_function("given")

    then_items = []
    for item in gwt.then:
        if isinstance(item, ErrorSpec):
            if slice_kind != SliceKind.COMMAND:
                raise CodegenError("Error outcomes are only allowed in command slices")
            then_items.append(render_error(item))
        else:
            then_items.append(render_example(item, model, context))

    return ".".join(links) + ".then([" + ", ".join(then_items) + "])"


def build_gwt_spec_block(
    gwt: GWT,
    slice_kind: SliceKind,
    model: SchemaModel,
    context: Optional[EmitContext] = None,
    indent: str = "",
) -> List[str]:
    """
    Render one `specs(title, () => { chain; });` statement.

    Args:
        gwt: The block to render
        slice_kind: Kind of the owning slice (selects title and chain shape)
        model: Model used to resolve message references
        context: Collects referenced names (a fresh one if omitted)
        indent: Indentation of the statement

    Returns:
        Source lines without trailing newlines
    """
    context = context if context is not None else EmitContext()
    context.use_function("specs")
    chain = build_gwt_chain(gwt, slice_kind, model, context)
    return [
        f"{indent}specs({quote_string(SPEC_TITLES[slice_kind])}, () => {{",
        f"{indent}  {chain};",
        f"{indent}}});",
    ]
