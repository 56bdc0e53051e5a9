"""
Schema Extractor (flow DSL source -> SchemaModel).

Pipeline for one file:
    1. Scan type declarations (flowschema.type_decls)
    2. Parse them into messages and aliases (flowschema.messages)
    3. Blank those lines out, keeping line numbers intact
    4. Tokenize and parse the rest (flowschema.dsl_parser)
    5. Walk the call expressions:

        flow('Items', () => {
          command('Create item')
            .stream('item-${id}')
            .client(() => { specs('Form', () => { should('validate input'); }); })
            .server(() => {
              data([sink().event('ItemCreated').toStream('item-${id}')]);
              specs('When command, then event(s)', () => {
                when(Commands.CreateItem({ itemId: 'x' })).then([Events.ItemCreated({ id: 'x' })]);
              });
            });
        });

The slice kind is decided once, from the constructor, and every GWT chain
inside the slice must have the matching shape.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from flowschema.config import FlowSchemaConfig
from flowschema.doc_comments import parse_doc_comment
from flowschema.dsl_parser import parse_program
from flowschema.errors import FlowParseError
from flowschema.messages import DeclaredTypes, infer_message, parse_type_declarations
from flowschema.model import (
    GWT,
    ApiOrigin,
    Client,
    DatabaseDestination,
    DatabaseOrigin,
    DataSink,
    DataSource,
    ErrorSpec,
    ErrorType,
    Example,
    Flow,
    Integration,
    IntegrationDestination,
    IntegrationMessage,
    IntegrationOrigin,
    Message,
    MessageKind,
    MessageTarget,
    ProjectionOrigin,
    ReadModelOrigin,
    SchemaModel,
    Server,
    Slice,
    SliceKind,
    StreamDestination,
    TopicDestination,
)
from flowschema.syntax import (
    ArrayLiteral,
    ArrowFunction,
    BooleanLiteral,
    CallExpression,
    ExpressionStatement,
    Identifier,
    ImportDeclaration,
    MemberExpression,
    NewExpression,
    Node,
    NullLiteral,
    NumberLiteral,
    ObjectLiteral,
    Property,
    SpreadElement,
    StringLiteral,
    TaggedTemplate,
    TemplateLiteral,
    VariableDeclaration,
    callee_name,
    flatten_chain,
)
from flowschema.type_decls import collect_type_declarations

logger = logging.getLogger(__name__)


FLOW_CONSTRUCTORS = frozenset({"flow", "narrative"})

SLICE_CONSTRUCTORS = {
    "command": SliceKind.COMMAND,
    "commandSlice": SliceKind.COMMAND,
    "query": SliceKind.QUERY,
    "querySlice": SliceKind.QUERY,
    "react": SliceKind.REACT,
    "reactSlice": SliceKind.REACT,
}

NAMESPACES = {
    "Events": MessageKind.EVENT,
    "Commands": MessageKind.COMMAND,
    "State": MessageKind.STATE,
}

# Names that never denote an integration when imported
DSL_NAMES = frozenset({
    "command", "query", "react", "experience", "narrative", "should", "specs",
    "rule", "example", "gql", "source", "data", "sink", "flow", "given", "when",
    "createBuilders", "commandSlice", "querySlice", "reactSlice",
    "Command", "Event", "State",
})

_TARGET_METHODS = {
    "event": MessageKind.EVENT,
    "command": MessageKind.COMMAND,
    "state": MessageKind.STATE,
}

_GWT_ORDER = ("given", "when", "then")


def extract_schema(
    source: str,
    file_path: str = "<source>",
    config: Optional[FlowSchemaConfig] = None,
) -> SchemaModel:
    """
    Extract a schema model from flow DSL source.

    Args:
        source: Flow file contents
        file_path: Used in error messages
        config: Import conventions (defaults to FlowSchemaConfig())

    Returns:
        A fresh SchemaModel

    Raises:
        FlowParseError: With file path, line and slice name where known,
            including input nested too deeply to parse
    """
    config = config or FlowSchemaConfig()
    lines = source.replace("\r\n", "\n").split("\n")

    try:
        declarations = collect_type_declarations(lines)
        declared = parse_type_declarations(lines, declarations, file_path)

        blanked = list(lines)
        for declaration in declarations:
            for idx in range(declaration.start_line_idx, declaration.end_line_idx + 1):
                blanked[idx] = ""
        for idx in declared.doc_lines:
            blanked[idx] = ""

        program = parse_program("\n".join(blanked), file_path)
        extraction = _Extraction(file_path, declared, config)
        flows = extraction.walk(program.body)
    except RecursionError:
        raise FlowParseError("Nesting too deep", file_path=file_path) from None

    logger.debug(
        "Extracted %d flow(s), %d message(s) from %s",
        len(flows), len(declared.messages) + len(extraction.stubs), file_path,
    )
    return SchemaModel(
        flows=tuple(flows),
        messages=declared.messages + tuple(extraction.stubs.values()),
        integrations=extraction.build_integrations(),
    )


class _Extraction:
    """
    Per-call extraction state.

    Created fresh by every extract_schema() call and discarded afterwards.
    """

    def __init__(self, file_path: str, declared: DeclaredTypes, config: FlowSchemaConfig):
        self.file_path = file_path
        self.declared = declared
        self.config = config
        self.stubs: Dict[str, Message] = {}
        self.imported: Dict[str, Integration] = {}
        self.referenced_systems: List[str] = []
        self.flow_names = set()
        self.slice_name: Optional[str] = None

    def error(self, reason: str, node: Optional[Node] = None) -> FlowParseError:
        line = getattr(node, "line", None) or None
        return FlowParseError(reason, file_path=self.file_path, slice_name=self.slice_name, line=line)

    # -------------------------------------------------------------------------
    # Top level
    # -------------------------------------------------------------------------

    def walk(self, statements: Sequence[Node]) -> List[Flow]:
        flows = []
        for statement in statements:
            if isinstance(statement, ImportDeclaration):
                self._collect_import(statement)
            elif isinstance(statement, VariableDeclaration):
                if _is_builders_call(statement.init):
                    continue
                logger.debug("Ignoring declaration of %s in %s", ", ".join(statement.names), self.file_path)
            elif isinstance(statement, ExpressionStatement) and callee_name(statement.expression) in FLOW_CONSTRUCTORS:
                flows.append(self._extract_flow(statement))
            else:
                raise self.error("Unsupported top-level statement", statement)
        return flows

    def _collect_import(self, declaration: ImportDeclaration) -> None:
        if declaration.type_only or declaration.module in self.config.dsl_modules:
            return
        values = [s for s in declaration.specifiers if not s.type_only]
        if not values or all(s.name in DSL_NAMES for s in values):
            return

        descriptions = {}
        if declaration.doc is not None:
            _, tags = parse_doc_comment(declaration.doc)
            for tag, value in tags:
                if tag == "integration":
                    name, _, text = value.partition(" ")
                    descriptions[name] = text.strip() or None

        for specifier in values:
            name = specifier.local
            if name in self.imported:
                raise self.error(f"Integration '{name}' is imported more than once", specifier)
            self.imported[name] = Integration(name, declaration.module, descriptions.get(name))

    def build_integrations(self) -> Tuple[Integration, ...]:
        integrations = list(self.imported.values())
        for system in self.referenced_systems:
            if system not in self.imported:
                integrations.append(Integration(
                    name=system,
                    source=f"@auto-engineer/{system.lower()}-integration",
                    description=f"{system} integration",
                ))
        return tuple(integrations)

    # -------------------------------------------------------------------------
    # Flows and slices
    # -------------------------------------------------------------------------

    def _extract_flow(self, statement: ExpressionStatement) -> Flow:
        call = statement.expression
        args = list(call.arguments)
        if not args or not isinstance(args[0], StringLiteral):
            raise self.error("flow() requires a name string as its first argument", call)
        name = args[0].value
        if name in self.flow_names:
            raise self.error(f"Duplicate flow name '{name}'", call)
        self.flow_names.add(name)

        flow_id = None
        if len(args) == 3 and isinstance(args[1], StringLiteral):
            flow_id = args[1].value
        elif len(args) != 2:
            raise self.error(f"flow('{name}') expects a name, an optional id and a callback", call)
        callback = args[-1]
        if not isinstance(callback, ArrowFunction) or callback.expression is not None:
            raise self.error(f"flow('{name}') callback must be a block arrow function", call)

        description = None
        if statement.doc is not None:
            description, _ = parse_doc_comment(statement.doc)

        slices = []
        for inner in callback.body:
            if not isinstance(inner, ExpressionStatement):
                raise self.error(f"Unsupported statement in flow '{name}'", inner)
            slices.append(self._extract_slice(inner.expression))
        return Flow(name=name, slices=tuple(slices), id=flow_id, description=description)

    def _extract_slice(self, expression: Node) -> Slice:
        root, links = flatten_chain(expression)
        constructor = callee_name(root)
        if constructor not in SLICE_CONSTRUCTORS:
            raise self.error(f"Expected a slice constructor, got '{constructor or type(root).__name__}'", root)

        kind = SLICE_CONSTRUCTORS[constructor]
        args = root.arguments
        if not args or not isinstance(args[0], StringLiteral) or len(args) > 2:
            raise self.error(f"{constructor}() expects a name string and an optional id", root)
        if len(args) == 2 and not isinstance(args[1], StringLiteral):
            raise self.error(f"{constructor}() id must be a string", root)
        name = args[0].value
        slice_id = args[1].value if len(args) == 2 else None

        self.slice_name = name
        try:
            fields: Dict[str, Any] = {}
            for link in links:
                method = link.callee.property
                if method in fields:
                    raise self.error(f"'.{method}()' is called more than once", link)
                if method == "stream":
                    fields["stream"] = self._string_argument(link, method)
                elif method == "client":
                    fields["client"] = self._extract_client(link)
                elif method == "request":
                    fields["request"] = self._extract_request(link)
                elif method == "server":
                    fields["server"] = self._extract_server(link, kind)
                else:
                    raise self.error(f"Unknown slice method '.{method}()'", link)
        finally:
            self.slice_name = None

        return Slice(
            kind=kind,
            name=name,
            server=fields.get("server", Server()),
            id=slice_id,
            stream=fields.get("stream"),
            client=fields.get("client"),
            request=fields.get("request"),
        )

    def _string_argument(self, call: CallExpression, method: str) -> str:
        if len(call.arguments) != 1:
            raise self.error(f"'.{method}()' expects exactly one string", call)
        return self._text(call.arguments[0], f"'.{method}()' argument")

    def _text(self, node: Node, what: str) -> str:
        if isinstance(node, StringLiteral):
            return node.value
        if isinstance(node, TemplateLiteral) and not node.has_substitution:
            return node.value
        raise self.error(f"{what} must be a string literal", node)

    def _callback_body(self, node: Node, what: str) -> Tuple[Node, ...]:
        if not isinstance(node, ArrowFunction):
            raise self.error(f"{what} expects an arrow function", node)
        if node.expression is not None:
            return (ExpressionStatement(node.expression, line=node.line),)
        return node.body

    def _extract_client(self, call: CallExpression) -> Client:
        if len(call.arguments) != 1:
            raise self.error("'.client()' expects exactly one callback", call)

        description = None
        specs: List[str] = []
        for statement in self._callback_body(call.arguments[0], "'.client()'"):
            expression = getattr(statement, "expression", None)
            name = callee_name(expression)
            if name == "specs":
                title, body = self._specs_block(expression)
                if description is None:
                    description = title
                for inner in body:
                    specs.append(self._should(inner))
            elif name == "should":
                specs.append(self._should(statement))
            else:
                raise self.error("Only specs() and should() are allowed in '.client()'", statement)
        return Client(description=description or "", specs=tuple(specs))

    def _specs_block(self, call: CallExpression) -> tuple:
        """Return (title, body statements) of a `specs([title,] callback)` call."""
        args = call.arguments
        if len(args) == 1:
            return "", self._callback_body(args[0], "specs()")
        if len(args) == 2:
            return self._text(args[0], "specs() title"), self._callback_body(args[1], "specs()")
        raise self.error("specs() expects an optional title and a callback", call)

    def _should(self, statement: Node) -> str:
        expression = getattr(statement, "expression", None)
        if callee_name(expression) != "should" or len(expression.arguments) != 1:
            raise self.error("Expected should('<text>')", statement)
        return self._text(expression.arguments[0], "should() text")

    def _extract_request(self, call: CallExpression) -> str:
        if len(call.arguments) != 1:
            raise self.error("'.request()' expects exactly one argument", call)
        argument = call.arguments[0]
        if isinstance(argument, TaggedTemplate):
            if argument.template.has_substitution:
                raise self.error("Request templates cannot contain substitutions", argument)
            return argument.template.value
        return self._text(argument, "'.request()' argument")

    # -------------------------------------------------------------------------
    # Server: data pipeline and GWT specs
    # -------------------------------------------------------------------------

    def _extract_server(self, call: CallExpression, kind: SliceKind) -> Server:
        args = call.arguments
        if not 1 <= len(args) <= 2:
            raise self.error("'.server()' expects a callback and an optional description", call)
        description = self._text(args[1], "'.server()' description") if len(args) == 2 else ""

        gwt: List[GWT] = []
        data: List[Any] = []
        for statement in self._callback_body(args[0], "'.server()'"):
            expression = getattr(statement, "expression", None)
            name = callee_name(expression)
            if name == "data":
                data.extend(self._extract_data(expression))
            elif name == "specs":
                _, body = self._specs_block(expression)
                for inner in body:
                    gwt.append(self._extract_gwt(getattr(inner, "expression", inner), kind))
            elif isinstance(expression, CallExpression):
                gwt.append(self._extract_gwt(expression, kind))
            else:
                raise self.error("Unsupported statement in '.server()'", statement)
        return Server(description=description, gwt=tuple(gwt), data=tuple(data))

    def _extract_data(self, call: CallExpression) -> List[Any]:
        if len(call.arguments) != 1 or not isinstance(call.arguments[0], ArrayLiteral):
            raise self.error("data() expects an array of sink() and source() chains", call)
        return [self._extract_pipeline_entry(item) for item in call.arguments[0].elements]

    def _extract_pipeline_entry(self, node: Node):
        root, links = flatten_chain(node)
        origin_name = callee_name(root)
        if origin_name not in ("sink", "source") or not links:
            raise self.error("Pipeline entries must start with sink() or source()", node)

        first = links[0]
        method = first.callee.property
        if method not in _TARGET_METHODS:
            raise self.error(f"Expected .event(), .command() or .state() after {origin_name}()", first)
        target = MessageTarget(_TARGET_METHODS[method], self._string_argument(first, method))

        destination = None
        origin = None
        with_state = None
        instructions = None
        for link in links[1:]:
            method = link.callee.property
            if method == "additionalInstructions":
                instructions = self._string_argument(link, method)
            elif origin_name == "sink" and method.startswith("to"):
                if destination is not None:
                    raise self.error("A sink has exactly one destination", link)
                destination = self._destination(link, method)
            elif origin_name == "sink" and method == "withState":
                if len(link.arguments) != 1:
                    raise self.error("'.withState()' expects one source() chain", link)
                with_state = self._extract_pipeline_entry(link.arguments[0])
                if not isinstance(with_state, DataSource):
                    raise self.error("'.withState()' expects a source() chain", link)
            elif origin_name == "source" and method.startswith("from"):
                if origin is not None:
                    raise self.error("A source has exactly one origin", link)
                origin = self._origin(link, method)
            else:
                raise self.error(f"Unknown pipeline method '.{method}()'", link)

        if origin_name == "sink":
            if destination is None:
                raise self.error(f"sink() for '{target.name}' has no destination", node)
            return DataSink(target, destination, with_state, instructions)
        if origin is None:
            raise self.error(f"source() for '{target.name}' has no origin", node)
        return DataSource(target, origin, instructions)

    def _systems(self, call: CallExpression) -> Tuple[Tuple[str, ...], Tuple[Node, ...]]:
        """Split leading identifier arguments (integration systems) from the rest."""
        systems = []
        rest = list(call.arguments)
        while rest and isinstance(rest[0], Identifier):
            systems.append(rest.pop(0).name)
        if not systems:
            raise self.error("Integration calls name at least one integration", call)
        for system in systems:
            if system not in self.referenced_systems:
                self.referenced_systems.append(system)
        return tuple(systems), tuple(rest)

    def _destination(self, call: CallExpression, method: str):
        if method == "toStream":
            return StreamDestination(self._string_argument(call, method))
        if method == "toDatabase":
            return DatabaseDestination(self._string_argument(call, method))
        if method == "toTopic":
            return TopicDestination(self._string_argument(call, method))
        if method == "toIntegration":
            systems, rest = self._systems(call)
            if not rest:
                return IntegrationDestination(systems)
            if len(rest) != 2:
                raise self.error("'.toIntegration()' takes a message name and a message type", call)
            message_type = self._text(rest[1], "integration message type")
            if message_type not in ("command", "query", "reaction"):
                raise self.error(f"Unknown integration message type '{message_type}'", call)
            message = IntegrationMessage(self._text(rest[0], "integration message name"), message_type)
            return IntegrationDestination(systems, message)
        raise self.error(f"Unknown sink destination '.{method}()'", call)

    def _origin(self, call: CallExpression, method: str):
        args = call.arguments
        if method == "fromProjection":
            if len(args) != 2:
                raise self.error("'.fromProjection()' expects a projection name and an id field", call)
            return ProjectionOrigin(self._text(args[0], "projection name"), self._text(args[1], "id field"))
        if method == "fromReadModel":
            return ReadModelOrigin(self._string_argument(call, method))
        if method == "fromDatabase":
            if not 1 <= len(args) <= 2:
                raise self.error("'.fromDatabase()' expects a collection and an optional query", call)
            query = self._literal(args[1]) if len(args) == 2 else None
            return DatabaseOrigin(self._text(args[0], "collection"), query)
        if method == "fromApi":
            if not 1 <= len(args) <= 2:
                raise self.error("'.fromApi()' expects an endpoint and an optional method", call)
            http_method = self._text(args[1], "API method") if len(args) == 2 else None
            return ApiOrigin(self._text(args[0], "endpoint"), http_method)
        if method == "fromIntegration":
            systems, rest = self._systems(call)
            if rest:
                raise self.error("'.fromIntegration()' only takes integrations", call)
            return IntegrationOrigin(systems)
        raise self.error(f"Unknown source origin '.{method}()'", call)

    def _extract_gwt(self, expression: Node, kind: SliceKind) -> GWT:
        root, links = flatten_chain(expression)
        root_name = callee_name(root)
        if root_name not in ("given", "when"):
            raise self.error("Expected a given(...) or when(...) chain", expression)

        steps = [(root_name, root)] + [(link.callee.property, link) for link in links]
        parts: Dict[str, Node] = {}
        last_index = -1
        for name, call in steps:
            if name not in _GWT_ORDER:
                raise self.error(f"Unknown step '.{name}()' in Given-When-Then chain", call)
            index = _GWT_ORDER.index(name)
            if index <= last_index:
                raise self.error(f"'{name}' is out of order in Given-When-Then chain", call)
            if len(call.arguments) != 1:
                raise self.error(f"{name}() expects exactly one argument", call)
            last_index = index
            parts[name] = call.arguments[0]
        if "then" not in parts:
            raise self.error("Given-When-Then chain has no .then(...)", expression)

        when_node = parts.get("when")
        if when_node is None:
            shape = SliceKind.QUERY
        elif isinstance(when_node, ArrayLiteral):
            shape = SliceKind.REACT
        else:
            shape = SliceKind.COMMAND
        if shape != kind:
            raise self.error(
                f"Given-When-Then chain is shaped like a {shape.value} slice "
                f"but the slice is a {kind.value} slice",
                expression,
            )

        given = ()
        if "given" in parts:
            given = tuple(self._example(item) for item in self._items(parts["given"]))

        when = None
        if kind == SliceKind.COMMAND:
            when = self._example(when_node, expected=MessageKind.COMMAND)
        elif kind == SliceKind.REACT:
            when = tuple(self._example(item, expected=MessageKind.EVENT) for item in when_node.elements)

        then = []
        for item in self._items(parts["then"]):
            if isinstance(item, ObjectLiteral):
                if kind != SliceKind.COMMAND:
                    raise self.error("Error outcomes are only allowed in command slices", item)
                then.append(self._error_spec(item))
            else:
                then.append(self._example(item))
        return GWT(then=tuple(then), given=given, when=when)

    def _items(self, node: Node) -> Tuple[Node, ...]:
        if isinstance(node, ArrayLiteral):
            return node.elements
        return (node,)

    def _error_spec(self, node: ObjectLiteral) -> ErrorSpec:
        data = self._literal(node)
        unknown = set(data) - {"errorType", "message"}
        if unknown or "errorType" not in data:
            raise self.error("Error outcomes are {errorType, message?} objects", node)
        try:
            error_type = ErrorType(data["errorType"])
        except ValueError:
            raise self.error(f"Unknown errorType '{data['errorType']}'", node)
        message = data.get("message")
        if message is not None and not isinstance(message, str):
            raise self.error("Error message must be a string", node)
        return ErrorSpec(error_type, message)

    # -------------------------------------------------------------------------
    # Examples and literals
    # -------------------------------------------------------------------------

    def _example(self, node: Node, expected: Optional[MessageKind] = None) -> Example:
        if not (
            isinstance(node, CallExpression)
            and isinstance(node.callee, MemberExpression)
            and isinstance(node.callee.object, Identifier)
            and node.callee.object.name in NAMESPACES
        ):
            raise self.error("Expected Events.X(...), Commands.X(...) or State.X(...)", node)

        namespace = node.callee.object.name
        kind = NAMESPACES[namespace]
        if expected is not None and kind != expected:
            wanted = next(ns for ns, k in NAMESPACES.items() if k == expected)
            raise self.error(f"Expected {wanted}.X(...) here, got {namespace}.{node.callee.property}", node)

        if len(node.arguments) > 1:
            raise self.error(f"{namespace}.{node.callee.property}() takes at most one argument", node)
        data: Dict[str, Any] = {}
        if node.arguments:
            if not isinstance(node.arguments[0], ObjectLiteral):
                raise self.error("Example data must be an object literal", node.arguments[0])
            data = self._literal(node.arguments[0])

        ref = self.declared.resolve(node.callee.property)
        self._check_message_kind(ref, kind, data, node)
        return Example(ref=ref, example_data=data)

    def _check_message_kind(self, ref: str, kind: MessageKind, data: Dict[str, Any], node: Node) -> None:
        declared = next((m for m in self.declared.messages if m.name == ref), None)
        existing = declared or self.stubs.get(ref)
        if existing is not None and existing.kind != kind:
            raise self.error(
                f"'{ref}' is declared as {existing.kind.value} but used as {kind.value}",
                node,
            )
        if declared is not None:
            return
        stub = infer_message(ref, kind, data)
        if existing is None or len(stub.fields) > len(existing.fields):
            self.stubs[ref] = stub

    def _literal(self, node: Node) -> Any:
        """Convert a literal expression to plain JSON-compatible data."""
        if isinstance(node, StringLiteral):
            return node.value
        if isinstance(node, TemplateLiteral):
            if node.has_substitution:
                raise self.error("Template literals with ${...} are not literal data", node)
            return node.value
        if isinstance(node, NumberLiteral):
            return node.value
        if isinstance(node, BooleanLiteral):
            return node.value
        if isinstance(node, NullLiteral):
            return None
        if isinstance(node, ArrayLiteral):
            return [self._literal(element) for element in node.elements]
        if isinstance(node, ObjectLiteral):
            result = {}
            for prop in node.properties:
                if isinstance(prop, SpreadElement):
                    raise self.error("Spread elements are not literal data", prop)
                if prop.shorthand:
                    raise self.error(f"Shorthand property '{prop.key}' is not literal data", prop)
                result[prop.key] = self._literal(prop.value)
            return result
        if isinstance(node, NewExpression):
            if (
                isinstance(node.callee, Identifier)
                and node.callee.name == "Date"
                and len(node.arguments) == 1
                and isinstance(node.arguments[0], StringLiteral)
            ):
                return node.arguments[0].value
            raise self.error("Only new Date('<ISO string>') is accepted as literal data", node)
        if isinstance(node, SpreadElement):
            raise self.error("Spread elements are not literal data", node)
        if isinstance(node, Identifier):
            raise self.error(f"Identifier '{node.name}' is not literal data", node)
        if isinstance(node, Property):
            return self._literal(node.value)
        raise self.error(f"{type(node).__name__} is not literal data", node)


def _is_builders_call(node: Optional[Node]) -> bool:
    if node is None:
        return False
    root, _ = flatten_chain(node)
    return callee_name(root) == "createBuilders"
