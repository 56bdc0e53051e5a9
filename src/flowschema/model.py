"""
Core Schema Model Objects

Defines the canonical, DSL-independent representation of a flow project.

These are pure data classes representing:
    - Messages (commands, events, state) and their fields
    - Examples and error outcomes used by Given-When-Then specs
    - Data pipeline entries (sinks and sources)
    - Slices (command / query / react units of behavior)
    - Flows (named business capabilities)
    - SchemaModel (root container)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about the flow DSL surface syntax
        - Are immutable (frozen dataclasses, tuple collections)
        - Are fully serializable
        - Represent structure, not behavior
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class MessageKind(Enum):
    """Kinds of message a flow can declare."""
    COMMAND = "command"
    EVENT = "event"
    STATE = "state"


class SliceKind(Enum):
    """
    Explicit slice tag.

    Assigned once by the extractor. Every consumer switches on this value
    instead of re-inferring it from the shape of the GWT block.
    """
    COMMAND = "command"
    QUERY = "query"
    REACT = "react"


class ErrorType(Enum):
    """Error outcomes a command slice may specify."""
    ILLEGAL_STATE = "IllegalStateError"
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFoundError"


# =============================================================================
# MESSAGES
# =============================================================================


@dataclass(frozen=True)
class Field:
    """
    A single field of a message.

    Properties:
        name: Field identifier (e.g., "itemId")
        type: Type expression as text (e.g., "string", "Array<{id: string}>")
        required: False for optional fields (`name?: type`)
        description: Human-readable description (optional)
        default_value: JSON-compatible default (optional)
    """

    name: str
    type: str
    required: bool = True
    description: Optional[str] = None
    default_value: Any = None


@dataclass(frozen=True)
class MessageMetadata:
    version: int = 1


@dataclass(frozen=True)
class Message:
    """
    A command, event or state (read model) type with its field schema.

    Message names are unique across the whole system.
    """

    name: str
    kind: MessageKind
    fields: Tuple[Field, ...] = ()
    description: Optional[str] = None
    metadata: MessageMetadata = field(default_factory=MessageMetadata)


@dataclass(frozen=True)
class Integration:
    """
    An external system referenced by the flows.

    Properties:
        name: Identifier the DSL uses for the integration (e.g., "ProductCatalog")
        source: Module the integration is imported from
        description: Human-readable description (optional)
    """

    name: str
    source: str
    description: Optional[str] = None


# =============================================================================
# EXAMPLES (Given-When-Then)
# =============================================================================


@dataclass(frozen=True)
class Example:
    """
    A reference to a message plus literal example data.

    Example:
        Events.ItemCreated({id: 'x'})

    Becomes:
        Example(ref="ItemCreated", example_data={"id": "x"})

    IMPORTANT:
        Whether the example renders as Events/Commands/State is decided by
        the kind of the referenced message, not stored here.
    """

    ref: str
    example_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorSpec:
    """An expected error outcome in a `then` list."""

    error_type: ErrorType
    message: Optional[str] = None


ThenItem = Union[Example, ErrorSpec]


@dataclass(frozen=True)
class GWT:
    """
    One Given-When-Then block.

    Shape by slice kind:
        command: given (optional events/state), when = single Example,
                 then = events and/or ErrorSpecs
        react:   when = tuple of event Examples, then = commands
        query:   given = events, when = None, then = state
    """

    then: Tuple[ThenItem, ...] = ()
    given: Tuple[Example, ...] = ()
    when: Union[Example, Tuple[Example, ...], None] = None


# =============================================================================
# DATA PIPELINE
# =============================================================================


@dataclass(frozen=True)
class MessageTarget:
    """Message a pipeline entry reads or writes."""

    kind: MessageKind
    name: str


@dataclass(frozen=True)
class IntegrationMessage:
    """Message handed to an integration; `type` is command, query or reaction."""

    name: str
    type: str


@dataclass(frozen=True)
class StreamDestination:
    pattern: str


@dataclass(frozen=True)
class IntegrationDestination:
    systems: Tuple[str, ...]
    message: Optional[IntegrationMessage] = None


@dataclass(frozen=True)
class DatabaseDestination:
    collection: str


@dataclass(frozen=True)
class TopicDestination:
    name: str


Destination = Union[StreamDestination, IntegrationDestination, DatabaseDestination, TopicDestination]


@dataclass(frozen=True)
class ProjectionOrigin:
    name: str
    id_field: str


@dataclass(frozen=True)
class ReadModelOrigin:
    name: str


@dataclass(frozen=True)
class DatabaseOrigin:
    collection: str
    query: Any = None


@dataclass(frozen=True)
class ApiOrigin:
    endpoint: str
    method: Optional[str] = None


@dataclass(frozen=True)
class IntegrationOrigin:
    systems: Tuple[str, ...]


Origin = Union[ProjectionOrigin, ReadModelOrigin, DatabaseOrigin, ApiOrigin, IntegrationOrigin]


@dataclass(frozen=True)
class DataSource:
    """Inbound data: `source().state('X').fromProjection(...)`."""

    target: MessageTarget
    origin: Origin
    additional_instructions: Optional[str] = None


@dataclass(frozen=True)
class DataSink:
    """Outbound data: `sink().event('X').toStream(...)`."""

    target: MessageTarget
    destination: Destination
    with_state: Optional[DataSource] = None
    additional_instructions: Optional[str] = None


PipelineEntry = Union[DataSink, DataSource]


# =============================================================================
# SLICES AND FLOWS
# =============================================================================


@dataclass(frozen=True)
class Client:
    """Client-facing behavior: a title and its `should(...)` statements."""

    description: str = ""
    specs: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Server:
    description: str = ""
    gwt: Tuple[GWT, ...] = ()
    data: Tuple[PipelineEntry, ...] = ()


@dataclass(frozen=True)
class Slice:
    """
    One vertical unit of behavior.

    Properties:
        kind: Explicit SliceKind tag
        name: Slice title (e.g., "Create item")
        id: Optional stable identifier
        stream: Optional event stream pattern (command slices)
        client: Optional client behavior
        request: Optional request document (GraphQL text)
        server: Server behavior (GWT blocks and data pipeline)
    """

    kind: SliceKind
    name: str
    server: Server = field(default_factory=Server)
    id: Optional[str] = None
    stream: Optional[str] = None
    client: Optional[Client] = None
    request: Optional[str] = None


@dataclass(frozen=True)
class Flow:
    """A named business capability composed of slices."""

    name: str
    slices: Tuple[Slice, ...] = ()
    id: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class SchemaModel:
    """
    Root container for one compile (or decompile) call.

    Everything the code generator emits MUST be derivable from this object
    alone. It is produced fresh on every compile and never mutated.

    INVARIANTS:
        - Message names are unique
        - Every Example ref resolves to a declared message
        - Flow names are unique
    """

    flows: Tuple[Flow, ...] = ()
    messages: Tuple[Message, ...] = ()
    integrations: Tuple[Integration, ...] = ()

    def get_message(self, name: str) -> Optional[Message]:
        """
        Retrieve a message by name.

        Returns:
            Message object or None if not found
        """
        for message in self.messages:
            if message.name == name:
                return message
        return None

    def get_flow(self, name: str) -> Optional[Flow]:
        for flow in self.flows:
            if flow.name == name:
                return flow
        return None

    def get_integration(self, name: str) -> Optional[Integration]:
        for integration in self.integrations:
            if integration.name == name:
                return integration
        return None


def iter_gwt_examples(gwt: GWT):
    """Yield every Example of a GWT block in given, when, then order."""
    for example in gwt.given:
        yield example
    if isinstance(gwt.when, Example):
        yield gwt.when
    elif gwt.when is not None:
        for example in gwt.when:
            yield example
    for item in gwt.then:
        if isinstance(item, Example):
            yield item


def models_equal(a: SchemaModel, b: SchemaModel) -> bool:
    """
    Structural equality of two schema models.

    Messages and integrations are compared as sets keyed by name; flows,
    slices and example data keep their order.
    """
    if a.flows != b.flows:
        return False
    if sorted(a.messages, key=lambda m: m.name) != sorted(b.messages, key=lambda m: m.name):
        return False
    return sorted(a.integrations, key=lambda i: i.name) == sorted(b.integrations, key=lambda i: i.name)
