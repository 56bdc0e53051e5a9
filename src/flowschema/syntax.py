"""
Syntax Tree for Flow DSL Source

The extractor never works on raw text: source is tokenized and parsed into
the small tree defined here, then the tree is walked.

Only the subset of the language that flow files actually use is modelled:
    - Imports and variable declarations
    - Call chains (`command('x').server(() => {...})`)
    - Member access (`Events.ItemCreated`)
    - Literals (objects, arrays, strings, numbers, booleans, null)
    - Template literals and tagged templates (`gql\\`...\\``)
    - Arrow functions used as callbacks

ARCHITECTURAL RULE:
    Nodes are structure only. Interpretation of calls (what `flow` or
    `given` mean) belongs to the extractor.
"""

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union


class Node(ABC):
    """
    Base class for all syntax nodes.

    Every concrete node carries a `line` attribute (1-based) used in error
    messages. It is excluded from equality so that trees parsed from
    differently formatted source still compare equal.
    """
    pass


@dataclass(frozen=True)
class Identifier(Node):
    name: str
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class StringLiteral(Node):
    value: str
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class TemplateLiteral(Node):
    """
    A backtick string.

    Properties:
        value: Cooked text (escapes resolved)
        has_substitution: True when the template contains `${...}`
    """

    value: str
    has_substitution: bool = False
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class NumberLiteral(Node):
    value: Union[int, float]
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class BooleanLiteral(Node):
    value: bool
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class NullLiteral(Node):
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class SpreadElement(Node):
    argument: Node
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class ArrayLiteral(Node):
    elements: Tuple[Node, ...] = ()
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class Property(Node):
    """
    One `key: value` entry of an object literal.

    Shorthand properties (`{ id }`) are kept with `shorthand=True` and an
    Identifier value so the extractor can reject them with a clear message.
    """

    key: str
    value: Node
    shorthand: bool = False
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class ObjectLiteral(Node):
    properties: Tuple[Union[Property, SpreadElement], ...] = ()
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class MemberExpression(Node):
    """`object.property`"""

    object: Node
    property: str
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class CallExpression(Node):
    """
    A call, possibly with explicit type arguments.

    Example:
        createBuilders().events<A | B>()

    The outer call has callee MemberExpression(CallExpression(...), "events")
    and type_arguments "A | B" (raw source text).
    """

    callee: Node
    arguments: Tuple[Node, ...] = ()
    type_arguments: Optional[str] = None
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class NewExpression(Node):
    callee: Node
    arguments: Tuple[Node, ...] = ()
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class TaggedTemplate(Node):
    tag: Node
    template: TemplateLiteral
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class ArrowFunction(Node):
    """
    `() => { ... }` or `() => expr`.

    Parameters are not modelled. A block body is stored in `body`; an
    expression body in `expression`.
    """

    body: Tuple["Statement", ...] = ()
    expression: Optional[Node] = None
    line: int = field(default=0, compare=False)


# =============================================================================
# STATEMENTS
# =============================================================================


@dataclass(frozen=True)
class ExpressionStatement(Node):
    expression: Node
    doc: Optional[str] = None
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class ReturnStatement(Node):
    argument: Optional[Node] = None
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class VariableDeclaration(Node):
    """
    `const x = init` or `const { A, B } = init`.

    Properties:
        kind: "const", "let" or "var"
        names: Bound names (one entry for a plain identifier)
        init: Initializer expression, if any
    """

    kind: str
    names: Tuple[str, ...]
    init: Optional[Node] = None
    doc: Optional[str] = None
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class ImportSpecifier(Node):
    """
    One named import: `name`, `name as alias` or `type name`.

    `local` is the name bound in the importing module.
    """

    name: str
    alias: Optional[str] = None
    type_only: bool = False
    line: int = field(default=0, compare=False)

    @property
    def local(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True)
class ImportDeclaration(Node):
    """
    Example:
        import { command, type Event } from '@auto-engineer/flow';

    Properties:
        module: Module specifier string
        specifiers: Named imports
        default: Default import binding, if any
        namespace: `* as ns` binding, if any
        type_only: True for `import type { ... }`
        doc: Raw doc comment directly above the statement
    """

    module: str
    specifiers: Tuple[ImportSpecifier, ...] = ()
    default: Optional[str] = None
    namespace: Optional[str] = None
    type_only: bool = False
    doc: Optional[str] = None
    line: int = field(default=0, compare=False)


Statement = Union[ExpressionStatement, ReturnStatement, VariableDeclaration, ImportDeclaration]


@dataclass(frozen=True)
class Program(Node):
    body: Tuple[Any, ...] = ()
    line: int = field(default=0, compare=False)


def callee_name(node: Node) -> Optional[str]:
    """
    Return the identifier a call is made on, or None.

        flow(...)            -> "flow"
        Events.Foo(...)      -> None (member call)
    """
    if isinstance(node, CallExpression) and isinstance(node.callee, Identifier):
        return node.callee.name
    return None


def flatten_chain(node: Node) -> Tuple[Node, Tuple[CallExpression, ...]]:
    """
    Unroll a method chain into its root call and the chained calls.

    Example:
        command('x').stream('s').server(fn)

    Returns:
        (CallExpression(command), (CallExpression(.stream), CallExpression(.server)))

    The root is the innermost expression that is not a `.method(...)` call.
    """
    links = []
    current = node
    while (
        isinstance(current, CallExpression)
        and isinstance(current.callee, MemberExpression)
    ):
        links.append(current)
        current = current.callee.object
    links.reverse()
    return current, tuple(links)
