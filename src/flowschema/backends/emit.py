"""
Literal emission helpers shared by the flow source generators.

Turns JSON-compatible Python values into flow DSL literal text:

    {"id": "x", "tags": ["a"], "qty": 2}  ->  { id: 'x', tags: ['a'], qty: 2 }
"""

import math
import re
from typing import Any, Dict, List, Set

from flowschema.errors import CodegenError
from flowschema.model import Message, MessageKind

NAMESPACE_BY_KIND = {
    MessageKind.EVENT: "Events",
    MessageKind.COMMAND: "Commands",
    MessageKind.STATE: "State",
}


class EmitContext:
    """
    Names referenced while rendering one flow file.

    Generators record every DSL function they call and every message they
    construct; the imports and builders declarations are computed from it
    after all flows have been rendered.
    """

    def __init__(self):
        self.functions: Set[str] = set()
        self.messages: Dict[MessageKind, List[str]] = {kind: [] for kind in MessageKind}

    def use_function(self, name: str) -> None:
        self.functions.add(name)

    def use_message(self, message: Message) -> None:
        names = self.messages[message.kind]
        if message.name not in names:
            names.append(message.name)

    @property
    def has_messages(self) -> bool:
        return any(self.messages.values())


IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
    "\v": "\\v",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def is_identifier(name: str) -> bool:
    return bool(IDENTIFIER_RE.match(name))


def quote_string(value: str) -> str:
    """Render a single-quoted string literal."""
    out = []
    for char in value:
        if char in _ESCAPES:
            out.append(_ESCAPES[char])
        elif ord(char) < 0x20:
            out.append(f"\\x{ord(char):02x}")
        else:
            out.append(char)
    return "'" + "".join(out) + "'"


def quote_template(value: str) -> str:
    """Render a backtick template without substitutions."""
    escaped = value.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")
    return f"`{escaped}`"


def property_key(key: str) -> str:
    return key if is_identifier(key) else quote_string(key)


def to_literal(value: Any) -> str:
    """
    Render a JSON-compatible value as a DSL literal.

    Raises:
        CodegenError: Values that have no literal form (NaN, infinities,
            non-JSON types, non-string keys)
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise CodegenError(f"Cannot emit non-finite number {value!r}")
        return repr(value)
    if isinstance(value, str):
        return quote_string(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        parts = []
        for key, item in value.items():
            if not isinstance(key, str):
                raise CodegenError(f"Object keys must be strings, got {key!r}")
            parts.append(f"{property_key(key)}: {to_literal(item)}")
        return "{ " + ", ".join(parts) + " }"
    raise CodegenError(f"Cannot emit value of type {type(value).__name__}")
