"""
Message declarations and message inference.

Turns the type declarations located by the scanner into Message objects:

    /** Raised once an item is listed. */
    type ItemCreated = Event<'ItemCreated', {
      id: string;
      /** Display label */
      label?: string;
    }>;

Also resolves type aliases (`type Listed = ItemCreated;`) and infers
message stubs from example data for references that were never declared.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from flowschema.doc_comments import parse_doc_comment, tag_value
from flowschema.errors import FlowParseError
from flowschema.lexer import Token, TokenType, tokenize
from flowschema.model import Field, Message, MessageKind, MessageMetadata
from flowschema.type_decls import TypeDeclaration, leading_doc_comment


MESSAGE_WRAPPERS = {
    "Command": MessageKind.COMMAND,
    "Event": MessageKind.EVENT,
    "State": MessageKind.STATE,
}

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
_OPEN = "{[(<"
_CLOSE = "}])>"


@dataclass(frozen=True)
class DeclaredTypes:
    """
    Everything learned from the type declarations of one file.

    Properties:
        messages: Declared messages in source order
        type_names: Type name -> message name for message declarations
        aliases: Alias name -> resolved message name (aliases of
            non-message types are left out)
        doc_lines: 0-based line indexes of doc comments that belong to
            declarations (blanked together with the declarations)
    """

    messages: Tuple[Message, ...] = ()
    type_names: Dict[str, str] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)
    doc_lines: FrozenSet[int] = frozenset()

    def resolve(self, name: str) -> str:
        """Map a reference through type names and aliases to a message name."""
        if name in self.aliases:
            return self.aliases[name]
        if any(message.name == name for message in self.messages):
            return name
        return self.type_names.get(name, name)


def parse_type_declarations(
    lines: Sequence[str],
    declarations: Sequence[TypeDeclaration],
    file_path: str = "<source>",
) -> DeclaredTypes:
    """
    Parse scanned declarations into messages and aliases.

    Raises:
        FlowParseError: Unterminated declarations, malformed message types,
            duplicate messages, alias cycles
    """
    messages: List[Message] = []
    type_names: Dict[str, str] = {}
    raw_aliases: Dict[str, str] = {}
    doc_lines = set()
    seen_types = set()

    for declaration in declarations:
        line_no = declaration.start_line_idx + 1
        if not declaration.terminated:
            raise FlowParseError(
                f"Unterminated type declaration '{declaration.name}'",
                file_path=file_path,
                line=line_no,
            )
        if declaration.name in seen_types:
            raise FlowParseError(
                f"Duplicate type declaration '{declaration.name}'",
                file_path=file_path,
                line=line_no,
            )
        seen_types.add(declaration.name)

        doc = leading_doc_comment(lines, declaration.start_line_idx)
        raw_doc = None
        if doc is not None:
            doc_start, doc_end, raw_doc = doc
            doc_lines.update(range(doc_start, doc_end + 1))

        text = "\n".join(lines[declaration.start_line_idx:declaration.end_line_idx + 1])
        tokens = tokenize(text, file_path, first_line=line_no)
        parsed = _parse_declaration(tokens, text, file_path, raw_doc)
        if parsed is None:
            continue
        if isinstance(parsed, Message):
            if any(m.name == parsed.name for m in messages):
                raise FlowParseError(
                    f"Duplicate message declaration '{parsed.name}'",
                    file_path=file_path,
                    line=line_no,
                )
            messages.append(parsed)
            type_names[declaration.name] = parsed.name
        else:
            raw_aliases[declaration.name] = parsed

    message_names = frozenset(m.name for m in messages)
    aliases: Dict[str, str] = {}
    for alias in raw_aliases:
        target = resolve_alias(alias, raw_aliases, type_names, message_names, file_path)
        if target is not None:
            aliases[alias] = target

    return DeclaredTypes(tuple(messages), type_names, aliases, frozenset(doc_lines))


def resolve_alias(
    name: str,
    aliases: Dict[str, str],
    type_names: Dict[str, str],
    message_names: FrozenSet[str],
    file_path: str = "<source>",
    visited: FrozenSet[str] = frozenset(),
) -> Optional[str]:
    """
    Follow `type A = B;` chains to a message name.

    Pure recursion: the visited set is threaded through as an immutable
    argument, never shared between calls.

    Returns:
        The message name, or None when the chain ends at a type that is not
        a message (for example an imported type).

    Raises:
        FlowParseError: The chain loops back on itself
    """
    if name in visited:
        chain = " -> ".join(sorted(visited | {name}))
        raise FlowParseError(f"Circular type alias involving {chain}", file_path=file_path)
    if name in aliases:
        return resolve_alias(aliases[name], aliases, type_names, message_names, file_path, visited | {name})
    if name in type_names:
        return type_names[name]
    if name in message_names:
        return name
    return None


# =============================================================================
# DECLARATION PARSING
# =============================================================================


def _error(reason: str, token: Token, file_path: str) -> FlowParseError:
    return FlowParseError(reason, file_path=file_path, line=token.line)


def _skip_balanced(tokens: List[Token], pos: int, file_path: str) -> int:
    """Return the position just past the bracket group opening at `pos`."""
    depth = 0
    while pos < len(tokens):
        token = tokens[pos]
        if token.type == TokenType.EOF:
            break
        if token.type == TokenType.PUNCT:
            if token.value in _OPEN:
                depth += 1
            elif token.value in _CLOSE:
                depth -= 1
                if depth == 0:
                    return pos + 1
        pos += 1
    raise _error("Unbalanced brackets in type declaration", tokens[-1], file_path)


def _parse_declaration(tokens: List[Token], text: str, file_path: str, raw_doc: Optional[str]):
    """
    Parse one declaration.

    Returns:
        Message for `Event|Command|State<...>` declarations, the target name
        (str) for plain aliases, or None for any other type.
    """
    pos = 0
    if tokens[pos].is_identifier("export"):
        pos += 1
    pos += 1  # `type`
    type_name = tokens[pos].value
    pos += 1
    if tokens[pos].is_punct("<"):
        pos = _skip_balanced(tokens, pos, file_path)
    if not tokens[pos].is_punct("="):
        raise _error(f"Expected '=' in type declaration '{type_name}'", tokens[pos], file_path)
    pos += 1

    head = tokens[pos]
    if head.type == TokenType.IDENTIFIER and head.value in MESSAGE_WRAPPERS and tokens[pos + 1].is_punct("<"):
        return _parse_message(tokens, pos, text, file_path, type_name, raw_doc)

    if head.type == TokenType.IDENTIFIER:
        after = tokens[pos + 1]
        if after.is_punct(";") or after.type == TokenType.EOF:
            return head.value

    return None


def _parse_message(
    tokens: List[Token],
    pos: int,
    text: str,
    file_path: str,
    type_name: str,
    raw_doc: Optional[str],
) -> Message:
    kind = MESSAGE_WRAPPERS[tokens[pos].value]
    pos += 2

    name_token = tokens[pos]
    if name_token.type != TokenType.STRING:
        raise _error(
            f"Message type '{type_name}' must name its message with a string literal",
            name_token,
            file_path,
        )
    pos += 1
    if not tokens[pos].is_punct(","):
        raise _error(f"Expected ',' after message name in '{type_name}'", tokens[pos], file_path)
    pos += 1
    if not tokens[pos].is_punct("{"):
        raise _error(
            f"Message '{name_token.value}' must declare its fields inline as an object type",
            tokens[pos],
            file_path,
        )

    fields, pos = _parse_fields(tokens, pos + 1, text, file_path)

    description = None
    version = 1
    if raw_doc is not None:
        description, tags = parse_doc_comment(raw_doc)
        raw_version = tag_value(tags, "version")
        if raw_version is not None:
            if not raw_version.isdigit():
                raise _error(f"Invalid @version '{raw_version}' on '{type_name}'", name_token, file_path)
            version = int(raw_version)

    return Message(
        name=name_token.value,
        kind=kind,
        fields=tuple(fields),
        description=description,
        metadata=MessageMetadata(version=version),
    )


def _parse_fields(tokens: List[Token], pos: int, text: str, file_path: str) -> tuple:
    fields: List[Field] = []
    names = set()
    while not tokens[pos].is_punct("}"):
        token = tokens[pos]
        if token.type not in (TokenType.IDENTIFIER, TokenType.STRING):
            raise _error(f"Unexpected '{token.value}' in message fields", token, file_path)
        name = token.value
        if name in names:
            raise _error(f"Duplicate field '{name}'", token, file_path)
        names.add(name)
        pos += 1

        required = True
        if tokens[pos].is_punct("?"):
            required = False
            pos += 1
        if not tokens[pos].is_punct(":"):
            raise _error(f"Expected ':' after field '{name}'", tokens[pos], file_path)
        pos += 1

        type_text, pos = _read_type_text(tokens, pos, text, file_path)
        if not type_text:
            raise _error(f"Missing type for field '{name}'", token, file_path)

        description = None
        default_value = None
        if token.doc is not None:
            description, tags = parse_doc_comment(token.doc)
            raw_default = tag_value(tags, "default")
            if raw_default is not None:
                try:
                    default_value = json.loads(raw_default)
                except ValueError as e:
                    raise _error(f"Invalid @default for field '{name}': {e}", token, file_path)

        fields.append(Field(name, type_text, required, description, default_value))

        if tokens[pos].is_punct(";") or tokens[pos].is_punct(","):
            pos += 1
    return fields, pos + 1


def _read_type_text(tokens: List[Token], pos: int, text: str, file_path: str) -> tuple:
    """Collect a field type up to a top-level `;`, `,` or the closing `}`."""
    start = pos
    depth = 0
    while True:
        token = tokens[pos]
        if token.type == TokenType.EOF:
            raise _error("Unterminated message field list", token, file_path)
        if token.type == TokenType.PUNCT:
            if depth == 0 and token.value in (";", ",", "}"):
                break
            if token.value in _OPEN:
                depth += 1
            elif token.value in _CLOSE:
                depth -= 1
        pos += 1
    if pos == start:
        return "", pos
    raw = text[tokens[start].start:tokens[pos - 1].end]
    return normalize_type_text(raw), pos


def normalize_type_text(raw: str) -> str:
    """Collapse whitespace runs so multi-line types compare equal."""
    return re.sub(r"\s+", " ", raw).strip()


# =============================================================================
# INFERENCE
# =============================================================================


def infer_type(value: Any) -> str:
    """
    Infer a field type from example data.

    Example:
        >>> infer_type([{"id": "a", "qty": 2}])
        'Array<{id: string, qty: number}>'
    """
    if value is None:
        return "unknown"
    if isinstance(value, str) and _ISO_DATE_RE.match(value):
        return "Date"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        if not value:
            return "Array<unknown>"
        return f"Array<{infer_type(value[0])}>"
    if isinstance(value, dict):
        members = ", ".join(f"{key}: {infer_type(item)}" for key, item in value.items())
        return f"{{{members}}}"
    return "unknown"


def infer_message(name: str, kind: MessageKind, example_data: Dict[str, Any]) -> Message:
    """Build a message stub whose fields are inferred from example data."""
    fields = tuple(
        Field(name=key, type=infer_type(value), required=True)
        for key, value in example_data.items()
    )
    return Message(name=name, kind=kind, fields=fields)
