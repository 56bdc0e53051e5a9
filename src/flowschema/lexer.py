"""
Tokenizer for flow DSL source.

Produces a flat token list for the parser. Comments are dropped, except
that a `/** ... */` doc comment is attached to the token that follows it
so the parser can hand descriptions to the extractor.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from flowschema.errors import FlowParseError


class TokenType(Enum):
    IDENTIFIER = "identifier"
    STRING = "string"
    TEMPLATE = "template"
    NUMBER = "number"
    PUNCT = "punct"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    """
    A single lexical token.

    Properties:
        type: Token category
        value: Identifier name, cooked string value, number, or punctuator
        line: 1-based line of the first character
        column: 1-based column of the first character
        start: Offset of the first character in the source
        end: Offset just past the last character
        doc: Raw doc comment immediately preceding this token, if any
        has_substitution: Template tokens only, True when `${` occurs
    """

    type: TokenType
    value: Any
    line: int
    column: int
    start: int
    end: int
    doc: Optional[str] = None
    has_substitution: bool = False

    def is_punct(self, value: str) -> bool:
        return self.type == TokenType.PUNCT and self.value == value

    def is_identifier(self, name: Optional[str] = None) -> bool:
        if self.type != TokenType.IDENTIFIER:
            return False
        return name is None or self.value == name


_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
)
_MULTI_PUNCT = ("...", "=>", "?.", "??")
_SINGLE_PUNCT = set("{}()[];,:.<>=?|&+-*/!%@^~")

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


class _Cursor:
    """Position tracking over the source text."""

    def __init__(self, source: str, file_path: str, first_line: int):
        self.source = source
        self.file_path = file_path
        self.pos = 0
        self.line = first_line
        self.line_start = 0

    def error(self, reason: str) -> FlowParseError:
        return FlowParseError(reason, file_path=self.file_path, line=self.line)

    def advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.pos < len(self.source) and self.source[self.pos] == "\n":
                self.line += 1
                self.line_start = self.pos + 1
            self.pos += 1

    @property
    def column(self) -> int:
        return self.pos - self.line_start + 1


def _read_escape(cursor: _Cursor) -> str:
    """Consume one escape sequence (cursor on the backslash) and return its value."""
    source = cursor.source
    cursor.advance()
    if cursor.pos >= len(source):
        raise cursor.error("Unterminated escape sequence")
    char = source[cursor.pos]

    if char in _SIMPLE_ESCAPES:
        cursor.advance()
        return _SIMPLE_ESCAPES[char]
    if char == "\n":
        # line continuation
        cursor.advance()
        return ""
    if char == "x":
        digits = source[cursor.pos + 1:cursor.pos + 3]
        if len(digits) != 2 or not re.fullmatch(r"[0-9a-fA-F]{2}", digits):
            raise cursor.error("Invalid \\x escape")
        cursor.advance(3)
        return chr(int(digits, 16))
    if char == "u":
        if source.startswith("{", cursor.pos + 1):
            close = source.find("}", cursor.pos + 2)
            digits = source[cursor.pos + 2:close] if close != -1 else ""
            if not re.fullmatch(r"[0-9a-fA-F]{1,6}", digits):
                raise cursor.error("Invalid \\u{...} escape")
            cursor.advance(close - cursor.pos + 1)
            return chr(int(digits, 16))
        digits = source[cursor.pos + 1:cursor.pos + 5]
        if not re.fullmatch(r"[0-9a-fA-F]{4}", digits):
            raise cursor.error("Invalid \\u escape")
        cursor.advance(5)
        return chr(int(digits, 16))

    cursor.advance()
    return char


def _read_string(cursor: _Cursor, quote: str) -> str:
    source = cursor.source
    cursor.advance()
    chars: List[str] = []
    while True:
        if cursor.pos >= len(source) or source[cursor.pos] == "\n":
            raise cursor.error("Unterminated string literal")
        char = source[cursor.pos]
        if char == quote:
            cursor.advance()
            return "".join(chars)
        if char == "\\":
            chars.append(_read_escape(cursor))
        else:
            chars.append(char)
            cursor.advance()


def _skip_substitution(cursor: _Cursor) -> None:
    """Skip a `${ ... }` block inside a template (cursor on `$`)."""
    source = cursor.source
    cursor.advance(2)
    depth = 1
    quote = None
    while cursor.pos < len(source):
        char = source[cursor.pos]
        if quote:
            if char == "\\":
                cursor.advance(2)
                continue
            if char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                cursor.advance()
                return
        cursor.advance()
    raise cursor.error("Unterminated template substitution")


def _read_template(cursor: _Cursor) -> tuple:
    """Read a backtick template. Returns (cooked_value, has_substitution)."""
    source = cursor.source
    cursor.advance()
    chars: List[str] = []
    has_substitution = False
    while True:
        if cursor.pos >= len(source):
            raise cursor.error("Unterminated template literal")
        char = source[cursor.pos]
        if char == "`":
            cursor.advance()
            return "".join(chars), has_substitution
        if char == "\\":
            chars.append(_read_escape(cursor))
        elif char == "$" and source.startswith("${", cursor.pos):
            has_substitution = True
            start = cursor.pos
            _skip_substitution(cursor)
            chars.append(source[start:cursor.pos])
        else:
            chars.append(char)
            cursor.advance()


def _parse_number(text: str):
    if text[:2] in ("0x", "0X"):
        return int(text, 16)
    if any(c in text for c in ".eE"):
        return float(text)
    return int(text)


def tokenize(source: str, file_path: str = "<source>", first_line: int = 1) -> List[Token]:
    """
    Split flow source into tokens.

    Args:
        source: Source text
        file_path: Used in error messages
        first_line: Line number of the first source line (for fragments)

    Returns:
        List of tokens, always terminated by an EOF token

    Raises:
        FlowParseError: Unterminated strings, templates or comments,
            or characters outside the supported subset
    """
    cursor = _Cursor(source, file_path, first_line)
    tokens: List[Token] = []
    pending_doc: Optional[str] = None

    while cursor.pos < len(source):
        char = source[cursor.pos]

        if char.isspace():
            cursor.advance()
            continue

        if source.startswith("//", cursor.pos):
            newline = source.find("\n", cursor.pos)
            cursor.advance((newline if newline != -1 else len(source)) - cursor.pos)
            continue

        if source.startswith("/*", cursor.pos):
            close = source.find("*/", cursor.pos + 2)
            if close == -1:
                raise cursor.error("Unterminated block comment")
            raw = source[cursor.pos:close + 2]
            cursor.advance(close + 2 - cursor.pos)
            if raw.startswith("/**") and raw != "/**/":
                pending_doc = raw
            continue

        line, column, start = cursor.line, cursor.column, cursor.pos

        if char in "'\"":
            value = _read_string(cursor, char)
            tokens.append(Token(TokenType.STRING, value, line, column, start, cursor.pos, pending_doc))
        elif char == "`":
            value, has_substitution = _read_template(cursor)
            tokens.append(
                Token(TokenType.TEMPLATE, value, line, column, start, cursor.pos, pending_doc, has_substitution)
            )
        elif char.isdigit() or (char == "." and source[cursor.pos + 1:cursor.pos + 2].isdigit()):
            match = _NUMBER_RE.match(source, cursor.pos)
            text = match.group(0)
            cursor.advance(len(text))
            tokens.append(Token(TokenType.NUMBER, _parse_number(text), line, column, start, cursor.pos, pending_doc))
        else:
            match = _IDENTIFIER_RE.match(source, cursor.pos)
            if match:
                text = match.group(0)
                cursor.advance(len(text))
                tokens.append(Token(TokenType.IDENTIFIER, text, line, column, start, cursor.pos, pending_doc))
            else:
                punct = next((p for p in _MULTI_PUNCT if source.startswith(p, cursor.pos)), None)
                if punct is None:
                    if char not in _SINGLE_PUNCT:
                        raise cursor.error(f"Unexpected character {char!r}")
                    punct = char
                cursor.advance(len(punct))
                tokens.append(Token(TokenType.PUNCT, punct, line, column, start, cursor.pos, pending_doc))
        pending_doc = None

    tokens.append(Token(TokenType.EOF, None, cursor.line, cursor.column, cursor.pos, cursor.pos, pending_doc))
    return tokens
