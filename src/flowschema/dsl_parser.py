"""
Parser for flow DSL source (tokens -> syntax tree).

Recursive descent over the token list produced by `flowschema.lexer`.
Each `_parse_*` function takes the parse context and a position and
returns `(node, new_position)`.

Grammar (subset):
    program     := statement*
    statement   := import | ["export"] declaration | "return" [expr] | expr [";"]
    declaration := ("const" | "let" | "var") binding [":" type] ["=" expr] [";"]
    expr        := arrow | postfix
    postfix     := primary ( "." name | "?." name | ["<" types ">"] "(" args ")" | template )*
    primary     := literal | identifier | array | object | "(" expr ")" | "new" postfix
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from flowschema.errors import FlowParseError
from flowschema.lexer import Token, TokenType, tokenize
from flowschema.syntax import (
    ArrayLiteral,
    ArrowFunction,
    BooleanLiteral,
    CallExpression,
    ExpressionStatement,
    Identifier,
    ImportDeclaration,
    ImportSpecifier,
    MemberExpression,
    NewExpression,
    Node,
    NullLiteral,
    NumberLiteral,
    ObjectLiteral,
    Program,
    Property,
    ReturnStatement,
    SpreadElement,
    StringLiteral,
    TaggedTemplate,
    TemplateLiteral,
    VariableDeclaration,
)


_DECLARATION_KEYWORDS = ("const", "let", "var")
_OPENERS = {"(": ")", "[": "]", "{": "}", "<": ">"}


@dataclass
class _ParseContext:
    tokens: List[Token]
    source: str
    file_path: str

    def error(self, reason: str, pos: int) -> FlowParseError:
        token = self.tokens[min(pos, len(self.tokens) - 1)]
        return FlowParseError(reason, file_path=self.file_path, line=token.line)


def parse_program(source: str, file_path: str = "<source>") -> Program:
    """
    Parse flow DSL source into a Program node.

    Args:
        source: Source text (type declarations may already be blanked out)
        file_path: Used in error messages

    Returns:
        Program with top-level statements in source order

    Raises:
        FlowParseError: On any syntax the parser does not support
    """
    ctx = _ParseContext(tokenize(source, file_path), source, file_path)
    statements = []
    pos = 0
    while ctx.tokens[pos].type != TokenType.EOF:
        statement, pos = _parse_statement(ctx, pos)
        if statement is not None:
            statements.append(statement)
    return Program(tuple(statements), line=1)


def _expect_punct(ctx: _ParseContext, pos: int, value: str) -> int:
    token = ctx.tokens[pos]
    if not token.is_punct(value):
        found = token.value if token.type != TokenType.EOF else "end of input"
        raise ctx.error(f"Expected '{value}', got '{found}'", pos)
    return pos + 1


def _expect_string(ctx: _ParseContext, pos: int) -> tuple:
    token = ctx.tokens[pos]
    if token.type != TokenType.STRING:
        raise ctx.error("Expected string literal", pos)
    return token.value, pos + 1


def _expect_identifier(ctx: _ParseContext, pos: int) -> tuple:
    token = ctx.tokens[pos]
    if token.type != TokenType.IDENTIFIER:
        raise ctx.error(f"Expected identifier, got '{token.value}'", pos)
    return token.value, pos + 1


def _end_statement(ctx: _ParseContext, pos: int) -> int:
    """Accept `;`, or an implicit end at a line break, `}` or end of input."""
    token = ctx.tokens[pos]
    if token.is_punct(";"):
        return pos + 1
    if token.type == TokenType.EOF or token.is_punct("}"):
        return pos
    if pos > 0 and token.line > ctx.tokens[pos - 1].line:
        return pos
    raise ctx.error(f"Unexpected token '{token.value}'", pos)


def _find_closing(ctx: _ParseContext, pos: int) -> Optional[int]:
    """
    Return the index of the token closing the bracket at `pos`, or None.

    Angle brackets only nest with each other; `=>` is its own token so
    function types inside type arguments do not unbalance the count.
    """
    opener = ctx.tokens[pos].value
    stack = [_OPENERS[opener]]
    index = pos + 1
    while index < len(ctx.tokens):
        token = ctx.tokens[index]
        if token.type == TokenType.EOF:
            return None
        if token.type == TokenType.PUNCT:
            if token.value in _OPENERS and (token.value != "<" or stack[-1] == ">"):
                stack.append(_OPENERS[token.value])
            elif token.value == stack[-1]:
                stack.pop()
                if not stack:
                    return index
            elif token.value in ")]}" and stack[-1] == ">":
                return None
        index += 1
    return None


# =============================================================================
# STATEMENTS
# =============================================================================


def _parse_statement(ctx: _ParseContext, pos: int) -> tuple:
    token = ctx.tokens[pos]
    doc = token.doc

    if token.is_punct(";"):
        return None, pos + 1

    if token.is_identifier("import") and not ctx.tokens[pos + 1].is_punct("("):
        return _parse_import(ctx, pos, doc)

    if token.is_identifier("export"):
        pos += 1
        if ctx.tokens[pos].is_identifier("default"):
            raise ctx.error("Default exports are not supported in flow files", pos)
        token = ctx.tokens[pos]
        doc = doc or token.doc
        if not any(token.is_identifier(k) for k in _DECLARATION_KEYWORDS):
            raise ctx.error(f"Unsupported export of '{token.value}'", pos)

    if any(token.is_identifier(k) for k in _DECLARATION_KEYWORDS):
        return _parse_variable_declaration(ctx, pos, doc)

    if token.is_identifier("return"):
        line = token.line
        pos += 1
        next_token = ctx.tokens[pos]
        if next_token.is_punct(";") or next_token.is_punct("}") or next_token.line > line:
            return ReturnStatement(None, line=line), _end_statement(ctx, pos)
        argument, pos = _parse_expression(ctx, pos)
        return ReturnStatement(argument, line=line), _end_statement(ctx, pos)

    expression, pos = _parse_expression(ctx, pos)
    return ExpressionStatement(expression, doc=doc, line=token.line), _end_statement(ctx, pos)


def _parse_import(ctx: _ParseContext, pos: int, doc: Optional[str]) -> tuple:
    """
    Parse one import declaration.

    Supported forms:
        import 'module';
        import Default from 'module';
        import * as ns from 'module';
        import { a, b as c, type D } from 'module';
        import type { A, B } from 'module';
        import Default, { a } from 'module';
    """
    line = ctx.tokens[pos].line
    pos += 1

    if ctx.tokens[pos].type == TokenType.STRING:
        module, pos = _expect_string(ctx, pos)
        return ImportDeclaration(module, doc=doc, line=line), _end_statement(ctx, pos)

    type_only = False
    if ctx.tokens[pos].is_identifier("type") and not ctx.tokens[pos + 1].is_identifier("from"):
        type_only = True
        pos += 1

    default = None
    namespace = None
    specifiers: List[ImportSpecifier] = []

    if ctx.tokens[pos].type == TokenType.IDENTIFIER:
        default, pos = _expect_identifier(ctx, pos)
        if ctx.tokens[pos].is_punct(","):
            pos += 1

    if ctx.tokens[pos].is_punct("*"):
        pos += 1
        if not ctx.tokens[pos].is_identifier("as"):
            raise ctx.error("Expected 'as' after '*' in import", pos)
        namespace, pos = _expect_identifier(ctx, pos + 1)
    elif ctx.tokens[pos].is_punct("{"):
        pos += 1
        while not ctx.tokens[pos].is_punct("}"):
            specifier, pos = _parse_import_specifier(ctx, pos, type_only)
            specifiers.append(specifier)
            if ctx.tokens[pos].is_punct(","):
                pos += 1
            elif not ctx.tokens[pos].is_punct("}"):
                raise ctx.error("Expected ',' or '}' in import list", pos)
        pos += 1

    if not ctx.tokens[pos].is_identifier("from"):
        raise ctx.error("Expected 'from' in import declaration", pos)
    module, pos = _expect_string(ctx, pos + 1)

    declaration = ImportDeclaration(
        module,
        specifiers=tuple(specifiers),
        default=default,
        namespace=namespace,
        type_only=type_only,
        doc=doc,
        line=line,
    )
    return declaration, _end_statement(ctx, pos)


def _parse_import_specifier(ctx: _ParseContext, pos: int, type_only: bool) -> tuple:
    line = ctx.tokens[pos].line
    if (
        ctx.tokens[pos].is_identifier("type")
        and ctx.tokens[pos + 1].type == TokenType.IDENTIFIER
        and not ctx.tokens[pos + 1].is_identifier("as")
    ):
        type_only = True
        pos += 1
    name, pos = _expect_identifier(ctx, pos)
    alias = None
    if ctx.tokens[pos].is_identifier("as"):
        alias, pos = _expect_identifier(ctx, pos + 1)
    return ImportSpecifier(name, alias=alias, type_only=type_only, line=line), pos


def _parse_variable_declaration(ctx: _ParseContext, pos: int, doc: Optional[str]) -> tuple:
    kind = ctx.tokens[pos].value
    line = ctx.tokens[pos].line
    pos += 1

    names: List[str] = []
    if ctx.tokens[pos].is_punct("{"):
        pos += 1
        while not ctx.tokens[pos].is_punct("}"):
            name, pos = _expect_identifier(ctx, pos)
            if ctx.tokens[pos].is_punct(":"):
                # renamed binding `{ a: b }` binds b
                name, pos = _expect_identifier(ctx, pos + 1)
            names.append(name)
            if ctx.tokens[pos].is_punct(","):
                pos += 1
            elif not ctx.tokens[pos].is_punct("}"):
                raise ctx.error("Expected ',' or '}' in destructuring pattern", pos)
        pos += 1
    else:
        name, pos = _expect_identifier(ctx, pos)
        names.append(name)

    if ctx.tokens[pos].is_punct(":"):
        pos = _skip_type_annotation(ctx, pos + 1)

    init = None
    if ctx.tokens[pos].is_punct("="):
        init, pos = _parse_expression(ctx, pos + 1)

    declaration = VariableDeclaration(kind, tuple(names), init=init, doc=doc, line=line)
    return declaration, _end_statement(ctx, pos)


def _skip_type_annotation(ctx: _ParseContext, pos: int) -> int:
    """Skip a type annotation up to a top-level `=`, `;`, `,` or closing bracket."""
    while True:
        token = ctx.tokens[pos]
        if token.type == TokenType.EOF:
            raise ctx.error("Unterminated type annotation", pos)
        if token.type == TokenType.PUNCT:
            if token.value in ("=", ";", ",", ")", "]", "}"):
                return pos
            if token.value in _OPENERS:
                close = _find_closing(ctx, pos)
                if close is None:
                    raise ctx.error("Unbalanced brackets in type annotation", pos)
                pos = close
        pos += 1


# =============================================================================
# EXPRESSIONS
# =============================================================================


def _parse_expression(ctx: _ParseContext, pos: int) -> tuple:
    token = ctx.tokens[pos]

    # x => ...
    if token.type == TokenType.IDENTIFIER and ctx.tokens[pos + 1].is_punct("=>"):
        return _parse_arrow_body(ctx, pos + 2, token.line)

    # async (...) => ...
    if token.is_identifier("async") and ctx.tokens[pos + 1].is_punct("("):
        close = _find_closing(ctx, pos + 1)
        if close is not None and ctx.tokens[close + 1].is_punct("=>"):
            return _parse_arrow_body(ctx, close + 2, token.line)

    # (...) => ...
    if token.is_punct("("):
        close = _find_closing(ctx, pos)
        if close is not None:
            after = close + 1
            if ctx.tokens[after].is_punct(":"):
                after = _skip_type_annotation_until_arrow(ctx, after + 1)
            if ctx.tokens[after].is_punct("=>"):
                return _parse_arrow_body(ctx, after + 1, token.line)

    expression, pos = _parse_postfix(ctx, pos)

    # `expr as T` / `expr satisfies T` carry no runtime meaning
    while ctx.tokens[pos].is_identifier("as") or ctx.tokens[pos].is_identifier("satisfies"):
        pos = _skip_type_annotation(ctx, pos + 1)

    return expression, pos


def _skip_type_annotation_until_arrow(ctx: _ParseContext, pos: int) -> int:
    while not ctx.tokens[pos].is_punct("=>"):
        token = ctx.tokens[pos]
        if token.type == TokenType.EOF:
            raise ctx.error("Expected '=>'", pos)
        if token.type == TokenType.PUNCT and token.value in _OPENERS:
            close = _find_closing(ctx, pos)
            if close is None:
                raise ctx.error("Unbalanced brackets in return type", pos)
            pos = close
        pos += 1
    return pos


def _parse_arrow_body(ctx: _ParseContext, pos: int, line: int) -> tuple:
    if ctx.tokens[pos].is_punct("{"):
        pos += 1
        statements = []
        while not ctx.tokens[pos].is_punct("}"):
            if ctx.tokens[pos].type == TokenType.EOF:
                raise ctx.error("Unterminated function body", pos)
            statement, pos = _parse_statement(ctx, pos)
            if statement is not None:
                statements.append(statement)
        return ArrowFunction(body=tuple(statements), line=line), pos + 1

    expression, pos = _parse_expression(ctx, pos)
    return ArrowFunction(expression=expression, line=line), pos


def _parse_arguments(ctx: _ParseContext, pos: int) -> tuple:
    """Parse `( arg, ... )` starting at the `(` token."""
    pos = _expect_punct(ctx, pos, "(")
    arguments = []
    while not ctx.tokens[pos].is_punct(")"):
        if ctx.tokens[pos].is_punct("..."):
            line = ctx.tokens[pos].line
            argument, pos = _parse_expression(ctx, pos + 1)
            arguments.append(SpreadElement(argument, line=line))
        else:
            argument, pos = _parse_expression(ctx, pos)
            arguments.append(argument)
        if ctx.tokens[pos].is_punct(","):
            pos += 1
        elif not ctx.tokens[pos].is_punct(")"):
            raise ctx.error("Expected ',' or ')' in argument list", pos)
    return tuple(arguments), pos + 1


def _parse_postfix(ctx: _ParseContext, pos: int) -> tuple:
    expression, pos = _parse_primary(ctx, pos)

    while True:
        token = ctx.tokens[pos]

        if token.is_punct(".") or token.is_punct("?."):
            name_token = ctx.tokens[pos + 1]
            if name_token.type != TokenType.IDENTIFIER:
                raise ctx.error("Expected property name after '.'", pos + 1)
            expression = MemberExpression(expression, name_token.value, line=name_token.line)
            pos += 2
            continue

        if token.is_punct("("):
            arguments, pos = _parse_arguments(ctx, pos)
            expression = CallExpression(expression, arguments, line=token.line)
            continue

        if token.is_punct("<"):
            close = _find_closing(ctx, pos)
            if close is not None and ctx.tokens[close + 1].is_punct("("):
                type_arguments = ctx.source[ctx.tokens[pos + 1].start:ctx.tokens[close].start].strip()
                arguments, pos = _parse_arguments(ctx, close + 1)
                expression = CallExpression(expression, arguments, type_arguments=type_arguments, line=token.line)
                continue
            raise ctx.error("Comparison operators are not supported in flow files", pos)

        if token.type == TokenType.TEMPLATE:
            template = TemplateLiteral(token.value, token.has_substitution, line=token.line)
            expression = TaggedTemplate(expression, template, line=token.line)
            pos += 1
            continue

        if token.is_punct("!") and not ctx.tokens[pos + 1].is_punct("="):
            # non-null assertion
            pos += 1
            continue

        return expression, pos


def _parse_primary(ctx: _ParseContext, pos: int) -> tuple:
    token = ctx.tokens[pos]

    if token.type == TokenType.EOF:
        raise ctx.error("Unexpected end of input", pos)

    if token.type == TokenType.STRING:
        return StringLiteral(token.value, line=token.line), pos + 1

    if token.type == TokenType.TEMPLATE:
        return TemplateLiteral(token.value, token.has_substitution, line=token.line), pos + 1

    if token.type == TokenType.NUMBER:
        return NumberLiteral(token.value, line=token.line), pos + 1

    if token.is_punct("-") or token.is_punct("+"):
        operand = ctx.tokens[pos + 1]
        if operand.type != TokenType.NUMBER:
            raise ctx.error(f"Unary '{token.value}' is only supported on numbers", pos)
        value = -operand.value if token.value == "-" else operand.value
        return NumberLiteral(value, line=token.line), pos + 2

    if token.is_punct("["):
        return _parse_array(ctx, pos)

    if token.is_punct("{"):
        return _parse_object(ctx, pos)

    if token.is_punct("("):
        expression, pos = _parse_expression(ctx, pos + 1)
        return expression, _expect_punct(ctx, pos, ")")

    if token.type == TokenType.IDENTIFIER:
        if token.value in ("true", "false"):
            return BooleanLiteral(token.value == "true", line=token.line), pos + 1
        if token.value == "null":
            return NullLiteral(line=token.line), pos + 1
        if token.value == "new":
            return _parse_new(ctx, pos)
        return Identifier(token.value, line=token.line), pos + 1

    raise ctx.error(f"Unexpected token '{token.value}'", pos)


def _parse_new(ctx: _ParseContext, pos: int) -> tuple:
    line = ctx.tokens[pos].line
    name, pos = _expect_identifier(ctx, pos + 1)
    callee: Node = Identifier(name, line=line)
    while ctx.tokens[pos].is_punct("."):
        member, pos = _expect_identifier(ctx, pos + 1)
        callee = MemberExpression(callee, member, line=line)
    arguments: Tuple[Node, ...] = ()
    if ctx.tokens[pos].is_punct("("):
        arguments, pos = _parse_arguments(ctx, pos)
    return NewExpression(callee, arguments, line=line), pos


def _parse_array(ctx: _ParseContext, pos: int) -> tuple:
    line = ctx.tokens[pos].line
    pos += 1
    elements = []
    while not ctx.tokens[pos].is_punct("]"):
        if ctx.tokens[pos].is_punct("..."):
            spread_line = ctx.tokens[pos].line
            argument, pos = _parse_expression(ctx, pos + 1)
            elements.append(SpreadElement(argument, line=spread_line))
        else:
            element, pos = _parse_expression(ctx, pos)
            elements.append(element)
        if ctx.tokens[pos].is_punct(","):
            pos += 1
        elif not ctx.tokens[pos].is_punct("]"):
            raise ctx.error("Expected ',' or ']' in array literal", pos)
    return ArrayLiteral(tuple(elements), line=line), pos + 1


def _parse_object(ctx: _ParseContext, pos: int) -> tuple:
    line = ctx.tokens[pos].line
    pos += 1
    properties = []
    while not ctx.tokens[pos].is_punct("}"):
        token = ctx.tokens[pos]
        if token.is_punct("..."):
            argument, pos = _parse_expression(ctx, pos + 1)
            properties.append(SpreadElement(argument, line=token.line))
        else:
            if token.type == TokenType.IDENTIFIER or token.type == TokenType.STRING:
                key = token.value
            elif token.type == TokenType.NUMBER:
                key = str(token.value)
            else:
                raise ctx.error(f"Unsupported object key '{token.value}'", pos)
            pos += 1
            if ctx.tokens[pos].is_punct(":"):
                value, pos = _parse_expression(ctx, pos + 1)
                properties.append(Property(key, value, line=token.line))
            elif token.type == TokenType.IDENTIFIER:
                properties.append(Property(key, Identifier(key, line=token.line), shorthand=True, line=token.line))
            else:
                raise ctx.error(f"Expected ':' after object key '{key}'", pos)
        if ctx.tokens[pos].is_punct(","):
            pos += 1
        elif not ctx.tokens[pos].is_punct("}"):
            raise ctx.error("Expected ',' or '}' in object literal", pos)
    return ObjectLiteral(tuple(properties), line=line), pos + 1
