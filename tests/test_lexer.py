"""
Tests for the flow source tokenizer.
"""

import pytest

from flowschema.errors import FlowParseError
from flowschema.lexer import TokenType, tokenize


def values(source):
    return [t.value for t in tokenize(source) if t.type != TokenType.EOF]


class TestBasicTokens:
    def test_call_expression(self):
        assert values("flow('Items', () => {});") == [
            "flow", "(", "Items", ",", "(", ")", "=>", "{", "}", ")", ";",
        ]

    def test_always_ends_with_eof(self):
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_multi_character_punctuators(self):
        assert values("a?.b ?? c ...d") == ["a", "?.", "b", "??", "c", "...", "d"]

    def test_numbers(self):
        tokens = tokenize("42 3.5 0x1F 1e3 .5")
        assert [t.value for t in tokens[:-1]] == [42, 3.5, 31, 1000.0, 0.5]
        assert all(t.type == TokenType.NUMBER for t in tokens[:-1])

    def test_positions(self):
        tokens = tokenize("a\n  bc")
        assert (tokens[0].line, tokens[0].column) == (1, 1)
        assert (tokens[1].line, tokens[1].column) == (2, 3)
        assert (tokens[1].start, tokens[1].end) == (4, 6)

    def test_first_line_offset(self):
        tokens = tokenize("x\ny", first_line=10)
        assert [t.line for t in tokens[:-1]] == [10, 11]

    def test_unexpected_character(self):
        with pytest.raises(FlowParseError) as exc_info:
            tokenize("a # b", file_path="bad.flow.ts")
        assert exc_info.value.file_path == "bad.flow.ts"
        assert exc_info.value.line == 1


class TestStrings:
    def test_quotes_and_escapes(self):
        assert values(r"'it\'s' " + r'"tab\there"') == ["it's", "tab\there"]

    def test_unicode_escapes(self):
        assert values(r"'é\u{1F600}\x41'") == ["é\U0001F600A"]

    def test_line_continuation(self):
        assert values("'a\\\nb'") == ["ab"]

    def test_unterminated_string_reports_line(self):
        with pytest.raises(FlowParseError) as exc_info:
            tokenize("x\n'open")
        assert exc_info.value.line == 2

    def test_template_without_substitution(self):
        token = tokenize("`line one\nline two`")[0]
        assert token.type == TokenType.TEMPLATE
        assert token.value == "line one\nline two"
        assert not token.has_substitution

    def test_template_with_substitution(self):
        token = tokenize("`item-${ids['a'] + `x`}`")[0]
        assert token.has_substitution
        assert token.value == "item-${ids['a'] + `x`}"

    def test_escaped_substitution_is_literal(self):
        token = tokenize(r"`cost \${price}`")[0]
        assert token.value == "cost ${price}"
        assert not token.has_substitution


class TestComments:
    def test_comments_are_dropped(self):
        assert values("a // line\n/* block */ b") == ["a", "b"]

    def test_doc_comment_attaches_to_next_token(self):
        tokens = tokenize("/** Items flow */\nflow('Items')")
        assert tokens[0].value == "flow"
        assert tokens[0].doc == "/** Items flow */"
        assert tokens[1].doc is None

    def test_plain_block_comment_is_not_a_doc(self):
        tokens = tokenize("/* note */ flow")
        assert tokens[0].doc is None

    def test_unterminated_block_comment(self):
        with pytest.raises(FlowParseError):
            tokenize("/** never closed")
