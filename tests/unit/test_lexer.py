"""
Tests for the PromQL tokenizer.

Covers token classification, string escapes, number and duration forms,
and lexing failures.
"""

import pytest

from promlabels.promql.lexer import TokenType, lex
from promlabels.util.errors import PromQLParseError


def types(text):
    return [token.type for token in lex(text)]


class TestTokenClassification:
    """Test how words and symbols are classified."""

    def test_selector_inside_call(self):
        """Test a typical range query tokenizes fully."""
        assert types('rate(http_requests_total{job="api"}[5m])') == [
            TokenType.IDENTIFIER,
            TokenType.LEFT_PAREN,
            TokenType.IDENTIFIER,
            TokenType.LEFT_BRACE,
            TokenType.IDENTIFIER,
            TokenType.EQL,
            TokenType.STRING,
            TokenType.RIGHT_BRACE,
            TokenType.LEFT_BRACKET,
            TokenType.DURATION,
            TokenType.RIGHT_BRACKET,
            TokenType.RIGHT_PAREN,
            TokenType.EOF,
        ]

    def test_keywords_are_case_insensitive(self):
        """Test keywords and aggregators match regardless of case."""
        assert types("SUM By (job) (x) AND Y") == [
            TokenType.AGGREGATOR,
            TokenType.BY,
            TokenType.LEFT_PAREN,
            TokenType.IDENTIFIER,
            TokenType.RIGHT_PAREN,
            TokenType.LEFT_PAREN,
            TokenType.IDENTIFIER,
            TokenType.RIGHT_PAREN,
            TokenType.LAND,
            TokenType.IDENTIFIER,
            TokenType.EOF,
        ]

    def test_keywords_inside_braces_are_identifiers(self):
        """Test label names that collide with keywords."""
        tokens = lex('{by="x", offset!~"y"}')
        assert tokens[1].type is TokenType.IDENTIFIER
        assert tokens[1].text == "by"
        assert tokens[5].type is TokenType.IDENTIFIER
        assert tokens[6].type is TokenType.NEQ_REGEX

    def test_metric_identifier_with_colon(self):
        """Test recording rule names lex as metric identifiers."""
        tokens = lex("job:http_requests:rate5m")
        assert tokens[0].type is TokenType.METRIC_IDENTIFIER
        assert tokens[0].text == "job:http_requests:rate5m"

    def test_longest_operator_wins(self):
        """Test multi-character operators are not split."""
        assert types("a =~ b !~ c == d != e <= f >= g") == [
            TokenType.IDENTIFIER, TokenType.EQL_REGEX,
            TokenType.IDENTIFIER, TokenType.NEQ_REGEX,
            TokenType.IDENTIFIER, TokenType.EQLC,
            TokenType.IDENTIFIER, TokenType.NEQ,
            TokenType.IDENTIFIER, TokenType.LTE,
            TokenType.IDENTIFIER, TokenType.GTE,
            TokenType.IDENTIFIER, TokenType.EOF,
        ]

    def test_comments_are_skipped(self):
        """Test '#' comments run to end of line."""
        assert types("up # scrape health\n") == [TokenType.IDENTIFIER, TokenType.EOF]

    def test_token_positions(self):
        """Test tokens carry their byte offset."""
        tokens = lex("  up  ")
        assert tokens[0].pos == 2
        assert tokens[1].pos == 6


class TestLiterals:
    """Test numbers, durations and strings."""

    @pytest.mark.parametrize("text", ["1", "1.5", ".5", "1e3", "1.5E-3", "0x1F", "Inf", "NaN"])
    def test_numbers(self, text):
        """Test number literal forms."""
        tokens = lex(text)
        assert tokens[0].type is TokenType.NUMBER
        assert tokens[0].text == text

    @pytest.mark.parametrize("text", ["5m", "1h30m", "500ms", "2y", "1w2d"])
    def test_durations(self, text):
        """Test duration literal forms."""
        tokens = lex(text)
        assert tokens[0].type is TokenType.DURATION
        assert tokens[0].text == text

    def test_subquery_range_and_step(self):
        """Test the colon between range and step is its own token."""
        assert types("x[5m:1m]") == [
            TokenType.IDENTIFIER,
            TokenType.LEFT_BRACKET,
            TokenType.DURATION,
            TokenType.COLON,
            TokenType.DURATION,
            TokenType.RIGHT_BRACKET,
            TokenType.EOF,
        ]

    def test_double_quoted_escapes(self):
        """Test Go-style escapes in double-quoted strings."""
        token = lex(r'"a\"b\n\x41é"')[0]
        assert token.type is TokenType.STRING
        assert token.text == 'a"b\nAé'

    def test_single_quoted_string(self):
        """Test single quotes are equivalent to double quotes."""
        assert lex("'$job'")[0].text == "$job"

    def test_raw_string(self):
        """Test backtick strings keep backslashes."""
        assert lex(r"`\d+`")[0].text == r"\d+"


class TestLexErrors:
    """Test lexing failures raise parse errors with positions."""

    def test_unterminated_string(self):
        """Test a missing closing quote."""
        with pytest.raises(PromQLParseError) as exc_info:
            lex('up{job="api}')
        assert exc_info.value.position == 7

    def test_unbalanced_right_brace(self):
        """Test a stray closing brace."""
        with pytest.raises(PromQLParseError, match="unexpected right brace"):
            lex("up}")

    def test_unknown_escape(self):
        """Test an unsupported escape sequence."""
        with pytest.raises(PromQLParseError, match="unknown escape sequence"):
            lex(r'"\q"')

    def test_bad_number(self):
        """Test a number running into letters."""
        with pytest.raises(PromQLParseError, match="bad number or duration syntax"):
            lex("5mx")

    def test_unexpected_character(self):
        """Test characters outside the language."""
        with pytest.raises(PromQLParseError, match="unexpected character"):
            lex("up{device!=”}")
