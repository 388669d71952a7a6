"""
Tokenizer for PromQL expressions.

Produces a flat list of tokens terminated by an EOF token. Keywords are
recognised case-insensitively except inside label braces, where every word
is a plain identifier.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from ..util.errors import PromQLParseError


class TokenType(str, Enum):
    """Token kinds produced by the lexer."""
    EOF = "end of input"
    IDENTIFIER = "identifier"
    METRIC_IDENTIFIER = "metric identifier"
    NUMBER = "number"
    DURATION = "duration"
    STRING = "string"

    LEFT_PAREN = "("
    RIGHT_PAREN = ")"
    LEFT_BRACE = "{"
    RIGHT_BRACE = "}"
    LEFT_BRACKET = "["
    RIGHT_BRACKET = "]"
    COMMA = ","
    COLON = ":"
    AT = "@"

    # Arithmetic and comparison operators
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    POW = "^"
    EQLC = "=="
    NEQ = "!="
    LTE = "<="
    LSS = "<"
    GTE = ">="
    GTR = ">"

    # Label matching operators
    EQL = "="
    EQL_REGEX = "=~"
    NEQ_REGEX = "!~"

    # Keyword operators
    LAND = "and"
    LOR = "or"
    LUNLESS = "unless"
    ATAN2 = "atan2"

    # Modifiers
    BOOL = "bool"
    BY = "by"
    WITHOUT = "without"
    ON = "on"
    IGNORING = "ignoring"
    GROUP_LEFT = "group_left"
    GROUP_RIGHT = "group_right"
    OFFSET = "offset"
    START = "start"
    END = "end"

    AGGREGATOR = "aggregator"


AGGREGATORS = frozenset({
    "avg", "bottomk", "count", "count_values", "group", "limit_ratio", "limitk",
    "max", "min", "quantile", "stddev", "stdvar", "sum", "topk",
})

KEYWORDS: Dict[str, TokenType] = {
    t.value: t
    for t in (
        TokenType.LAND, TokenType.LOR, TokenType.LUNLESS, TokenType.ATAN2,
        TokenType.BOOL, TokenType.BY, TokenType.WITHOUT, TokenType.ON,
        TokenType.IGNORING, TokenType.GROUP_LEFT, TokenType.GROUP_RIGHT,
        TokenType.OFFSET, TokenType.START, TokenType.END,
    )
}

# Longest operators first so "=~" wins over "=".
OPERATORS: Dict[str, TokenType] = {
    t.value: t
    for t in sorted(
        (
            TokenType.EQLC, TokenType.NEQ, TokenType.LTE, TokenType.GTE,
            TokenType.EQL_REGEX, TokenType.NEQ_REGEX, TokenType.LSS, TokenType.GTR,
            TokenType.EQL, TokenType.ADD, TokenType.SUB, TokenType.MUL, TokenType.DIV,
            TokenType.MOD, TokenType.POW, TokenType.LEFT_PAREN, TokenType.RIGHT_PAREN,
            TokenType.LEFT_BRACE, TokenType.RIGHT_BRACE, TokenType.LEFT_BRACKET,
            TokenType.RIGHT_BRACKET, TokenType.COMMA, TokenType.COLON, TokenType.AT,
        ),
        key=lambda t: -len(t.value),
    )
}

_WORD_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_:]*")
_LABEL_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_DURATION_RE = re.compile(r"(?:[0-9]+(?:ms|[smhdwy]))+(?![a-zA-Z0-9_])")
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F]+"
    r"|(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?"
)
_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r",
    "t": "\t", "v": "\v", "\\": "\\", "'": "'", '"': '"',
}


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    pos: int

    def describe(self) -> str:
        if self.type is TokenType.EOF:
            return "end of input"
        if self.type in (TokenType.IDENTIFIER, TokenType.METRIC_IDENTIFIER,
                         TokenType.NUMBER, TokenType.DURATION, TokenType.STRING):
            return f"{self.type.value} {self.text!r}"
        return repr(self.text)


class Lexer:
    """Single-pass PromQL tokenizer."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.brace_depth = 0
        self.tokens: List[Token] = []

    def error(self, message: str, pos: int = None) -> PromQLParseError:
        return PromQLParseError(message, position=self.pos if pos is None else pos, query=self.text)

    def tokenize(self) -> List[Token]:
        text = self.text
        while True:
            self._skip_space_and_comments()
            if self.pos >= len(text):
                self.tokens.append(Token(TokenType.EOF, "", self.pos))
                return self.tokens

            ch = text[self.pos]
            if ch in "\"'`":
                self._lex_string(ch)
            elif ch.isdigit() or (ch == "." and self.pos + 1 < len(text) and text[self.pos + 1].isdigit()):
                self._lex_number_or_duration()
            elif ch.isalpha() or ch == "_":
                self._lex_word()
            else:
                self._lex_operator()

    def _skip_space_and_comments(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch.isspace():
                self.pos += 1
            elif ch == "#":
                newline = text.find("\n", self.pos)
                self.pos = len(text) if newline == -1 else newline + 1
            else:
                return

    def _emit(self, token_type: TokenType, text: str, start: int) -> None:
        self.tokens.append(Token(token_type, text, start))

    def _lex_word(self) -> None:
        start = self.pos
        if self.brace_depth > 0:
            match = _LABEL_RE.match(self.text, self.pos)
        else:
            match = _WORD_RE.match(self.text, self.pos)
        if match is None:
            raise self.error(f"unexpected character {self.text[self.pos]!r}")
        word = match.group(0)
        self.pos = match.end()

        if self.brace_depth > 0:
            self._emit(TokenType.IDENTIFIER, word, start)
            return
        if ":" in word:
            self._emit(TokenType.METRIC_IDENTIFIER, word, start)
            return

        lowered = word.lower()
        if lowered in ("inf", "nan"):
            self._emit(TokenType.NUMBER, word, start)
        elif lowered in KEYWORDS:
            self._emit(KEYWORDS[lowered], word, start)
        elif lowered in AGGREGATORS:
            self._emit(TokenType.AGGREGATOR, word, start)
        else:
            self._emit(TokenType.IDENTIFIER, word, start)

    def _lex_number_or_duration(self) -> None:
        start = self.pos
        duration = _DURATION_RE.match(self.text, self.pos)
        if duration:
            self.pos = duration.end()
            self._emit(TokenType.DURATION, duration.group(0), start)
            return

        number = _NUMBER_RE.match(self.text, self.pos)
        if number is None:
            raise self.error("bad number syntax")
        self.pos = number.end()
        if self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] == "_"):
            raise self.error(
                f"bad number or duration syntax: {self.text[start:self.pos + 1]!r}", start
            )
        self._emit(TokenType.NUMBER, number.group(0), start)

    def _lex_string(self, quote: str) -> None:
        start = self.pos
        self.pos += 1
        text = self.text

        if quote == "`":
            end = text.find("`", self.pos)
            if end == -1:
                raise self.error("unterminated raw string", start)
            self._emit(TokenType.STRING, text[self.pos:end], start)
            self.pos = end + 1
            return

        chars = []
        while True:
            if self.pos >= len(text):
                raise self.error("unterminated quoted string", start)
            ch = text[self.pos]
            if ch == quote:
                self.pos += 1
                break
            if ch == "\n":
                raise self.error("unterminated quoted string", start)
            if ch == "\\":
                chars.append(self._lex_escape())
                continue
            chars.append(ch)
            self.pos += 1
        self._emit(TokenType.STRING, "".join(chars), start)

    def _lex_escape(self) -> str:
        text = self.text
        escape_pos = self.pos
        self.pos += 1
        if self.pos >= len(text):
            raise self.error("escape sequence not terminated", escape_pos)
        ch = text[self.pos]
        self.pos += 1
        if ch in _ESCAPES:
            return _ESCAPES[ch]

        if ch in "xuU":
            width = {"x": 2, "u": 4, "U": 8}[ch]
            digits = text[self.pos:self.pos + width]
            if len(digits) != width or not all(c in "0123456789abcdefABCDEF" for c in digits):
                raise self.error(f"invalid escape sequence \\{ch}{digits}", escape_pos)
            self.pos += width
            code = int(digits, 16)
        elif ch in "01234567":
            digits = text[self.pos - 1:self.pos + 2]
            if len(digits) != 3 or not all(c in "01234567" for c in digits):
                raise self.error(f"invalid escape sequence \\{digits}", escape_pos)
            self.pos += 2
            code = int(digits, 8)
        else:
            raise self.error(f"unknown escape sequence \\{ch}", escape_pos)

        if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
            raise self.error("escape sequence is an invalid Unicode code point", escape_pos)
        return chr(code)

    def _lex_operator(self) -> None:
        start = self.pos
        for text, token_type in OPERATORS.items():
            if self.text.startswith(text, self.pos):
                self.pos += len(text)
                if token_type is TokenType.LEFT_BRACE:
                    self.brace_depth += 1
                elif token_type is TokenType.RIGHT_BRACE:
                    if self.brace_depth == 0:
                        raise self.error("unexpected right brace", start)
                    self.brace_depth -= 1
                self._emit(token_type, text, start)
                return
        raise self.error(f"unexpected character {self.text[self.pos]!r}")


def lex(text: str) -> List[Token]:
    """Tokenize ``text``; raises PromQLParseError on invalid input."""
    return Lexer(text).tokenize()
