"""
PromQL parser.

A recursive-descent parser with precedence climbing for binary operators.
Besides building the AST it performs the static checks Prometheus applies
at parse time (function signatures, operand types, selector validity), so
any query accepted here is one Prometheus would accept too.
"""

import math
import re
from typing import List, Optional, Tuple

from ..util.errors import PromQLParseError
from .ast import (
    METRIC_NAME_LABEL,
    AggregateExpr,
    AtModifier,
    BinaryExpr,
    Call,
    Cardinality,
    Expr,
    Matcher,
    MatchType,
    MatrixSelector,
    NodeKind,
    NumberLiteral,
    ParenExpr,
    StringLiteral,
    SubqueryExpr,
    UnaryExpr,
    ValueType,
    VectorMatching,
    VectorSelector,
)
from .functions import get_function
from .lexer import Token, TokenType, lex

_PRECEDENCE = {
    TokenType.LOR: 1,
    TokenType.LAND: 2,
    TokenType.LUNLESS: 2,
    TokenType.EQLC: 3,
    TokenType.NEQ: 3,
    TokenType.LTE: 3,
    TokenType.LSS: 3,
    TokenType.GTE: 3,
    TokenType.GTR: 3,
    TokenType.ADD: 4,
    TokenType.SUB: 4,
    TokenType.MUL: 5,
    TokenType.DIV: 5,
    TokenType.MOD: 5,
    TokenType.ATAN2: 5,
    TokenType.POW: 6,
}

# Unary operators bind tighter than * and looser than ^: -a ^ b is -(a ^ b).
_UNARY_OPERAND_PRECEDENCE = _PRECEDENCE[TokenType.POW]

_COMPARISON_OPERATORS = frozenset({
    TokenType.EQLC, TokenType.NEQ, TokenType.LTE, TokenType.LSS, TokenType.GTE, TokenType.GTR,
})
_SET_OPERATORS = frozenset({TokenType.LAND, TokenType.LOR, TokenType.LUNLESS})

MATCH_TYPES = {
    TokenType.EQL: MatchType.EQUAL,
    TokenType.NEQ: MatchType.NOT_EQUAL,
    TokenType.EQL_REGEX: MatchType.REGEX,
    TokenType.NEQ_REGEX: MatchType.NOT_REGEX,
}

_PARAMETER_AGGREGATORS = frozenset({
    "bottomk", "count_values", "limit_ratio", "limitk", "quantile", "topk",
})

# Aggregator names and these keywords also name metrics where an operand is
# expected; "start" and "end" are only keywords after "@".
_SELECTOR_NAME_TOKENS = (
    TokenType.IDENTIFIER, TokenType.METRIC_IDENTIFIER, TokenType.START, TokenType.END,
    TokenType.AGGREGATOR, TokenType.BY, TokenType.WITHOUT, TokenType.OFFSET,
    TokenType.LAND, TokenType.LOR, TokenType.LUNLESS,
)

# Tokens after an aggregator name that make it an aggregation.
_AGGREGATION_OPENERS = (TokenType.LEFT_PAREN, TokenType.BY, TokenType.WITHOUT)

_LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")

_DURATION_RE = re.compile(
    r"^(?:([0-9]+)y)?(?:([0-9]+)w)?(?:([0-9]+)d)?(?:([0-9]+)h)?"
    r"(?:([0-9]+)m)?(?:([0-9]+)s)?(?:([0-9]+)ms)?$"
)
_DURATION_UNITS_MS = (
    1000 * 60 * 60 * 24 * 365,
    1000 * 60 * 60 * 24 * 7,
    1000 * 60 * 60 * 24,
    1000 * 60 * 60,
    1000 * 60,
    1000,
    1,
)
_MAX_TIMESTAMP_MS = 2 ** 63 - 1


def parse_duration(text: str) -> int:
    """Parse a Prometheus duration such as ``1h30m`` into milliseconds."""
    match = _DURATION_RE.match(text)
    if not text or match is None:
        raise ValueError(f"not a valid duration string: {text!r}")
    return sum(int(value) * unit for value, unit in zip(match.groups(), _DURATION_UNITS_MS) if value)


def parse_number(text: str) -> float:
    """Parse a PromQL number literal (decimal, float, hex, octal, Inf, NaN)."""
    lowered = text.lower()
    if lowered == "inf":
        return math.inf
    if lowered == "nan":
        return math.nan
    if lowered.startswith("0x"):
        return float(int(text, 16))
    if text.isdigit() and len(text) > 1 and text.startswith("0"):
        try:
            return float(int(text, 8))
        except ValueError:
            pass
    return float(text)


class Parser:
    """Parses one PromQL expression from text."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = lex(text)
        self.index = 0

    # Token helpers

    def error(self, message: str, token: Optional[Token] = None) -> PromQLParseError:
        token = token or self.peek()
        return PromQLParseError(message, position=token.pos, query=self.text)

    def peek(self, offset: int = 0) -> Token:
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.peek()
        if token.type is not TokenType.EOF:
            self.index += 1
        return token

    def accept(self, token_type: TokenType) -> Optional[Token]:
        if self.peek().type is token_type:
            return self.advance()
        return None

    def expect(self, token_type: TokenType, context: str) -> Token:
        token = self.peek()
        if token.type is not token_type:
            raise self.error(
                f"unexpected {token.describe()} in {context}, expected {token_type.value!r}", token
            )
        return self.advance()

    # Entry points

    def parse(self) -> Expr:
        if self.peek().type is TokenType.EOF:
            raise self.error("no expression found in input")
        expr = self.parse_expr()
        token = self.peek()
        if token.type is not TokenType.EOF:
            raise self.error(f"unexpected {token.describe()}", token)
        return expr

    def parse_expr(self, min_precedence: int = 1) -> Expr:
        lhs = self._parse_unary()
        while True:
            op_token = self.peek()
            precedence = _PRECEDENCE.get(op_token.type)
            if precedence is None or precedence < min_precedence:
                return lhs
            self.advance()
            return_bool, matching = self._parse_binary_modifiers()
            # ^ is right-associative, everything else left-associative
            next_precedence = precedence if op_token.type is TokenType.POW else precedence + 1
            rhs = self.parse_expr(next_precedence)
            lhs = self._new_binary_expr(op_token, lhs, rhs, return_bool, matching)

    # Operators

    def _parse_unary(self) -> Expr:
        token = self.peek()
        if token.type not in (TokenType.ADD, TokenType.SUB):
            return self._parse_postfix(self._parse_primary())

        self.advance()
        operand = self.parse_expr(_UNARY_OPERAND_PRECEDENCE)
        if operand.kind is NodeKind.NUMBER:
            if token.type is TokenType.SUB:
                operand.value = -operand.value
            return operand
        if operand.value_type not in (ValueType.SCALAR, ValueType.VECTOR):
            raise self.error(
                "unary expression only allowed on expressions of type scalar or instant vector, "
                f"got {operand.value_type.value!r}",
                token,
            )
        return UnaryExpr(op=token.type.value, expr=operand)

    def _parse_binary_modifiers(self) -> Tuple[bool, Optional[VectorMatching]]:
        return_bool = self.accept(TokenType.BOOL) is not None
        if self.peek().type not in (TokenType.ON, TokenType.IGNORING):
            return return_bool, None

        on = self.advance().type is TokenType.ON
        matching = VectorMatching(matching_labels=self._parse_grouping_labels(), on=on)
        group = self.peek()
        if group.type in (TokenType.GROUP_LEFT, TokenType.GROUP_RIGHT):
            self.advance()
            matching.card = (
                Cardinality.MANY_TO_ONE if group.type is TokenType.GROUP_LEFT
                else Cardinality.ONE_TO_MANY
            )
            if self.peek().type is TokenType.LEFT_PAREN:
                matching.include = self._parse_grouping_labels()
        return return_bool, matching

    def _new_binary_expr(
        self,
        op_token: Token,
        lhs: Expr,
        rhs: Expr,
        return_bool: bool,
        matching: Optional[VectorMatching],
    ) -> BinaryExpr:
        op_type = op_token.type
        lhs_type, rhs_type = lhs.value_type, rhs.value_type

        if return_bool and op_type not in _COMPARISON_OPERATORS:
            raise self.error("bool modifier can only be used on comparison operators", op_token)
        if (op_type in _COMPARISON_OPERATORS and not return_bool
                and lhs_type is ValueType.SCALAR and rhs_type is ValueType.SCALAR):
            raise self.error("comparisons between scalars must use BOOL modifier", op_token)

        for operand_type in (lhs_type, rhs_type):
            if operand_type not in (ValueType.SCALAR, ValueType.VECTOR):
                raise self.error(
                    "binary expression must contain only scalar and instant vector types", op_token
                )

        if lhs_type is ValueType.VECTOR and rhs_type is ValueType.VECTOR:
            if matching is None:
                matching = VectorMatching()
            if op_type in _SET_OPERATORS:
                if matching.card in (Cardinality.MANY_TO_ONE, Cardinality.ONE_TO_MANY):
                    raise self.error(f"no grouping allowed for {op_type.value!r} operation", op_token)
                matching.card = Cardinality.MANY_TO_MANY
            if matching.on:
                for label in matching.matching_labels:
                    if label in matching.include:
                        raise self.error(
                            f"label {label!r} must not occur in ON and GROUP clause at once",
                            op_token,
                        )
        else:
            if matching is not None and (matching.matching_labels or matching.on):
                raise self.error("vector matching only allowed between instant vectors", op_token)
            matching = None
            if op_type in _SET_OPERATORS:
                raise self.error(
                    f"set operator {op_type.value!r} not allowed in binary scalar expression",
                    op_token,
                )

        return BinaryExpr(
            op=op_type.value,
            lhs=lhs,
            rhs=rhs,
            return_bool=return_bool,
            vector_matching=matching,
        )

    # Primary expressions

    def _parse_primary(self) -> Expr:
        token = self.peek()
        token_type = token.type

        if token_type is TokenType.NUMBER:
            self.advance()
            return NumberLiteral(value=parse_number(token.text))
        if token_type is TokenType.STRING:
            self.advance()
            return StringLiteral(value=token.text)
        if token_type is TokenType.LEFT_PAREN:
            self.advance()
            expr = self.parse_expr()
            self.expect(TokenType.RIGHT_PAREN, "parenthesized expression")
            return ParenExpr(expr=expr)
        if token_type is TokenType.LEFT_BRACE:
            return self._parse_vector_selector()
        if token_type is TokenType.AGGREGATOR and self.peek(1).type in _AGGREGATION_OPENERS:
            return self._parse_aggregate()
        if token_type is TokenType.IDENTIFIER and self.peek(1).type is TokenType.LEFT_PAREN:
            return self._parse_call()
        if token_type in _SELECTOR_NAME_TOKENS:
            return self._parse_vector_selector()

        raise self.error(f"unexpected {token.describe()}", token)

    def _parse_call(self) -> Call:
        name_token = self.advance()
        func = get_function(name_token.text)
        if func is None:
            raise self.error(f"unknown function with name {name_token.text!r}", name_token)

        args = self._parse_call_body("function call")
        arity_error = func.check_arity(len(args))
        if arity_error:
            raise self.error(arity_error, name_token)
        for index, arg in enumerate(args):
            expected = func.arg_type(index)
            if arg.value_type is not expected:
                raise self.error(
                    f"expected type {expected.value} in call to function {func.name!r}, "
                    f"got {arg.value_type.value}",
                    name_token,
                )
        return Call(func=func, args=args)

    def _parse_call_body(self, context: str) -> List[Expr]:
        self.expect(TokenType.LEFT_PAREN, context)
        args: List[Expr] = []
        if self.accept(TokenType.RIGHT_PAREN):
            return args
        while True:
            args.append(self.parse_expr())
            if self.accept(TokenType.COMMA):
                if self.accept(TokenType.RIGHT_PAREN):
                    return args
                continue
            self.expect(TokenType.RIGHT_PAREN, context)
            return args

    def _parse_aggregate(self) -> AggregateExpr:
        op_token = self.advance()
        op = op_token.text.lower()

        grouping: List[str] = []
        without = False
        modifier_seen = False
        if self.peek().type in (TokenType.BY, TokenType.WITHOUT):
            without = self.advance().type is TokenType.WITHOUT
            grouping = self._parse_grouping_labels()
            modifier_seen = True

        args = self._parse_call_body("aggregation")

        if not modifier_seen and self.peek().type in (TokenType.BY, TokenType.WITHOUT):
            without = self.advance().type is TokenType.WITHOUT
            grouping = self._parse_grouping_labels()

        if not args:
            raise self.error("no arguments for aggregate expression provided", op_token)
        expected_args = 2 if op in _PARAMETER_AGGREGATORS else 1
        if len(args) != expected_args:
            raise self.error(
                "wrong number of arguments for aggregate expression provided, "
                f"expected {expected_args}, got {len(args)}",
                op_token,
            )

        param = args[0] if expected_args == 2 else None
        expr = args[-1]
        if expr.value_type is not ValueType.VECTOR:
            raise self.error(
                f"expected type instant vector in aggregation expression, got {expr.value_type.value}",
                op_token,
            )
        if param is not None:
            expected = ValueType.STRING if op == "count_values" else ValueType.SCALAR
            if param.value_type is not expected:
                raise self.error(
                    f"expected type {expected.value} in aggregation parameter, "
                    f"got {param.value_type.value}",
                    op_token,
                )

        return AggregateExpr(op=op, expr=expr, param=param, grouping=grouping, without=without)

    def _parse_grouping_labels(self) -> List[str]:
        self.expect(TokenType.LEFT_PAREN, "grouping opts")
        labels: List[str] = []
        if self.accept(TokenType.RIGHT_PAREN):
            return labels
        while True:
            token = self.advance()
            if token.type is TokenType.STRING or not _LABEL_NAME_RE.fullmatch(token.text):
                raise self.error(f"unexpected {token.describe()} in grouping opts, expected label", token)
            labels.append(token.text)
            if self.accept(TokenType.COMMA):
                if self.accept(TokenType.RIGHT_PAREN):
                    return labels
                continue
            self.expect(TokenType.RIGHT_PAREN, "grouping opts")
            return labels

    # Selectors

    def _parse_vector_selector(self) -> VectorSelector:
        name = ""
        name_token = self.peek()
        if name_token.type in _SELECTOR_NAME_TOKENS:
            name = self.advance().text

        matchers: List[Matcher] = []
        if self.peek().type is TokenType.LEFT_BRACE:
            matchers = self._parse_label_matchers()

        if name:
            for matcher in matchers:
                if matcher.name == METRIC_NAME_LABEL:
                    raise self.error(
                        f"metric name must not be set twice: {name!r} or {matcher.value!r}",
                        name_token,
                    )
            matchers.append(Matcher(name=METRIC_NAME_LABEL, type=MatchType.EQUAL, value=name))
        elif all(matcher.matches_empty() for matcher in matchers):
            raise self.error("vector selector must contain at least one non-empty matcher", name_token)

        return VectorSelector(name=name, label_matchers=matchers)

    def _parse_label_matchers(self) -> List[Matcher]:
        self.expect(TokenType.LEFT_BRACE, "label matching")
        matchers: List[Matcher] = []
        if self.accept(TokenType.RIGHT_BRACE):
            return matchers
        while True:
            name_token = self.advance()
            if name_token.type is not TokenType.IDENTIFIER:
                raise self.error(
                    f"unexpected {name_token.describe()} in label matching, expected label",
                    name_token,
                )
            op_token = self.advance()
            match_type = MATCH_TYPES.get(op_token.type)
            if match_type is None:
                raise self.error(
                    f"unexpected {op_token.describe()} in label matching, "
                    "expected label matching operator",
                    op_token,
                )
            value_token = self.advance()
            if value_token.type is not TokenType.STRING:
                raise self.error(
                    f"unexpected {value_token.describe()} in label matching, expected string",
                    value_token,
                )
            matchers.append(Matcher(name=name_token.text, type=match_type, value=value_token.text))

            if self.accept(TokenType.COMMA):
                if self.accept(TokenType.RIGHT_BRACE):
                    return matchers
                continue
            self.expect(TokenType.RIGHT_BRACE, "label matching")
            return matchers

    # Postfix modifiers

    def _parse_postfix(self, expr: Expr) -> Expr:
        while True:
            token_type = self.peek().type
            if token_type is TokenType.LEFT_BRACKET:
                expr = self._parse_range(expr)
            elif token_type is TokenType.OFFSET:
                self._parse_offset(expr)
            elif token_type is TokenType.AT:
                self._parse_at(expr)
            else:
                return expr

    def _parse_range(self, expr: Expr) -> Expr:
        open_token = self.advance()
        range_ms = self._parse_duration_token("range")

        if self.accept(TokenType.COLON):
            step_ms = 0
            if self.peek().type is TokenType.DURATION:
                step_ms = self._parse_duration_token("subquery step")
            self.expect(TokenType.RIGHT_BRACKET, "subquery selector")
            if expr.value_type is not ValueType.VECTOR:
                raise self.error(
                    f"subquery is only allowed on instant vector, got {expr.value_type.value} instead",
                    open_token,
                )
            return SubqueryExpr(expr=expr, range_ms=range_ms, step_ms=step_ms)

        self.expect(TokenType.RIGHT_BRACKET, "range selector")
        if expr.kind is not NodeKind.VECTOR_SELECTOR:
            raise self.error("ranges only allowed for vector selectors", open_token)
        if expr.has_modifiers():
            raise self.error("no offset modifiers allowed before range", open_token)
        return MatrixSelector(vector_selector=expr, range_ms=range_ms)

    def _parse_duration_token(self, context: str) -> int:
        token = self.expect(TokenType.DURATION, context)
        try:
            return parse_duration(token.text)
        except ValueError as e:
            raise self.error(str(e), token) from e

    def _modifier_target(self, expr: Expr, token: Token, modifier: str):
        if expr.kind in (NodeKind.VECTOR_SELECTOR, NodeKind.SUBQUERY):
            return expr
        if expr.kind is NodeKind.MATRIX_SELECTOR:
            return expr.vector_selector
        raise self.error(
            f"{modifier} modifier must be preceded by an instant vector selector "
            "or range vector selector or a subquery",
            token,
        )

    def _parse_offset(self, expr: Expr) -> None:
        offset_token = self.advance()
        sign = 1
        if self.accept(TokenType.SUB):
            sign = -1
        offset_ms = sign * self._parse_duration_token("offset")

        target = self._modifier_target(expr, offset_token, "offset")
        if target.offset_ms != 0:
            raise self.error("offset may not be set multiple times", offset_token)
        target.offset_ms = offset_ms

    def _parse_at(self, expr: Expr) -> None:
        at_token = self.advance()
        timestamp_ms = None
        start_or_end = None

        token = self.peek()
        if token.type in (TokenType.START, TokenType.END):
            self.advance()
            self.expect(TokenType.LEFT_PAREN, "@ modifier")
            self.expect(TokenType.RIGHT_PAREN, "@ modifier")
            start_or_end = AtModifier.START if token.type is TokenType.START else AtModifier.END
        else:
            sign = 1
            if self.accept(TokenType.SUB):
                sign = -1
            elif self.accept(TokenType.ADD):
                sign = 1
            number_token = self.expect(TokenType.NUMBER, "@ modifier")
            seconds = sign * parse_number(number_token.text)
            if not math.isfinite(seconds) or abs(seconds * 1000) > _MAX_TIMESTAMP_MS:
                raise self.error("timestamp out of bounds for @ modifier", number_token)
            timestamp_ms = round(seconds * 1000)

        target = self._modifier_target(expr, at_token, "@")
        if target.timestamp_ms is not None or target.start_or_end is not None:
            raise self.error("@ <timestamp> may not be set multiple times", at_token)
        target.timestamp_ms = timestamp_ms
        target.start_or_end = start_or_end


def parse_expr(text: str) -> Expr:
    """Parse ``text`` into an expression tree.

    Raises:
        PromQLParseError: when the text is not a valid PromQL expression
    """
    return Parser(text).parse()


def parse_metric_selector(text: str) -> List[Matcher]:
    """Parse a selector such as ``{job="node", env!="dev"}`` into matchers."""
    expr = parse_expr(text)
    if expr.kind is not NodeKind.VECTOR_SELECTOR or expr.has_modifiers():
        raise PromQLParseError("expected a metric selector", position=0, query=text)
    return expr.label_matchers
