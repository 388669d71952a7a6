"""
PromQL abstract syntax tree.

Every node carries a ``kind`` discriminator so traversal code can branch on
``NodeKind`` instead of isinstance chains, and a ``value_type`` describing
what the expression evaluates to.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Union

if TYPE_CHECKING:
    from .functions import Function

METRIC_NAME_LABEL = "__name__"


class NodeKind(str, Enum):
    """Discriminator for AST node variants."""
    AGGREGATE = "aggregate"
    BINARY = "binary"
    CALL = "call"
    MATRIX_SELECTOR = "matrix_selector"
    NUMBER = "number"
    PAREN = "paren"
    STRING = "string"
    SUBQUERY = "subquery"
    UNARY = "unary"
    VECTOR_SELECTOR = "vector_selector"


class ValueType(str, Enum):
    """Result types of PromQL expressions."""
    SCALAR = "scalar"
    VECTOR = "instant vector"
    MATRIX = "range vector"
    STRING = "string"


class MatchType(str, Enum):
    """Label matcher kinds, valued by their PromQL operator text."""
    EQUAL = "="
    NOT_EQUAL = "!="
    REGEX = "=~"
    NOT_REGEX = "!~"


class Cardinality(str, Enum):
    """Vector matching cardinality of a binary expression."""
    ONE_TO_ONE = "one-to-one"
    MANY_TO_ONE = "many-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


class AtModifier(str, Enum):
    """Preprocessor forms of the ``@`` modifier."""
    START = "start"
    END = "end"


@dataclass
class Matcher:
    """A single ``name op "value"`` constraint inside a selector."""

    name: str
    type: MatchType
    value: str

    def matches_empty(self) -> bool:
        """Whether this matcher accepts a series missing the label."""
        if self.type is MatchType.EQUAL:
            return self.value == ""
        if self.type is MatchType.NOT_EQUAL:
            return self.value != ""
        try:
            matched = re.fullmatch(self.value, "") is not None
        except re.error:
            matched = False
        return matched if self.type is MatchType.REGEX else not matched


@dataclass
class VectorMatching:
    """Label matching behaviour of a vector/vector binary expression."""

    card: Cardinality = Cardinality.ONE_TO_ONE
    matching_labels: List[str] = field(default_factory=list)
    on: bool = False
    include: List[str] = field(default_factory=list)


@dataclass
class Node:
    """Base class for all expression nodes."""

    kind = None

    @property
    def value_type(self) -> ValueType:
        raise NotImplementedError


@dataclass
class NumberLiteral(Node):
    value: float
    kind = NodeKind.NUMBER

    @property
    def value_type(self) -> ValueType:
        return ValueType.SCALAR


@dataclass
class StringLiteral(Node):
    value: str
    kind = NodeKind.STRING

    @property
    def value_type(self) -> ValueType:
        return ValueType.STRING


@dataclass
class VectorSelector(Node):
    """Instant vector selector: ``metric{label="value"}``.

    ``label_matchers`` includes the implicit ``__name__`` matcher when a
    metric name was written.
    """

    name: str = ""
    label_matchers: List[Matcher] = field(default_factory=list)
    offset_ms: int = 0
    timestamp_ms: Optional[int] = None
    start_or_end: Optional[AtModifier] = None
    kind = NodeKind.VECTOR_SELECTOR

    @property
    def value_type(self) -> ValueType:
        return ValueType.VECTOR

    def find_matcher(self, name: str) -> Optional[Matcher]:
        """Return the first matcher for ``name``, if any."""
        for matcher in self.label_matchers:
            if matcher.name == name:
                return matcher
        return None

    def set_matcher(self, name: str, match_type: MatchType, value: str) -> None:
        """Overwrite the first matcher for ``name`` or append a new one."""
        existing = self.find_matcher(name)
        if existing is None:
            self.label_matchers.append(Matcher(name=name, type=match_type, value=value))
        else:
            existing.type = match_type
            existing.value = value

    def has_modifiers(self) -> bool:
        return bool(self.offset_ms) or self.timestamp_ms is not None or self.start_or_end is not None


@dataclass
class MatrixSelector(Node):
    """Range vector selector; offset and ``@`` live on the inner selector."""

    vector_selector: VectorSelector
    range_ms: int
    kind = NodeKind.MATRIX_SELECTOR

    @property
    def value_type(self) -> ValueType:
        return ValueType.MATRIX


@dataclass
class SubqueryExpr(Node):
    expr: Expr
    range_ms: int
    step_ms: int = 0
    offset_ms: int = 0
    timestamp_ms: Optional[int] = None
    start_or_end: Optional[AtModifier] = None
    kind = NodeKind.SUBQUERY

    @property
    def value_type(self) -> ValueType:
        return ValueType.MATRIX


@dataclass
class ParenExpr(Node):
    expr: Expr
    kind = NodeKind.PAREN

    @property
    def value_type(self) -> ValueType:
        return self.expr.value_type


@dataclass
class UnaryExpr(Node):
    op: str
    expr: Expr
    kind = NodeKind.UNARY

    @property
    def value_type(self) -> ValueType:
        return self.expr.value_type


@dataclass
class BinaryExpr(Node):
    op: str
    lhs: Expr
    rhs: Expr
    return_bool: bool = False
    vector_matching: Optional[VectorMatching] = None
    kind = NodeKind.BINARY

    @property
    def value_type(self) -> ValueType:
        if self.lhs.value_type is ValueType.SCALAR and self.rhs.value_type is ValueType.SCALAR:
            return ValueType.SCALAR
        return ValueType.VECTOR


@dataclass
class Call(Node):
    func: Function
    args: List[Expr] = field(default_factory=list)
    kind = NodeKind.CALL

    @property
    def value_type(self) -> ValueType:
        return self.func.return_type


@dataclass
class AggregateExpr(Node):
    op: str
    expr: Expr
    param: Optional[Expr] = None
    grouping: List[str] = field(default_factory=list)
    without: bool = False
    kind = NodeKind.AGGREGATE

    @property
    def value_type(self) -> ValueType:
        return ValueType.VECTOR


Expr = Union[
    AggregateExpr,
    BinaryExpr,
    Call,
    MatrixSelector,
    NumberLiteral,
    ParenExpr,
    StringLiteral,
    SubqueryExpr,
    UnaryExpr,
    VectorSelector,
]
