"""PromQL lexer, parser, printer and tree helpers."""

from .ast import (
    METRIC_NAME_LABEL,
    AggregateExpr,
    BinaryExpr,
    Call,
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
    VectorSelector,
)
from .parser import parse_duration, parse_expr, parse_metric_selector
from .printer import Printer, format_duration, prettify, to_string
from .walk import children, inspect, is_vector_selector, vector_selectors

__all__ = [
    "METRIC_NAME_LABEL",
    "AggregateExpr",
    "BinaryExpr",
    "Call",
    "Matcher",
    "MatchType",
    "MatrixSelector",
    "NodeKind",
    "NumberLiteral",
    "ParenExpr",
    "Printer",
    "StringLiteral",
    "SubqueryExpr",
    "UnaryExpr",
    "ValueType",
    "VectorSelector",
    "children",
    "format_duration",
    "inspect",
    "is_vector_selector",
    "parse_duration",
    "parse_expr",
    "parse_metric_selector",
    "prettify",
    "to_string",
    "vector_selectors",
]
