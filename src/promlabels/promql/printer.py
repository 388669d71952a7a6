"""
PromQL rendering.

``to_string`` produces the canonical single-line form of an expression.
``prettify`` lays the same text out over several lines whenever a node's
single-line form is wider than the configured maximum, splitting at
aggregations, binary operators, calls and parentheses.
"""

import math
from decimal import Decimal
from typing import List, Optional

from ..config import RendererConfig, get_renderer_config
from .ast import (
    METRIC_NAME_LABEL,
    AggregateExpr,
    AtModifier,
    BinaryExpr,
    Cardinality,
    Expr,
    Matcher,
    MatchType,
    VectorSelector,
)

_DURATION_UNITS = (
    ("y", 1000 * 60 * 60 * 24 * 365, True),
    ("w", 1000 * 60 * 60 * 24 * 7, True),
    ("d", 1000 * 60 * 60 * 24, False),
    ("h", 1000 * 60 * 60, False),
    ("m", 1000 * 60, False),
    ("s", 1000, False),
    ("ms", 1, False),
)

_QUOTE_ESCAPES = {
    "\a": "\\a", "\b": "\\b", "\f": "\\f", "\n": "\\n", "\r": "\\r",
    "\t": "\\t", "\v": "\\v", "\\": "\\\\", '"': '\\"',
}


def format_number(value: float) -> str:
    """Render a float the way Prometheus does.

    This is Go's `%v`: shortest round-trip digits, plain notation for
    decimal exponents in [-4, 6), scientific notation with an exponent of at
    least two digits otherwise.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"

    number = Decimal(repr(value))
    exponent = number.adjusted()
    if number and (exponent < -4 or exponent >= 6):
        sign, digits, _ = number.normalize().as_tuple()
        text = "".join(str(d) for d in digits)
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        exp_sign = "-" if exponent < 0 else "+"
        return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(exponent):02d}"

    text = format(number, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def quote(value: str) -> str:
    """Double-quote ``value`` with Go-style escapes."""
    out = ['"']
    for ch in value:
        if ch in _QUOTE_ESCAPES:
            out.append(_QUOTE_ESCAPES[ch])
        elif ch.isprintable():
            out.append(ch)
        else:
            code = ord(ch)
            if code < 0x80:
                out.append(f"\\x{code:02x}")
            elif code < 0x10000:
                out.append(f"\\u{code:04x}")
            else:
                out.append(f"\\U{code:08x}")
    out.append('"')
    return "".join(out)


def format_duration(ms: int) -> str:
    """Render a non-negative millisecond duration, e.g. ``90000`` -> ``1m30s``."""
    if ms == 0:
        return "0s"
    parts = []
    remaining = ms
    for unit, multiplier, exact in _DURATION_UNITS:
        if exact and remaining % multiplier:
            continue
        count = remaining // multiplier
        if count > 0:
            parts.append(f"{count}{unit}")
            remaining -= count * multiplier
    return "".join(parts)


def format_matcher(matcher: Matcher) -> str:
    return f"{matcher.name}{matcher.type.value}{quote(matcher.value)}"


def _offset_suffix(offset_ms: int) -> str:
    if offset_ms > 0:
        return f" offset {format_duration(offset_ms)}"
    if offset_ms < 0:
        return f" offset -{format_duration(-offset_ms)}"
    return ""


def _at_suffix(timestamp_ms: Optional[int], start_or_end: Optional[AtModifier]) -> str:
    if timestamp_ms is not None:
        return f" @ {timestamp_ms / 1000:.3f}"
    if start_or_end is not None:
        return f" @ {start_or_end.value}()"
    return ""


class Printer:
    """Renders expression trees, optionally wrapping wide nodes."""

    def __init__(self, max_line_width: int = 100, indent: str = "  "):
        self.max_line_width = max_line_width
        self.indent = indent

    # Single-line rendering

    def to_string(self, node: Expr) -> str:
        return getattr(self, f"_str_{node.kind.value}")(node)

    def _str_number(self, node) -> str:
        return format_number(node.value)

    def _str_string(self, node) -> str:
        return quote(node.value)

    def _str_paren(self, node) -> str:
        return f"({self.to_string(node.expr)})"

    def _str_unary(self, node) -> str:
        return f"{node.op}{self.to_string(node.expr)}"

    def _str_call(self, node) -> str:
        args = ", ".join(self.to_string(arg) for arg in node.args)
        return f"{node.func.name}({args})"

    def _str_vector_selector(self, node: VectorSelector, modifiers: bool = True) -> str:
        rendered: List[str] = []
        for matcher in node.label_matchers:
            # The implicit name matcher is already expressed by the metric name
            if (matcher.name == METRIC_NAME_LABEL and matcher.type is MatchType.EQUAL
                    and matcher.value == node.name and matcher.value != ""):
                continue
            rendered.append(format_matcher(matcher))

        suffix = ""
        if modifiers:
            suffix = _at_suffix(node.timestamp_ms, node.start_or_end) + _offset_suffix(node.offset_ms)
        if not rendered:
            return f"{node.name}{suffix}"
        return f"{node.name}{{{', '.join(sorted(rendered))}}}{suffix}"

    def _str_matrix_selector(self, node) -> str:
        selector = node.vector_selector
        return (
            f"{self._str_vector_selector(selector, modifiers=False)}[{format_duration(node.range_ms)}]"
            f"{_at_suffix(selector.timestamp_ms, selector.start_or_end)}"
            f"{_offset_suffix(selector.offset_ms)}"
        )

    def _subquery_suffix(self, node) -> str:
        step = format_duration(node.step_ms) if node.step_ms else ""
        return (
            f"[{format_duration(node.range_ms)}:{step}]"
            f"{_at_suffix(node.timestamp_ms, node.start_or_end)}"
            f"{_offset_suffix(node.offset_ms)}"
        )

    def _str_subquery(self, node) -> str:
        return f"{self.to_string(node.expr)}{self._subquery_suffix(node)}"

    def _aggregate_prefix(self, node: AggregateExpr) -> str:
        if node.without:
            return f"{node.op} without ({', '.join(node.grouping)}) "
        if node.grouping:
            return f"{node.op} by ({', '.join(node.grouping)}) "
        return node.op

    def _str_aggregate(self, node: AggregateExpr) -> str:
        param = f"{self.to_string(node.param)}, " if node.param is not None else ""
        return f"{self._aggregate_prefix(node)}({param}{self.to_string(node.expr)})"

    def _binary_operator(self, node: BinaryExpr) -> str:
        text = node.op
        if node.return_bool:
            text += " bool"
        matching = node.vector_matching
        if matching is not None and (matching.matching_labels or matching.on):
            keyword = "on" if matching.on else "ignoring"
            text += f" {keyword} ({', '.join(matching.matching_labels)})"
            if matching.card in (Cardinality.MANY_TO_ONE, Cardinality.ONE_TO_MANY):
                side = "left" if matching.card is Cardinality.MANY_TO_ONE else "right"
                text += f" group_{side} ({', '.join(matching.include)})"
        return text

    def _str_binary(self, node: BinaryExpr) -> str:
        return f"{self.to_string(node.lhs)} {self._binary_operator(node)} {self.to_string(node.rhs)}"

    # Multi-line rendering

    def pretty(self, node: Expr, level: int = 0) -> str:
        method = getattr(self, f"_pretty_{node.kind.value}", None)
        if method is None or not self._needs_split(node):
            return self._indent(level) + self.to_string(node)
        return method(node, level)

    def _indent(self, level: int) -> str:
        return self.indent * level

    def _needs_split(self, node: Expr) -> bool:
        return len(self.to_string(node)) > self.max_line_width

    def _pretty_aggregate(self, node: AggregateExpr, level: int) -> str:
        indent = self._indent(level)
        text = f"{indent}{self._aggregate_prefix(node)}(\n"
        if node.param is not None:
            text += f"{self.pretty(node.param, level + 1)},\n"
        return text + f"{self.pretty(node.expr, level + 1)}\n{indent})"

    def _pretty_binary(self, node: BinaryExpr, level: int) -> str:
        return (
            f"{self.pretty(node.lhs, level + 1)}\n"
            f"{self._indent(level)}{self._binary_operator(node)}\n"
            f"{self.pretty(node.rhs, level + 1)}"
        )

    def _pretty_call(self, node, level: int) -> str:
        indent = self._indent(level)
        args = ",\n".join(self.pretty(arg, level + 1) for arg in node.args)
        return f"{indent}{node.func.name}(\n{args}\n{indent})"

    def _pretty_paren(self, node, level: int) -> str:
        indent = self._indent(level)
        return f"{indent}(\n{self.pretty(node.expr, level + 1)}\n{indent})"

    def _pretty_subquery(self, node, level: int) -> str:
        return f"{self.pretty(node.expr, level)}{self._subquery_suffix(node)}"

    def _pretty_unary(self, node, level: int) -> str:
        return f"{self._indent(level)}{node.op}{self.pretty(node.expr, level).strip()}"


_plain_printer = Printer()


def to_string(node: Expr) -> str:
    """Render ``node`` on a single line."""
    return _plain_printer.to_string(node)


def prettify(node: Expr, level: int = 0, config: Optional[RendererConfig] = None) -> str:
    """Render ``node`` with line splitting per the renderer configuration."""
    config = config or get_renderer_config()
    return Printer(max_line_width=config.max_line_width, indent=config.indent).pretty(node, level)
