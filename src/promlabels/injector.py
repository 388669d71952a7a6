"""
Label matcher injection for PromQL queries.

Dashboard builders use this to scope every selector of a query to the
dashboard's template variables: the query is parsed, each requested matcher
is written onto every vector selector (replacing a matcher for the same
label or appending a new one) and the tree is rendered back to text.
"""

import time
from typing import Any, List, Mapping, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import get_injector_config
from .promql.ast import METRIC_NAME_LABEL, MatchType
from .promql.lexer import OPERATORS
from .promql.parser import MATCH_TYPES, parse_expr, parse_metric_selector
from .promql.printer import prettify
from .promql.walk import vector_selectors
from .util.errors import PromQLParseError, UnknownOperatorError, create_error_context
from .util.logging_config import get_logger

logger = get_logger("injector")


class LabelMatcher(BaseModel):
    """A label constraint to enforce on every selector of a query.

    ``value`` is kept verbatim, so template placeholders such as
    ``$cluster`` pass through untouched.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Label name, e.g. 'job'")
    value: str = Field(description="Value or regular expression to match")
    operator: str = Field(default="=", description="One of '=', '!=', '=~', '!~'")


MatcherLike = Union[LabelMatcher, Mapping[str, Any]]


def resolve_match_type(operator: Union[str, MatchType]) -> MatchType:
    """Map an operator token such as ``=~`` to its match type.

    Raises:
        UnknownOperatorError: if the operator is not a label matching operator
    """
    if isinstance(operator, MatchType):
        return operator
    match_type = MATCH_TYPES.get(OPERATORS.get(operator))
    if match_type is None:
        raise UnknownOperatorError(
            operator,
            context=create_error_context("injector", "resolve_match_type", parameters={"operator": operator}),
        )
    return match_type


def _as_label_matchers(matchers: Sequence[MatcherLike]) -> List[LabelMatcher]:
    return [m if isinstance(m, LabelMatcher) else LabelMatcher.model_validate(m) for m in matchers]


def inject_label_matchers(query: str, matchers: Sequence[MatcherLike]) -> str:
    """Rewrite ``query`` so every vector selector carries ``matchers``.

    Matchers are applied in order. A matcher with an empty name or value is
    skipped. For each selector, an existing matcher on the same label is
    overwritten (operator and value); otherwise the matcher is appended.
    The result is pretty-printed even when no matcher applies.

    Raises:
        PromQLParseError: if ``query`` is not valid PromQL or nests too deeply
            to parse and render
        UnknownOperatorError: if any matcher has an unrecognised operator
    """
    try:
        expr = parse_expr(query)
        selectors = vector_selectors(expr)

        for matcher in _as_label_matchers(matchers):
            if not matcher.name or not matcher.value:
                logger.debug(f"Skipping matcher with empty name or value: {matcher!r}")
                continue
            match_type = resolve_match_type(matcher.operator)
            for selector in selectors:
                selector.set_matcher(matcher.name, match_type, matcher.value)

        return prettify(expr)
    except RecursionError as e:
        raise PromQLParseError("expression is nested too deeply", query=query, cause=e) from e


def apply_matchers(query: str, matchers: Sequence[MatcherLike]) -> str:
    """Like :func:`inject_label_matchers`, but returns ``""`` on failure.

    Unparseable queries and unknown operators are logged at the configured
    failure level instead of raised.
    """
    start_time = time.perf_counter()
    logger.operation_start("apply_matchers", matcher_count=len(matchers))

    try:
        result = inject_label_matchers(query, matchers)
    except (PromQLParseError, UnknownOperatorError) as e:
        logger.operation_error(
            "apply_matchers", e, level=get_injector_config().failure_level, query=query
        )
        return ""

    logger.operation_success(
        "apply_matchers", duration_ms=(time.perf_counter() - start_time) * 1000
    )
    return result


def set_label_matcher(query: str, operator: str, name: str, value: str) -> str:
    """Apply a single matcher; shorthand for :func:`apply_matchers`."""
    return apply_matchers(query, [LabelMatcher(name=name, value=value, operator=operator)])


def matchers_from_selector(selector: str) -> List[LabelMatcher]:
    """Build matchers from selector text such as ``{cluster="$cluster", env=~"prod|stage"}``.

    The selector must be valid PromQL on its own, so it needs at least one
    matcher that does not match the empty string. Metric name matchers,
    including the implicit one of ``up{job="x"}``, are left out: applied to
    another query they would rename every selector in it.
    """
    return [
        LabelMatcher(name=m.name, value=m.value, operator=m.type.value)
        for m in parse_metric_selector(selector)
        if m.name != METRIC_NAME_LABEL
    ]
