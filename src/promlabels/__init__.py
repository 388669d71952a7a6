"""
promlabels

Scopes PromQL queries to dashboard template variables by injecting or
overriding label matchers on every vector selector.
"""

import logging

__version__ = "0.1.0"
__description__ = "PromQL label matcher injection for dashboard generators"

from .injector import (
    LabelMatcher,
    apply_matchers,
    inject_label_matchers,
    matchers_from_selector,
    resolve_match_type,
    set_label_matcher,
)
from .promql.ast import MatchType

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "LabelMatcher",
    "MatchType",
    "apply_matchers",
    "inject_label_matchers",
    "matchers_from_selector",
    "resolve_match_type",
    "set_label_matcher",
]
