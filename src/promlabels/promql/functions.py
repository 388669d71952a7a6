"""PromQL function signatures used for call validation."""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .ast import ValueType

S = ValueType.SCALAR
V = ValueType.VECTOR
M = ValueType.MATRIX
STR = ValueType.STRING


@dataclass(frozen=True)
class Function:
    """Signature of a PromQL function.

    ``variadic`` follows the Prometheus convention: 0 means exactly
    ``len(arg_types)`` arguments, a positive value allows the last argument
    to be omitted and up to that many extra trailing arguments, and -1
    allows any number of trailing arguments of the last type.
    """

    name: str
    arg_types: Tuple[ValueType, ...]
    return_type: ValueType
    variadic: int = 0

    def arg_type(self, index: int) -> ValueType:
        if index < len(self.arg_types):
            return self.arg_types[index]
        return self.arg_types[-1]

    def check_arity(self, count: int) -> Optional[str]:
        """Return an error message when ``count`` arguments are not accepted."""
        expected = len(self.arg_types)
        if self.variadic == 0:
            if count != expected:
                return f"expected {expected} argument(s) in call to {self.name!r}, got {count}"
            return None
        minimum = expected - 1
        if count < minimum:
            return f"expected at least {minimum} argument(s) in call to {self.name!r}, got {count}"
        maximum = minimum + self.variadic
        if self.variadic > 0 and count > maximum:
            return f"expected at most {maximum} argument(s) in call to {self.name!r}, got {count}"
        return None


def _fn(name: str, arg_types: Tuple[ValueType, ...], return_type: ValueType = V,
        variadic: int = 0) -> Function:
    return Function(name=name, arg_types=arg_types, return_type=return_type, variadic=variadic)


_SIGNATURES = [
    _fn("abs", (V,)),
    _fn("absent", (V,)),
    _fn("absent_over_time", (M,)),
    _fn("acos", (V,)),
    _fn("acosh", (V,)),
    _fn("asin", (V,)),
    _fn("asinh", (V,)),
    _fn("atan", (V,)),
    _fn("atanh", (V,)),
    _fn("avg_over_time", (M,)),
    _fn("ceil", (V,)),
    _fn("changes", (M,)),
    _fn("clamp", (V, S, S)),
    _fn("clamp_max", (V, S)),
    _fn("clamp_min", (V, S)),
    _fn("cos", (V,)),
    _fn("cosh", (V,)),
    _fn("count_over_time", (M,)),
    _fn("days_in_month", (V,), variadic=1),
    _fn("day_of_month", (V,), variadic=1),
    _fn("day_of_week", (V,), variadic=1),
    _fn("day_of_year", (V,), variadic=1),
    _fn("deg", (V,)),
    _fn("delta", (M,)),
    _fn("deriv", (M,)),
    _fn("double_exponential_smoothing", (M, S, S)),
    _fn("exp", (V,)),
    _fn("floor", (V,)),
    _fn("histogram_avg", (V,)),
    _fn("histogram_count", (V,)),
    _fn("histogram_fraction", (S, S, V)),
    _fn("histogram_quantile", (S, V)),
    _fn("histogram_stddev", (V,)),
    _fn("histogram_stdvar", (V,)),
    _fn("histogram_sum", (V,)),
    _fn("holt_winters", (M, S, S)),
    _fn("hour", (V,), variadic=1),
    _fn("idelta", (M,)),
    _fn("increase", (M,)),
    _fn("irate", (M,)),
    _fn("label_join", (V, STR, STR, STR), variadic=-1),
    _fn("label_replace", (V, STR, STR, STR, STR)),
    _fn("last_over_time", (M,)),
    _fn("ln", (V,)),
    _fn("log10", (V,)),
    _fn("log2", (V,)),
    _fn("mad_over_time", (M,)),
    _fn("max_over_time", (M,)),
    _fn("min_over_time", (M,)),
    _fn("minute", (V,), variadic=1),
    _fn("month", (V,), variadic=1),
    _fn("pi", (), S),
    _fn("predict_linear", (M, S)),
    _fn("present_over_time", (M,)),
    _fn("quantile_over_time", (S, M)),
    _fn("rad", (V,)),
    _fn("rate", (M,)),
    _fn("resets", (M,)),
    _fn("round", (V, S), variadic=1),
    _fn("scalar", (V,), S),
    _fn("sgn", (V,)),
    _fn("sin", (V,)),
    _fn("sinh", (V,)),
    _fn("sort", (V,)),
    _fn("sort_by_label", (V, STR), variadic=-1),
    _fn("sort_by_label_desc", (V, STR), variadic=-1),
    _fn("sort_desc", (V,)),
    _fn("sqrt", (V,)),
    _fn("stddev_over_time", (M,)),
    _fn("stdvar_over_time", (M,)),
    _fn("sum_over_time", (M,)),
    _fn("tan", (V,)),
    _fn("tanh", (V,)),
    _fn("time", (), S),
    _fn("timestamp", (V,)),
    _fn("vector", (S,)),
    _fn("year", (V,), variadic=1),
]

FUNCTIONS: Dict[str, Function] = {fn.name: fn for fn in _SIGNATURES}


def get_function(name: str) -> Optional[Function]:
    return FUNCTIONS.get(name)
