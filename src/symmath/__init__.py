"""Symbolic expressions: immutable trees with symbolic derivatives, numeric evaluation and
construction-time cancellation of inverse functions."""

from .errors import InvalidStateError, UnboundVariableError
from .expr import Const, Expr, Power, Prod, Sum, Symbol, diff, symbols
from .functions import (
    Cosine,
    Exponential,
    Function,
    Invert,
    Logarithm,
    Negative,
    Sine,
    Tangent,
    cos,
    exp,
    log,
    sin,
    tan,
)
