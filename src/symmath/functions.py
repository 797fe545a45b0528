"""Functions: exprs with exactly one argument.

Build them through the class (Sine(x)), the smart constructor on the argument (x.sin()) or the
lowercase helpers at the bottom of this file (sin(x)). All three go through Function.__new__, which:

1. looks the argument up in INVERSES. exp(log(a)) is a, 1/(1/a) is a, -(-a) is a. This is a single
   local step. It is not a simplifier: exp(exp(log(a))) is exp(a) and nothing more.
2. otherwise caches the metrics and, if the argument is constant, the folded value.

Adding a function means: a subclass with func, _func, _format and diff(); and an INVERSES entry if it
cancels with something.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Type

import numpy as np

from .expr import Expr, Symbol, _cast, _numeric, cast


@dataclass(init=False, eq=False)
class Function(Expr):
    """An expression with exactly one argument, `inner`.

    Subclasses provide
        func: name of the matching smart constructor on Expr ("exp", "sin", ...)
        _func: the numeric formula, a numpy ufunc
        _format: debug repr with a {} for the argument
        diff(): the derivative, through the chain rule
    """

    inner: Expr
    func: ClassVar[str]
    _func: ClassVar[Callable]
    _format: ClassVar[str]
    _complexity_cost = 1

    def __new__(cls, inner: Expr) -> Expr:
        inner = _cast(inner)
        if type(inner) is INVERSES.get(cls):
            # Skip the numeric work too: the wrapping node would be thrown away.
            return inner.inner

        instance = super().__new__(cls)
        instance.inner = inner
        instance.is_constant = inner.is_constant
        instance.height = inner.height + 1
        instance.size = inner.size + 1
        instance.complexity = inner.complexity + cls._complexity_cost
        if inner.is_constant:
            instance._value = _numeric(cls._func, inner.value, label=cls.func)
        instance._hash = hash((cls, inner))
        return instance

    def with_inner(self, inner: Expr) -> Expr:
        """The same function around a new argument.

        Goes through the argument's smart constructor, so -(x) with x=3 gives Const(-3) and
        log(x) with x=e^y gives y.
        """
        return getattr(_cast(inner), self.func)()

    def children(self) -> List[Expr]:
        return [self.inner]

    def _subs(self, subs: Dict[str, Expr]) -> Expr:
        return self.with_inner(self.inner._subs(subs))

    def _evaluate(self, context: Dict[str, Any]):
        return _numeric(self._func, self.inner._evaluate(context), label=self.func)

    def __repr__(self) -> str:
        return self._format.format(self.inner)


class Negative(Function):
    func = "neg"
    _func = np.negative
    _format = "(-{})"
    # flipping a sign is free.
    _complexity_cost = 0

    def diff(self, var: Symbol) -> Expr:
        return -self.inner.diff(var)


class Invert(Function):
    """1/inner"""

    func = "inv"
    _func = np.reciprocal
    _format = "(1/{})"

    def diff(self, var: Symbol) -> Expr:
        f = self.inner
        return -(f**-2) * f.diff(var)


class Exponential(Function):
    func = "exp"
    _func = np.exp
    _format = "e^({})"

    def diff(self, var: Symbol) -> Expr:
        return self * self.inner.diff(var)


class Logarithm(Function):
    """Natural log."""

    func = "log"
    _func = np.log
    _format = "ln({})"

    def diff(self, var: Symbol) -> Expr:
        return self.inner.diff(var) / self.inner


class Sine(Function):
    func = "sin"
    _func = np.sin
    _format = "sin({})"

    def diff(self, var: Symbol) -> Expr:
        return self.inner.cos() * self.inner.diff(var)


class Cosine(Function):
    func = "cos"
    _func = np.cos
    _format = "cos({})"

    def diff(self, var: Symbol) -> Expr:
        return -self.inner.sin() * self.inner.diff(var)


class Tangent(Function):
    func = "tan"
    _func = np.tan
    _format = "tan({})"

    def diff(self, var: Symbol) -> Expr:
        # sec^2 = 1/cos^2
        cos = self.inner.cos()
        return (cos * cos).inv() * self.inner.diff(var)


# F -> the function that F undoes when it's applied on top of it.
INVERSES: Dict[Type[Function], Type[Function]] = {
    Negative: Negative,
    Invert: Invert,
    Exponential: Logarithm,
    Logarithm: Exponential,
}


@cast
def exp(x: Expr) -> Expr:
    return x.exp()


@cast
def log(x: Expr) -> Expr:
    return x.log()


@cast
def sin(x: Expr) -> Expr:
    return x.sin()


@cast
def cos(x: Expr) -> Expr:
    return x.cos()


@cast
def tan(x: Expr) -> Expr:
    return x.tan()
