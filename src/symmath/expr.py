"""RULES OF EXPRs:

1. Exprs shall NOT be mutated in place after construction.
Every cached attribute (is_constant, height, size, complexity, the folded value and the hash) is set
before the constructor returns. That way a subtree can be shared by as many trees as we like.

2. Exprs are built through their class (or the smart constructors on Expr: x.neg(), x.exp(), ...)
and the constructor is allowed to return something simpler than what you asked for.
ex: Sum([x, 0]) is just x, Exponential(Logarithm(x)) is just x.

Note on equality: (expr1 == expr2) compares the **structure** of the exprs, not their values.
x + 2 and 2 + x are different trees. If you wanna compare values, evaluate them.

Numbers: Consts keep whatever python number they were given (int, Fraction, float). Anything that goes
through a numeric formula (exp, sin, a power...) comes out as a float, computed with numpy so that the
same formulas work on arrays.
"""

import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from fractions import Fraction
from functools import reduce
from typing import Any, Callable, ClassVar, Dict, List, Optional, Union

import numpy as np

from .errors import InvalidStateError, UnboundVariableError

Number = Union[int, float, Fraction]
_NUMBER_TYPES = (int, float, Fraction, np.number)


def _float_array(arg, label: str) -> np.ndarray:
    """np.asarray(arg, dtype=float), except exact numbers too big for a float become +-inf (with a warning)."""
    try:
        return np.asarray(arg, dtype=float)
    except OverflowError:
        if not isinstance(arg, (int, Fraction)):
            raise
        warnings.warn(f"{label}: exact number doesn't fit in a float, using inf", RuntimeWarning, stacklevel=4)
        return np.asarray(np.inf if arg > 0 else -np.inf)


def _numeric(func: Callable, *args, label: str) -> Any:
    """Apply a numpy formula to numbers or arrays.

    Never raises on domain errors: you get the IEEE answer (nan, inf) back and a RuntimeWarning
    when finite inputs gave a non-finite output.
    """
    arrays = [_float_array(arg, label=label) for arg in args]
    with np.errstate(all="ignore"):
        result = func(*arrays)

    bad = ~np.isfinite(result)
    for arr in arrays:
        bad = bad & np.isfinite(arr)
    if np.any(bad):
        warnings.warn(f"{label} produced a non-finite value from a finite input", RuntimeWarning, stacklevel=3)

    if np.ndim(result) == 0:
        return float(result)
    return result


def _cast(x):
    """Cast x to an Expr if possible."""
    if x is None or x is True or x is False or isinstance(x, Expr):
        return x

    if isinstance(x, np.number):
        return Const(x.item())
    if isinstance(x, _NUMBER_TYPES):
        return Const(x)

    if isinstance(x, dict):
        return {k: _cast(v) for k, v in x.items()}
    elif isinstance(x, tuple):
        return tuple(_cast(v) for v in x)
    elif isinstance(x, list):
        return [_cast(v) for v in x]

    raise NotImplementedError(f"Cannot cast {x!r} to Expr")


def cast(func):
    """Decorator to cast all arguments to Expr."""

    def wrapper(*args, **kwargs) -> "Expr":
        return func(*map(_cast, args), **{k: _cast(v) for k, v in kwargs.items()})

    return wrapper


def _by_name(mapping: Dict) -> Dict[str, Any]:
    # Symbols and plain strings are both allowed as keys.
    return {k.name if isinstance(k, Symbol) else k: v for k, v in mapping.items()}


class Expr(ABC):
    """Base class for all expressions.

    Every subclass sets these during construction:
        is_constant: the subtree has no free symbol
        height: 0 for leaves
        size: number of nodes
        complexity: how "expensive" the expression looks
        _value: the folded value. only meaningful when is_constant
        _hash
    """

    is_constant: bool
    height: int
    size: int
    complexity: int
    _value = 0.0  # placeholder for non-constant nodes, never read.
    _hash: int

    @property
    def value(self):
        if not self.is_constant:
            raise InvalidStateError(f"{self!r} is not constant, so it has no value")
        return self._value

    @abstractmethod
    def children(self) -> List["Expr"]:
        raise NotImplementedError(f"Cannot get children of {self.__class__.__name__}")

    def _key(self):
        """What has to match, on top of the class, for two nodes to be equal."""
        return tuple(self.children())

    def __eq__(self, other) -> bool:
        if isinstance(other, _NUMBER_TYPES) and not isinstance(other, bool):
            other = _cast(other)
        if not isinstance(other, Expr):
            return NotImplemented
        if self is other:
            return True
        return type(self) is type(other) and self._hash == other._hash and self._key() == other._key()

    def __hash__(self) -> int:
        return self._hash

    def _args(self) -> tuple:
        """Constructor arguments that rebuild this node."""
        return tuple(self.children())

    def __reduce__(self):
        # copy/deepcopy/pickle go back through the constructor so the cached attributes (hash included)
        # are recomputed rather than copied.
        return (self.__class__, self._args())

    # Smart constructors. Node kinds override these when they can do better than wrapping themselves.
    def neg(self) -> "Expr":
        from .functions import Negative

        return Negative(self)

    def inv(self) -> "Expr":
        from .functions import Invert

        return Invert(self)

    def exp(self) -> "Expr":
        from .functions import Exponential

        return Exponential(self)

    def log(self) -> "Expr":
        from .functions import Logarithm

        return Logarithm(self)

    def sin(self) -> "Expr":
        from .functions import Sine

        return Sine(self)

    def cos(self) -> "Expr":
        from .functions import Cosine

        return Cosine(self)

    def tan(self) -> "Expr":
        from .functions import Tangent

        return Tangent(self)

    @cast
    def __add__(self, other) -> "Expr":
        return Sum([self, other])

    @cast
    def __radd__(self, other) -> "Expr":
        return Sum([other, self])

    @cast
    def __sub__(self, other) -> "Expr":
        return Sum([self, other.neg()])

    @cast
    def __rsub__(self, other) -> "Expr":
        return Sum([other, self.neg()])

    @cast
    def __mul__(self, other) -> "Expr":
        return Prod([self, other])

    @cast
    def __rmul__(self, other) -> "Expr":
        return Prod([other, self])

    @cast
    def __truediv__(self, other) -> "Expr":
        return Prod([self, other.inv()])

    @cast
    def __rtruediv__(self, other) -> "Expr":
        return Prod([other, self.inv()])

    @cast
    def __pow__(self, other) -> "Expr":
        return Power(self, other)

    @cast
    def __rpow__(self, other) -> "Expr":
        return Power(other, self)

    def __neg__(self) -> "Expr":
        return self.neg()

    def subs(self, subs: Dict[Union[str, "Symbol"], Any]) -> "Expr":
        """Substitute symbols with expressions. Symbols that aren't in subs are left alone.

        Never touches self; you get a new tree back (which shares every untouched subtree with self).
        """
        for k, v in subs.items():
            if v is None or isinstance(v, bool):
                raise ValueError(f"Cannot substitute {v!r} for {k}")
        return self._subs(_cast(_by_name(subs)))

    @abstractmethod
    def _subs(self, subs: Dict[str, "Expr"]) -> "Expr":
        pass

    def evaluate(self, context: Optional[Dict[Union[str, "Symbol"], Any]] = None):
        """Evaluate the expression numerically.

        context maps symbols (or their names) to numbers or numpy arrays. Arrays are evaluated element-wise.
        Raises UnboundVariableError if a symbol in the expression has no value in context.
        """
        if context is None:
            context = {}
        return self._evaluate(_by_name(context))

    @abstractmethod
    def _evaluate(self, context: Dict[str, Any]):
        pass

    @abstractmethod
    def diff(self, var: "Symbol") -> "Expr":
        raise NotImplementedError(f"Cannot get the derivative of {self.__class__.__name__}")

    def symbols(self) -> List["Symbol"]:
        """Get all symbols in the expression, sorted by name."""
        names = {symbol.name for e in self.children() for symbol in e.symbols()}
        return [Symbol(name) for name in sorted(names)]

    def contains(self, var: Union["Symbol", str]) -> bool:
        name = var if isinstance(var, str) else var.name
        is_var = isinstance(self, Symbol) and self.name == name
        return is_var or any(e.contains(name) for e in self.children())

    @abstractmethod
    def __repr__(self) -> str:
        raise NotImplementedError(f"Cannot represent {self.__class__.__name__}")


class Const(Expr):
    """A number."""

    def __init__(self, value: Number):
        self._value = value
        self.is_constant = True
        self.height = 0
        self.size = 1
        self.complexity = 0
        # same hash as the plain number, since Const(2) == 2.
        self._hash = hash(value)

    def _key(self):
        return self._value

    def _args(self) -> tuple:
        return (self._value,)

    def children(self) -> List[Expr]:
        return []

    def neg(self) -> "Const":
        return Const(-self._value)

    def inv(self) -> Expr:
        if self._value == 0:
            return super().inv()
        return Const(1 / self._value)

    def _subs(self, subs: Dict[str, Expr]) -> "Const":
        return self

    def _evaluate(self, context: Dict[str, Any]) -> float:
        return float(_float_array(self._value, label="const"))

    def diff(self, var) -> "Const":
        return Const(0)

    def __repr__(self) -> str:
        return str(self._value)


@dataclass(eq=False)
class Symbol(Expr):
    """A symbol. A variable."""

    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("Symbol name cannot be empty")
        self.is_constant = False
        self.height = 0
        self.size = 1
        self.complexity = 1
        self._hash = hash((Symbol, self.name))

    def _key(self):
        return self.name

    def _args(self) -> tuple:
        return (self.name,)

    def children(self) -> List[Expr]:
        return []

    def symbols(self) -> List["Symbol"]:
        return [self]

    def _subs(self, subs: Dict[str, Expr]) -> Expr:
        return subs.get(self.name, self)

    def _evaluate(self, context: Dict[str, Any]):
        if self.name not in context:
            raise UnboundVariableError(self.name)
        return context[self.name]

    def diff(self, var) -> Const:
        name = var if isinstance(var, str) else var.name
        return Const(1) if self.name == name else Const(0)

    def __repr__(self) -> str:
        return self.name


@dataclass(init=False, repr=False, eq=False)
class Associative(Expr):
    """Base for sums and products.

    The children's __new__ must handle flattening & folding the constant terms.
    """

    terms: List[Expr]
    _ufunc: ClassVar[Callable]
    _label: ClassVar[str]

    @classmethod
    def _flatten_terms(cls, terms: List[Expr]) -> List[Expr]:
        """(x * 3) * y -> x * 3 * y. Terms were flattened when they were built so one level is enough."""
        new_terms = []
        for t in terms:
            if isinstance(t, cls):
                new_terms += t.terms
            else:
                new_terms.append(t)
        return new_terms

    @staticmethod
    @abstractmethod
    def _accumulate(values: List[Any]) -> Any:
        pass

    def _set_terms(self, terms: List[Expr]) -> None:
        self.terms = terms
        self.is_constant = all(t.is_constant for t in terms)
        self.height = 1 + max(t.height for t in terms)
        self.size = 1 + sum(t.size for t in terms)
        self.complexity = 1 + sum(t.complexity for t in terms)
        if self.is_constant:
            self._value = self._accumulate([t.value for t in terms])
        self._hash = hash((self.__class__, tuple(terms)))

    def children(self) -> List[Expr]:
        return self.terms

    def _args(self) -> tuple:
        return (self.terms,)

    def _evaluate(self, context: Dict[str, Any]):
        values = [t._evaluate(context) for t in self.terms]
        return _numeric(lambda *arrays: reduce(self._ufunc, arrays), *values, label=self._label)

    def __iter__(self):
        return iter(self.terms)

    def __len__(self):
        return len(self.terms)


class Sum(Associative):
    """A sum expression."""

    _ufunc = np.add
    _label = "sum"

    def __new__(cls, terms: List[Expr]) -> Expr:
        """When a sum is initiated:
        - terms are converted to expr
        - flatten
        - accumulate constants, which go last. A zero is dropped.
        """
        terms = cls._flatten_terms(_cast(list(terms)))
        consts = [t for t in terms if isinstance(t, Const)]
        final_terms = [t for t in terms if not isinstance(t, Const)]
        if consts:
            const = cls._accumulate([c.value for c in consts])
            if const != 0:
                final_terms.append(Const(const))

        if len(final_terms) == 0:
            return Const(0)
        if len(final_terms) == 1:
            return final_terms[0]

        instance = super().__new__(cls)
        instance._set_terms(final_terms)
        return instance

    @staticmethod
    def _accumulate(values: List[Any]) -> Any:
        return reduce(lambda a, b: a + b, values)

    def _subs(self, subs: Dict[str, Expr]) -> Expr:
        return Sum([t._subs(subs) for t in self.terms])

    def diff(self, var) -> Expr:
        return Sum([t.diff(var) for t in self.terms])

    def __repr__(self) -> str:
        return "(" + " + ".join(repr(t) for t in self.terms) + ")"


class Prod(Associative):
    """A product expression."""

    _ufunc = np.multiply
    _label = "product"

    def __new__(cls, terms: List[Expr]) -> Expr:
        terms = cls._flatten_terms(_cast(list(terms)))
        consts = [t for t in terms if isinstance(t, Const)]
        final_terms = [t for t in terms if not isinstance(t, Const)]
        if consts:
            coeff = cls._accumulate([c.value for c in consts])
            if coeff == 0:
                return Const(coeff)
            if coeff != 1:
                final_terms.insert(0, Const(coeff))

        if len(final_terms) == 0:
            return Const(1)
        if len(final_terms) == 1:
            return final_terms[0]

        instance = super().__new__(cls)
        instance._set_terms(final_terms)
        return instance

    @staticmethod
    def _accumulate(values: List[Any]) -> Any:
        return reduce(lambda a, b: a * b, values)

    def _subs(self, subs: Dict[str, Expr]) -> Expr:
        return Prod([t._subs(subs) for t in self.terms])

    def diff(self, var) -> Expr:
        # product rule: one term per factor, with that factor differentiated.
        return Sum([Prod([t.diff(var)] + self.terms[:i] + self.terms[i + 1 :]) for i, t in enumerate(self.terms)])

    def __repr__(self) -> str:
        return "(" + "*".join(repr(t) for t in self.terms) + ")"


@dataclass(init=False, eq=False)
class Power(Expr):
    base: Expr
    exponent: Expr

    def __new__(cls, base: Expr, exponent: Expr) -> Expr:
        b = _cast(base)
        x = _cast(exponent)

        if x == 0:
            # python does 0**0 = 1 so we do too.
            return Const(1)
        if x == 1:
            return b
        if b == 1:
            return Const(1)
        if isinstance(b, Const) and isinstance(x, Const):
            return Const(_numeric(np.power, b.value, x.value, label="power"))

        instance = super().__new__(cls)
        instance.base = b
        instance.exponent = x
        instance.is_constant = b.is_constant and x.is_constant
        instance.height = 1 + max(b.height, x.height)
        instance.size = 1 + b.size + x.size
        instance.complexity = 1 + b.complexity + x.complexity
        if instance.is_constant:
            instance._value = _numeric(np.power, b.value, x.value, label="power")
        instance._hash = hash((Power, b, x))
        return instance

    def children(self) -> List[Expr]:
        return [self.base, self.exponent]

    def _subs(self, subs: Dict[str, Expr]) -> Expr:
        return Power(self.base._subs(subs), self.exponent._subs(subs))

    def _evaluate(self, context: Dict[str, Any]):
        return _numeric(np.power, self.base._evaluate(context), self.exponent._evaluate(context), label="power")

    def diff(self, var) -> Expr:
        if not self.exponent.contains(var):
            return self.exponent * self.base ** (self.exponent - 1) * self.base.diff(var)
        if not self.base.contains(var):
            return self * self.base.log() * self.exponent.diff(var)

        # b^x = e^(x ln b)
        return self * (self.exponent.diff(var) * self.base.log() + self.exponent * self.base.diff(var) / self.base)

    def __repr__(self) -> str:
        def _term_repr(term: Expr) -> str:
            if isinstance(term, Power):
                return "(" + repr(term) + ")"
            return repr(term)

        return f"{_term_repr(self.base)}^{_term_repr(self.exponent)}"


def symbols(symbols: str) -> Union[Symbol, List[Symbol]]:
    """Creates symbols from a string of symbol names seperated by spaces."""
    symbols = [Symbol(name=s) for s in symbols.split(" ")]
    return symbols if len(symbols) > 1 else symbols[0]


def diff(expr: Expr, var: Optional[Union[Symbol, str]] = None) -> Expr:
    """Takes the derivative of expr relative to var. If expr has only one symbol in it, var doesn't need to be specified."""
    expr = _cast(expr)
    if var is None:
        symbols = expr.symbols()
        if len(symbols) != 1:
            raise ValueError(f"Must provide variable of differentiation for {expr}")
        var = symbols[0]
    elif isinstance(var, str):
        var = Symbol(var)

    return expr.diff(var)
