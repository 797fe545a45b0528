import copy
import dataclasses
import pickle
from fractions import Fraction

import numpy as np
import pytest

from symmath.debug.test_utils import assert_eq_strict, assert_eq_value, x, y
from symmath.errors import InvalidStateError, UnboundVariableError
from symmath.expr import *
from symmath.functions import *


def test_equality():
    assert x == x
    assert x == Symbol("x")  # seperately created symbols with the same name should be the same
    assert not x == y
    assert x != y
    assert not x == 2 * x
    assert (x + 2) == (x + 2)  # seperately created sums should be the same
    assert x * y != y * x  # structure, not value

    # consts compare with plain numbers
    assert Const(2) == 2
    assert Const(2) != 3
    assert 2 == Const(2)
    assert Const(2) == Const(2.0)
    assert Const(Fraction(1, 2)) == 0.5
    assert Const(2) != x
    assert x != "x"


def test_hash():
    assert hash(Const(2)) == hash(2) == hash(Const(2.0))
    assert hash(x) == hash(Symbol("x"))
    assert hash(x + Sine(y)) == hash(x + Sine(y))
    assert len({x, Symbol("x"), y, Const(1), 1}) == 3


def test_leaf_metrics():
    assert (x.height, x.size, x.complexity, x.is_constant) == (0, 1, 1, False)
    c = Const(3)
    assert (c.height, c.size, c.complexity, c.is_constant) == (0, 1, 0, True)
    assert c.value == 3


def test_composite_metrics():
    expr = x * Sine(y) + 1
    # Sum(Prod(x, Sine(y)), 1)
    assert expr.height == 3
    assert expr.size == 6
    assert expr.complexity == 1 + (1 + 1 + 2) + 0
    assert not expr.is_constant

    power = Power(x, 2)
    assert (power.height, power.size, power.complexity) == (1, 3, 2)


def test_composite_constant_value():
    expr = Exponential(Const(0)) + Sine(Const(0))
    assert isinstance(expr, Sum)
    assert expr.is_constant
    assert expr.value == 1.0
    assert (Exponential(Const(1)) * Cosine(Const(0))).value == pytest.approx(np.e)
    assert Power(Exponential(Const(1)), 2).value == pytest.approx(np.e**2)

    with pytest.raises(InvalidStateError):
        (x + Exponential(Const(0))).value
    with pytest.raises(InvalidStateError):
        Power(x, 2).value


def test_sum_identities():
    assert Sum([]) == 0
    assert_eq_strict(x + 0, x)
    assert_eq_strict(x + 2 + 3, x + 5)
    assert_eq_strict(Sum([Const(2), Const(3)]), 5)
    assert_eq_strict(x - x, Sum([x, Negative(x)]))
    assert_eq_strict(2 + x, x + 2)  # constants go last
    # flattening
    assert_eq_strict((x + y) + Sine(x), Sum([x, y, Sine(x)]))


def test_prod_identities():
    assert Prod([]) == 1
    assert_eq_strict(x * 1, x)
    assert_eq_strict(x * 0, 0)
    assert_eq_strict(x * 2 * 3, 6 * x)
    assert_eq_strict(x * 2, 2 * x)  # constants go first
    assert_eq_strict((x * y) * Sine(x), Prod([x, y, Sine(x)]))
    assert_eq_strict(x / 2, Prod([Const(0.5), x]))
    assert_eq_strict(x / y, Prod([x, Invert(y)]))


def test_power_identities():
    assert_eq_strict(x**0, 1)
    assert_eq_strict(x**1, x)
    assert_eq_strict(Const(1) ** x, 1)
    assert_eq_strict(Const(2) ** 3, 8)
    assert isinstance(x**2, Power)


def test_subs():
    expr = x * Sine(y) + x
    assert_eq_strict(expr.subs({"x": y}), y * Sine(y) + y)
    assert_eq_strict(expr.subs({y: 0}), x * Sine(Const(0)) + x)
    assert_eq_strict(Power(x, y).subs({"y": 1}), x)
    assert_eq_strict(x.subs({"y": 3}), x)
    assert_eq_strict(Const(3).subs({"x": 1}), 3)


def test_evaluate():
    expr = x * Sine(y) + Exponential(x)
    context = {"x": 0.5, "y": 1.2}
    assert expr.evaluate(context) == pytest.approx(0.5 * np.sin(1.2) + np.exp(0.5))
    assert expr.evaluate({x: 0.5, y: 1.2}) == pytest.approx(expr.evaluate(context))
    assert isinstance(expr.evaluate(context), float)
    assert Const(Fraction(1, 4)).evaluate() == 0.25
    assert_eq_value(Sine(x) ** 2 + Cosine(x) ** 2, 1, {"x": 0.3})


def test_evaluate_arrays():
    values = np.linspace(0.1, 2, 5)
    expr = Logarithm(x) * y + 1
    result = expr.evaluate({"x": values, "y": 2})
    assert result.shape == (5,)
    assert np.allclose(result, np.log(values) * 2 + 1)


def test_unbound_variable():
    with pytest.raises(UnboundVariableError) as excinfo:
        (x + y).evaluate({"x": 1})
    assert excinfo.value.name == "y"
    assert "y" in str(excinfo.value)
    with pytest.raises(UnboundVariableError):
        Sine(x).evaluate()
    # it's a KeyError too
    with pytest.raises(KeyError):
        Tangent(x).evaluate({})


def test_symbols():
    assert symbols("x") == x
    a, b = symbols("a b")
    assert a == Symbol("a") and b == Symbol("b")
    assert (Sine(y) * x + 2).symbols() == [x, y]
    assert Exponential(Const(3)).symbols() == []
    assert Sine(x + 1).contains(x)
    assert not Sine(x + 1).contains(y)
    assert Sine(x).contains("x")


def test_bad_input():
    with pytest.raises(ValueError):
        Symbol("")
    with pytest.raises(NotImplementedError):
        x + "a"
    with pytest.raises(NotImplementedError):
        Sine("x")


def test_repr():
    assert repr(x + 2) == "(x + 2)"
    assert repr(2 * x) == "(2*x)"
    assert repr(x**2) == "x^2"
    assert repr(Power(x**y, 2)) == "(x^y)^2"
    assert repr(Const(0.5)) == "0.5"
    assert repr(Sine(x) * Cosine(x)) == "(sin(x)*cos(x))"


@pytest.mark.parametrize(
    "expr",
    [
        Const(3),
        Const(Fraction(1, 3)),
        x,
        Sine(x) * y + 2,
        Negative(Const(2)),
        Power(Exponential(x), y),
        Logarithm(x - y) / Tangent(x),
    ],
)
def test_copy_and_pickle(expr):
    for new in (copy.copy(expr), copy.deepcopy(expr), pickle.loads(pickle.dumps(expr))):
        assert_eq_strict(new, expr)
        assert hash(new) == hash(expr)
        assert (new.height, new.size, new.complexity) == (expr.height, expr.size, expr.complexity)


def test_dataclass_fields():
    assert [f.name for f in dataclasses.fields(Sine(x))] == ["inner"]
    assert [f.name for f in dataclasses.fields(x + y)] == ["terms"]
    assert [f.name for f in dataclasses.fields(x**y)] == ["base", "exponent"]
    assert [f.name for f in dataclasses.fields(x)] == ["name"]
    # the repr is still the math one
    assert repr(Sine(x)) == "sin(x)"


def test_subs_rejects_missing_values():
    with pytest.raises(ValueError):
        Sine(x).subs({"x": None})
    with pytest.raises(ValueError):
        (x + y).subs({y: True})
