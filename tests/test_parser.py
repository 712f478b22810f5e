import re

import pytest

from Calculus.errors import ParseError, UnknownFunctionError
from Calculus.expression import (
    E, INFINITY, PI, Call, Function, Number, Variable, add, mul, neg, power, sub,
)
from Calculus.parser import parse_expression, parse

x = Variable("x")


def test_precedence_and_associativity():
    assert parse_expression("2 + 3*x") == add(Number(2), mul(Number(3), x))
    assert parse_expression("x - 1 - 2") == sub(sub(x, Number(1)), Number(2))
    assert parse_expression("2^3^2") == power(Number(2), power(Number(3), Number(2)))


def test_unary_minus_binds_looser_than_power():
    assert parse_expression("-x^2") == neg(power(x, Number(2)))
    assert parse_expression("(-x)^2") == power(neg(x), Number(2))


def test_functions_and_constants():
    assert parse_expression("sin(x)") == Call(Function.SIN, x)
    assert parse_expression("log(x)") == Call(Function.LOG10, x)
    assert parse_expression("ln(x)") == Call(Function.LN, x)
    assert parse_expression("pi") == PI
    assert parse_expression("e") == E
    assert parse_expression("inf") == INFINITY
    assert parse_expression("∞") == INFINITY


def test_numbers():
    assert parse_expression("3.5") == Number(3.5)
    assert parse_expression(".5") == Number(0.5)
    assert parse("42") == Number(42)


def test_consecutive_operators_are_rejected():
    with pytest.raises(ParseError, match="Consecutive operators") as info:
        parse_expression("2 + + 3")
    assert info.value.position == 4


@pytest.mark.parametrize("source", ["x + * y", "2 * / 3", "x ^ + 1", "2*--x"])
def test_operator_after_operator(source):
    with pytest.raises(ParseError, match="Consecutive operators"):
        parse_expression(source)


def test_unary_minus_after_binary_operator():
    assert parse_expression("2*-x") == mul(Number(2), neg(x))
    assert parse_expression("x^-1") == power(x, neg(Number(1)))
    assert parse_expression("x - -y") == sub(x, neg(Variable("y")))
    assert parse_expression("x^-1*2") == mul(power(x, neg(Number(1))), Number(2))


def test_oversized_literal_is_rejected():
    with pytest.raises(ParseError, match="too large") as info:
        parse_expression("x + 1" + "0" * 400)
    assert info.value.position == 4


def test_unknown_function():
    with pytest.raises(UnknownFunctionError) as info:
        parse_expression("foo(x)")
    assert info.value.name == "foo"
    assert "Unknown function 'foo'" in info.value.message


@pytest.mark.parametrize("source, message", [
    ("(x + 1", "missing ')'"),
    ("x + 1)", "unexpected ')'"),
    ("", "cannot be empty"),
    ("   ", "cannot be empty"),
    ("2x", "explicit operator"),
    ("sin x", "needs parentheses"),
    ("atan(x, 2)", "exactly one argument"),
    ("2 * # 3", "Unexpected character '#'"),
    ("x +", "ends with an operator"),
    ("()", "Empty parentheses"),
])
def test_malformed_input(source, message):
    with pytest.raises(ParseError, match=re.escape(message)):
        parse_expression(source)


def test_parse_errors_are_value_errors():
    with pytest.raises(ValueError):
        parse_expression("2 + + 3")
