import math

import pytest

from Calculus.errors import EvaluationError
from Calculus.evaluator import evaluate
from Calculus.parser import parse_expression


def test_evaluates_with_scope():
    assert evaluate(parse_expression("2*x + 1"), {"x": 3}) == 7
    assert evaluate(parse_expression("x*y - 1"), {"x": 2, "y": 4}) == 7


def test_functions_and_constants():
    assert evaluate(parse_expression("sin(pi/2)")) == pytest.approx(1.0)
    assert evaluate(parse_expression("ln(e)")) == pytest.approx(1.0)
    assert evaluate(parse_expression("log(100)")) == pytest.approx(2.0)
    assert evaluate(parse_expression("sqrt(2)^2")) == pytest.approx(2.0)
    assert evaluate(parse_expression("abs(-4) + atan(1)*4")) == pytest.approx(4 + math.pi)
    assert evaluate(parse_expression("inf")) == math.inf


@pytest.mark.parametrize("source, message", [
    ("1/0", "Division by zero"),
    ("x + 1", "No value given for variable 'x'"),
    ("ln(-1)", "domain"),
    ("sqrt(-1)", "domain"),
    ("asin(2)", "domain"),
    ("exp(1000)", "overflow"),
    ("inf - inf", "Undefined"),
])
def test_failures(source, message):
    with pytest.raises(EvaluationError, match=message):
        evaluate(parse_expression(source))
