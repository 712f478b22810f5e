import pytest

from Calculus.codegen import generate_code
from Calculus.errors import SeriesFailure, SeriesFailureKind
from Calculus.evaluator import evaluate
from Calculus.parser import parse_expression
from Calculus.series import match_known_series, taylor_series


def series(source, point, order, variable="x"):
    return generate_code(taylor_series(parse_expression(source), variable, point, order))


@pytest.mark.parametrize("source, point, order, expected", [
    ("exp(x)", "0", 3, "1 + x + x^2/2 + x^3/6"),
    ("sin(x)", "0", 5, "x - x^3/6 + x^5/120"),
    ("cos(x)", "0", 4, "1 - x^2/2 + x^4/24"),
    ("exp(x)", "0", 0, "1"),
    ("exp(x)", "1", 2, "e + e*(x - 1) + e*(x - 1)^2/2"),
    ("x^2 + 1", "0", 5, "1 + x^2"),
    ("sin(x)", "0", 0, "0"),
])
def test_expansions(source, point, order, expected):
    assert series(source, point, order) == expected


def test_numeric_point():
    assert generate_code(taylor_series(parse_expression("exp(x)"), "x", 0, 2)) == "1 + x + x^2/2"


def test_approximates_the_function_near_the_point():
    tree = parse_expression("ln(1 + x)")
    polynomial = taylor_series(tree, "x", "0", 7)
    assert evaluate(polynomial, {"x": 0.1}) == pytest.approx(evaluate(tree, {"x": 0.1}), abs=1e-8)


@pytest.mark.parametrize("source", ["ln(x)", "1/x", "sqrt(x)"])
def test_singular_point(source):
    with pytest.raises(SeriesFailure) as info:
        taylor_series(parse_expression(source), "x", "0", 3)
    assert info.value.kind is SeriesFailureKind.SINGULAR_POINT


def test_infinite_point_is_unsupported():
    with pytest.raises(SeriesFailure) as info:
        taylor_series(parse_expression("exp(x)"), "x", "inf", 3)
    assert info.value.kind is SeriesFailureKind.UNSUPPORTED_POINT


@pytest.mark.parametrize("order", [-1, 2.0])
def test_invalid_order(order):
    with pytest.raises(ValueError):
        taylor_series(parse_expression("exp(x)"), "x", "0", order)


def test_known_series():
    exponential = match_known_series(parse_expression("exp(2*x)"), "x")
    assert exponential["name"] == "Exponential Series (e^x)"
    assert exponential["inner"] == "2*x"
    assert "\\left(2x\\right)^n" in exponential["expansion"]

    logarithm = match_known_series(parse_expression("ln(1 + x)"), "x")
    assert logarithm["name"] == "Natural Logarithm Series (ln(1+x))"
    assert logarithm["inner"] == "x"

    geometric = match_known_series(parse_expression("1/(1 - x)"), "x")
    assert geometric["name"] == "Geometric Series (1/(1-x))"
    assert geometric["domain"] == "|x| < 1"

    assert match_known_series(parse_expression("sin(x)"), "x")["name"] == "Sine Series (sin(x))"
    assert match_known_series(parse_expression("x^2"), "x") is None
