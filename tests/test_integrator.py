import pytest

from Calculus.codegen import generate_code
from Calculus.differentiator import differentiate
from Calculus.errors import IntegrationFailure
from Calculus.evaluator import evaluate
from Calculus.integrator import integrate, integrate_symbolic
from Calculus.parser import parse_expression


def antiderivative(source, variable="x"):
    return generate_code(integrate_symbolic(parse_expression(source), variable))


@pytest.mark.parametrize("source, expected", [
    ("x^2", "x^3/3"),
    ("3", "3*x"),
    ("y", "y*x"),
    ("cos(x)", "sin(x)"),
    ("sin(x)", "-cos(x)"),
    ("1/x", "ln(abs(x))"),
    ("exp(x)", "exp(x)"),
    ("exp(2*x)", "exp(2*x)/2"),
    ("x^2 + 3*x", "x^3/3 + 3*x^2/2"),
    ("x*exp(x)", "x*exp(x) - exp(x)"),
    ("1/(1 + x^2)", "atan(x)"),
    ("1/cos(x)^2", "tan(x)"),
])
def test_closed_forms(source, expected):
    assert antiderivative(source) == expected


def test_alias():
    assert integrate(parse_expression("x^2"), "x") == integrate_symbolic(parse_expression("x^2"), "x")


def test_unsupported_integrand_is_reported():
    with pytest.raises(IntegrationFailure) as info:
        integrate_symbolic(parse_expression("sqrt(sin(x))"), "x")
    assert info.value.message == "Cannot symbolically integrate: sqrt(sin(x))"
    assert generate_code(info.value.subexpression) == "sqrt(sin(x))"


def test_failure_names_the_failing_term():
    with pytest.raises(IntegrationFailure) as info:
        integrate_symbolic(parse_expression("x^2 + exp(x^2)"), "x")
    assert generate_code(info.value.subexpression) == "exp(x^2)"


def test_failure_is_never_silent():
    with pytest.raises(IntegrationFailure):
        integrate_symbolic(parse_expression("exp(x)*cos(x)"), "x")


@pytest.mark.parametrize("source", [
    "x^2",
    "sin(x)",
    "x*exp(x)",
    "x^2*exp(x)",
    "x*sin(x)",
    "x^2*cos(3*x)",
    "1/(1 + x^2)",
    "1/sqrt(1 - x^2)",
    "sin(x)*cos(x)",
    "x*ln(x)",
    "x^2*ln(x)",
    "ln(x)",
    "ln(x)/x",
    "log(x)",
    "tan(x)",
    "tanh(x)",
    "2^x",
    "cos(3*x + 1)",
    "1/x^2",
    "sqrt(x)",
    "sin(x)^2",
    "cos(2*x)^2",
    "1/sin(x)^2",
    "x/(x^2 + 1)",
    "2*x*exp(x^2)",
    "cos(x)*exp(sin(x))",
    "(2*x + 1)^3",
    "1/(3*x - 2)",
    "atan(x)",
    "asin(x/2)",
    "acos(x/2)",
    "sinh(2*x) + cosh(x)",
])
def test_fundamental_theorem(source):
    integrand = parse_expression(source)
    result = integrate_symbolic(integrand, "x")
    check = differentiate(result, "x")
    for value in (0.3, 0.7, 0.9):
        assert evaluate(check, {"x": value}) == pytest.approx(evaluate(integrand, {"x": value}), rel=1e-9)
