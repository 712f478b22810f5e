import pytest
import sympy

from Calculus.codegen import generate_code
from Calculus.differentiator import (
    Differentiator, differentiate, differentiate_higher_order,
)
from Calculus.evaluator import evaluate
from Calculus.expression import ZERO, add, mul, number
from Calculus.parser import parse_expression
from Calculus.simplifier import simplify


def derivative(source, variable="x"):
    return generate_code(differentiate(parse_expression(source), variable))


@pytest.mark.parametrize("source, expected", [
    ("x^2", "2*x"),
    ("3*x + 5", "3"),
    ("exp(x)", "exp(x)"),
    ("ln(x)", "1/x"),
    ("sin(x)", "cos(x)"),
    ("cos(x)", "-sin(x)"),
    ("sqrt(x)", "1/(2*sqrt(x))"),
    ("7", "0"),
    ("y", "0"),
])
def test_basic_rules(source, expected):
    assert derivative(source) == expected


def test_pythagorean_identity_differentiates_to_zero():
    assert differentiate(parse_expression("sin(x)^2 + cos(x)^2"), "x") == ZERO


def test_other_variables_are_constants():
    assert derivative("x*y", "y") == "x"
    assert derivative("x^2 + y^2", "y") == "2*y"


def test_higher_order():
    tree = parse_expression("x^3")
    assert generate_code(differentiate_higher_order(tree, "x", 2)) == "6*x"
    assert differentiate_higher_order(tree, "x", 4) == ZERO


def test_order_zero_returns_simplified_input():
    tree = parse_expression("x + x")
    assert differentiate_higher_order(tree, "x", 0) == simplify(tree)


def test_each_order_is_one_more_derivative():
    tree = parse_expression("x^2*sin(x)")
    previous = differentiate_higher_order(tree, "x", 2)
    assert differentiate_higher_order(tree, "x", 3) == differentiate(previous, "x")


@pytest.mark.parametrize("order", [-1, 1.5, True])
def test_invalid_order(order):
    with pytest.raises(ValueError):
        differentiate_higher_order(parse_expression("x"), "x", order)


def test_linearity():
    f = parse_expression("x^3*sin(x)")
    g = parse_expression("exp(2*x)/x")
    a, b = number(2), number(-5)
    combined = simplify(add(mul(a, f), mul(b, g)))
    left = differentiate(combined, "x")
    right = simplify(add(mul(a, differentiate(f, "x")), mul(b, differentiate(g, "x"))))
    for value in (0.3, 1.1, 2.5):
        assert evaluate(left, {"x": value}) == pytest.approx(evaluate(right, {"x": value}))


def test_step_log():
    differentiator = Differentiator("x")
    differentiator.run(parse_expression("sin(x^2)"))
    rules = [step["rule"] for step in differentiator.steps]
    assert rules[0] == "initial_expression"
    assert "sinRule_start" in rules
    assert "powerRule_start" in rules
    assert differentiator.steps[0]["expression"] == "sin(x^2)"
    assert all(step["id"].startswith(f"step_{i}_") for i, step in enumerate(differentiator.steps))


def test_step_log_can_be_disabled():
    differentiator = Differentiator("x", record_steps=False)
    differentiator.run(parse_expression("sin(x^2)"))
    assert differentiator.steps == []


@pytest.mark.parametrize("source", [
    "x^3*sin(x)",
    "exp(2*x)/x",
    "sqrt(x^2 + 1)",
    "atan(x)",
    "tan(x)",
    "ln(x)*cos(x)",
    "asin(x/2)",
    "x^x",
    "2^x",
    "tanh(x)*sinh(x) + cosh(x)",
    "log(x)",
])
def test_matches_sympy(source):
    x = sympy.Symbol("x")
    text = source.replace("^", "**").replace("log(", "log10(")
    oracle = sympy.diff(sympy.sympify(text, locals={"log10": lambda u: sympy.log(u, 10)}), x)
    result = differentiate(parse_expression(source), "x")
    for value in (0.3, 0.9, 1.7):
        expected = float(oracle.subs(x, value))
        assert evaluate(result, {"x": value}) == pytest.approx(expected, rel=1e-9)
