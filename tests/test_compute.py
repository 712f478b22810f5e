import tracemalloc

import pytest

from Calculus.compute import (
    compute_derivative, compute_integral, compute_limit, compute_series,
)
from Calculus.errors import IntegrationFailure, ParseError


def test_derivative_with_steps():
    output = compute_derivative("x^2", "x")
    assert output["result"] == "2*x"
    assert output["result_latex"] == "2x"
    assert output["steps"][0]["rule"] == "initial_expression"
    assert output["steps"][-1]["id"] == "final_derivative"
    assert output["steps"][-1]["expression"] == "2*x"
    assert output["execution_time_ms"] >= 0
    assert output["peak_memory_bytes"] >= 0


def test_higher_order_derivative_has_no_steps():
    output = compute_derivative("x^3", "x", order=2)
    assert output["result"] == "6*x"
    assert output["steps"] == []


def test_integral_carries_constant():
    output = compute_integral("x^2", "x")
    assert output["result"] == "x^3/3 + C"
    assert output["result_latex"] == "\\frac{{x}^{3}}{3} + C"


def test_limit():
    assert compute_limit("sin(x)/x", "x", "0")["result"] == "1"
    assert compute_limit("1/x", "x", "0", "left")["result_latex"] == "-\\infty"


def test_series():
    output = compute_series("exp(x)", "x", "0", 3)
    assert output["result"] == "1 + x + x^2/2 + x^3/6"
    assert output["known_series"]["name"] == "Exponential Series (e^x)"
    assert compute_series("x^2", "x", "0", 2)["known_series"] is None


def test_failures_propagate():
    with pytest.raises(IntegrationFailure):
        compute_integral("sqrt(sin(x))", "x")
    with pytest.raises(ParseError):
        compute_derivative("x +", "x")


def test_leaves_outer_trace_running():
    tracemalloc.start()
    try:
        compute_derivative("sin(x)", "x")
        assert tracemalloc.is_tracing()
    finally:
        tracemalloc.stop()
