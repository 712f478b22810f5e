"""Parse, transform and render in one call, with timing and peak memory.

These wrappers back the HTTP routes. Engine failures propagate unchanged so
the caller can report them; only the measurements are added.
"""
import time
import tracemalloc
import logging

from Calculus.codegen import generate_code, to_latex
from Calculus.differentiator import Differentiator, differentiate_higher_order
from Calculus.integrator import integrate_symbolic
from Calculus.limits import find_limit
from Calculus.parser import parse_expression
from Calculus.series import match_known_series, taylor_series
from Calculus.simplifier import simplify

# --- Logger Setup ---
logger = logging.getLogger(__name__)


def _measure(operation):
    """Run ``operation()`` and return ``(result, execution_time_ms, peak_memory_bytes)``."""
    owns_trace = not tracemalloc.is_tracing()
    if owns_trace:
        tracemalloc.start()
    start_time = time.perf_counter()
    try:
        result = operation()
    finally:
        end_time = time.perf_counter()
        _, peak_memory = tracemalloc.get_traced_memory()
        if owns_trace:
            tracemalloc.stop()
    return result, (end_time - start_time) * 1000, peak_memory


def _rendered(node):
    return {"result": generate_code(node), "result_latex": to_latex(node)}


def compute_derivative(expression_str, variable_str, order=1):
    def run():
        expression_ast = parse_expression(expression_str)
        if order != 1:
            return differentiate_higher_order(expression_ast, variable_str, order), []

        # first derivatives carry the step log
        differentiator = Differentiator(variable_str)
        derivative_ast = simplify(differentiator.run(expression_ast))
        steps = differentiator.steps
        steps.append({
            "id": "final_derivative",
            "rule": "final_derivative",
            "expression": generate_code(derivative_ast),
            "explanation_text": "The final derivative is:",
        })
        return derivative_ast, steps

    (derivative_ast, steps), elapsed, peak = _measure(run)
    logger.debug("Derivative of %r (order %d) took %.3f ms", expression_str, order, elapsed)
    return {
        **_rendered(derivative_ast),
        "steps": steps,
        "execution_time_ms": elapsed,
        "peak_memory_bytes": peak,
    }


def compute_integral(expression_str, variable_str):
    antiderivative, elapsed, peak = _measure(
        lambda: integrate_symbolic(parse_expression(expression_str), variable_str)
    )
    logger.debug("Integral of %r took %.3f ms", expression_str, elapsed)
    rendered = _rendered(antiderivative)
    # the constant of integration is textual only
    rendered["result"] += " + C"
    rendered["result_latex"] += " + C"
    return {**rendered, "execution_time_ms": elapsed, "peak_memory_bytes": peak}


def compute_limit(expression_str, variable_str, point, direction="both"):
    limit, elapsed, peak = _measure(
        lambda: find_limit(parse_expression(expression_str), variable_str, point, direction)
    )
    logger.debug("Limit of %r at %s (%s) took %.3f ms", expression_str, point, direction, elapsed)
    return {**_rendered(limit), "execution_time_ms": elapsed, "peak_memory_bytes": peak}


def compute_series(expression_str, variable_str, point, order):
    def run():
        expression_ast = parse_expression(expression_str)
        return taylor_series(expression_ast, variable_str, point, order), match_known_series(expression_ast, variable_str)

    (series, known), elapsed, peak = _measure(run)
    logger.debug("Series of %r around %s took %.3f ms", expression_str, point, elapsed)
    return {
        **_rendered(series),
        "known_series": known,
        "execution_time_ms": elapsed,
        "peak_memory_bytes": peak,
    }
