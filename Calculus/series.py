"""Taylor expansion and recognition of the classic power series."""
import math
import logging
from typing import Dict, Optional

from Calculus.codegen import generate_code, to_latex
from Calculus.differentiator import differentiate
from Calculus.errors import (
    DivisionByZeroError, EvaluationError, SeriesFailure, SeriesFailureKind,
)
from Calculus.evaluator import evaluate
from Calculus.expression import (
    BinaryOperator, Call, Constant, Expression, Function, Number, ONE, Variable,
    ZERO, add, div, free_variables, is_binary, is_infinite, mul, neg, number,
    power, sub, substitute,
)
from Calculus.parser import parse_expression
from Calculus.simplifier import product_factors, simplify

# --- Logger Setup ---
logger = logging.getLogger(__name__)

# (name, general term, domain of convergence); "{u}" stands for the inner expression.
KNOWN_SERIES = {
    "exp": (
        "Exponential Series (e^x)",
        "\\sum_{{n=0}}^{{\\infty}} \\frac{{{u}^n}}{{n!}}",
        "{u} \\in \\mathbb{{R}}",
    ),
    "ln": (
        "Natural Logarithm Series (ln(1+x))",
        "\\sum_{{n=1}}^{{\\infty}} \\frac{{(-1)^{{n+1}} {u}^n}}{{n}}",
        "-1 < {u} \\leq 1",
    ),
    "geometric": (
        "Geometric Series (1/(1-x))",
        "\\sum_{{n=0}}^{{\\infty}} {u}^n",
        "|{u}| < 1",
    ),
    "sin": (
        "Sine Series (sin(x))",
        "\\sum_{{n=0}}^{{\\infty}} \\frac{{(-1)^n {u}^{{2n+1}}}}{{(2n+1)!}}",
        "{u} \\in \\mathbb{{R}}",
    ),
    "cos": (
        "Cosine Series (cos(x))",
        "\\sum_{{n=0}}^{{\\infty}} \\frac{{(-1)^n {u}^{{2n}}}}{{(2n)!}}",
        "{u} \\in \\mathbb{{R}}",
    ),
}


def _parse_point(point) -> Expression:
    if isinstance(point, Expression):
        target = point
    elif isinstance(point, (int, float)):
        target = Number(point)
    else:
        target = parse_expression(str(point))
    target = simplify(target)
    if is_infinite(target):
        raise SeriesFailure(SeriesFailureKind.UNSUPPORTED_POINT, "Cannot expand a Taylor series around infinity")
    if free_variables(target):
        raise SeriesFailure(
            SeriesFailureKind.UNSUPPORTED_POINT,
            f"Expansion point must be a number, got {generate_code(target)}",
        )
    return target


def _coefficient(derivative, variable, point, k):
    """k-th derivative evaluated at the expansion point."""
    singular = SeriesFailure(
        SeriesFailureKind.SINGULAR_POINT,
        f"Series expansion is undefined at {variable} = {generate_code(point)}: "
        f"derivative {k} is singular there",
    )
    try:
        value = simplify(substitute(derivative, variable, point))
        numeric = evaluate(value)
    except (DivisionByZeroError, EvaluationError):
        raise singular
    if math.isinf(numeric):
        raise singular
    return value


def taylor_series(node: Expression, variable: str, point, order: int) -> Expression:
    """Taylor polynomial of ``node`` around ``point`` up to ``(x - point)^order``.

    Each term ``c_k*(x - a)^k/k!`` is simplified on its own so the powers of
    ``x - a`` stay grouped; terms with a zero coefficient are dropped.
    """
    if isinstance(order, bool) or not isinstance(order, int) or order < 0:
        raise ValueError("Order must be a non-negative integer")
    center = _parse_point(point)
    x = Variable(variable)
    offset = simplify(sub(x, center))

    derivative = simplify(node)
    result = None
    for k in range(order + 1):
        if k > 0:
            derivative = differentiate(derivative, variable)
        coefficient = _coefficient(derivative, variable, center, k)
        logger.debug("Taylor coefficient %d at %s: %s", k, generate_code(center), generate_code(coefficient))
        if coefficient == ZERO:
            continue
        term = simplify(div(mul(coefficient, power(offset, number(k))), number(math.factorial(k))))
        if result is None:
            result = term
        elif product_factors(term)[0] < 0:
            result = sub(result, simplify(neg(term)))
        else:
            result = add(result, term)
    return ZERO if result is None else result


def _inner_latex(u):
    rendered = to_latex(u)
    if isinstance(u, (Variable, Number, Constant, Call)):
        return rendered
    return f"\\left({rendered}\\right)"


def match_known_series(node: Expression, variable: str = "x") -> Optional[Dict[str, str]]:
    """Recognize ``exp(u)``, ``sin(u)``, ``cos(u)``, ``ln(1+u)`` and ``1/(1-u)``.

    Returns the series name, its general term and domain of convergence in
    LaTeX, and the inner expression ``u``; None when nothing matches.
    """
    node = simplify(node)
    key, inner = None, None
    if isinstance(node, Call):
        if node.function in (Function.EXP, Function.SIN, Function.COS):
            key, inner = node.function.value, node.argument
        elif node.function is Function.LN:
            key, inner = "ln", simplify(sub(node.argument, ONE))
    elif is_binary(node, BinaryOperator.DIV) or is_binary(node, BinaryOperator.POW):
        coefficient, factors = product_factors(node)
        if coefficient == 1 and len(factors) == 1 and factors[0][1] == -1:
            key, inner = "geometric", simplify(sub(ONE, factors[0][0]))
    if key is None or variable not in free_variables(inner):
        return None

    name, expansion, domain = KNOWN_SERIES[key]
    u = _inner_latex(inner)
    return {
        "name": name,
        "expansion": expansion.format(u=u),
        "domain": domain.format(u=u),
        "inner": generate_code(inner),
    }
