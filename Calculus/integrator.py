"""Indefinite integration by rule lookup.

Strategies, first success wins: linearity, the closed-form table (with the
``1/a`` correction for linear arguments ``a*x + b``), simple u-substitution,
integration by parts for polynomial times exp/sin/cos, and ``x^n*ln(x)``.
When nothing applies an :class:`IntegrationFailure` names the smallest
subexpression that defeated every rule. The ``+ C`` is left to the caller.
"""
import logging
from fractions import Fraction

from Calculus.codegen import generate_code
from Calculus.differentiator import differentiate
from Calculus.errors import IntegrationFailure
from Calculus.expression import (
    BinaryOperator, Call, Expression, Function, Number, ONE, TWO, Variable, ZERO,
    add, call, contains_variable, div, is_binary, is_neg, mul, neg, number, power,
    sub,
)
from Calculus.simplifier import (
    build_product, power_node, product_factors, simplify, sum_terms,
)

# --- Logger Setup ---
logger = logging.getLogger(__name__)

MAX_PARTS_ITERATIONS = 32


def _sqrt_one_minus_square(u):
    return call(Function.SQRT, sub(ONE, power(u, TWO)))


def _u_log_u_minus_u(u):
    return sub(mul(u, call(Function.LN, u)), u)


# Antiderivative F(u) of f(u) for every supported function.
ANTIDERIVATIVES = {
    Function.SIN: lambda u: neg(call(Function.COS, u)),
    Function.COS: lambda u: call(Function.SIN, u),
    Function.TAN: lambda u: neg(call(Function.LN, call(Function.ABS, call(Function.COS, u)))),
    Function.EXP: lambda u: call(Function.EXP, u),
    Function.SINH: lambda u: call(Function.COSH, u),
    Function.COSH: lambda u: call(Function.SINH, u),
    Function.TANH: lambda u: call(Function.LN, call(Function.COSH, u)),
    Function.LN: _u_log_u_minus_u,
    Function.LOG10: lambda u: div(_u_log_u_minus_u(u), call(Function.LN, number(10))),
    Function.SQRT: lambda u: div(mul(mul(TWO, u), call(Function.SQRT, u)), number(3)),
    Function.ABS: lambda u: div(mul(u, call(Function.ABS, u)), TWO),
    Function.ASIN: lambda u: add(mul(u, call(Function.ASIN, u)), _sqrt_one_minus_square(u)),
    Function.ACOS: lambda u: sub(mul(u, call(Function.ACOS, u)), _sqrt_one_minus_square(u)),
    Function.ATAN: lambda u: sub(
        mul(u, call(Function.ATAN, u)),
        div(call(Function.LN, add(ONE, power(u, TWO))), TWO),
    ),
}

# Transcendental factors integration by parts can pair with a polynomial.
PARTS_FUNCTIONS = {Function.EXP, Function.SIN, Function.COS, Function.SINH, Function.COSH}


class Integrator:
    def __init__(self, variable):
        self.variable = variable
        self.x = Variable(variable)

    def integrate(self, node: Expression) -> Expression:
        if not contains_variable(node, self.variable):
            return mul(node, self.x)

        if is_binary(node, BinaryOperator.ADD) or is_binary(node, BinaryOperator.SUB):
            return self._integrate_sum(node)

        coefficient, factors = product_factors(node)
        constant = [(b, e) for b, e in factors if not contains_variable(b, self.variable)]
        dependent = [(b, e) for b, e in factors if contains_variable(b, self.variable)]
        antiderivative = self._integrate_factors(dependent)
        return mul(build_product(coefficient, constant), antiderivative)

    def _integrate_sum(self, node):
        result = None
        for sign, term in sum_terms(node):
            integral = self.integrate(term)
            if result is None:
                result = integral if sign > 0 else neg(integral)
            elif sign > 0:
                result = add(result, integral)
            else:
                result = sub(result, integral)
        return result

    def _integrate_factors(self, factors):
        if len(factors) == 1:
            base, exponent = factors[0]
            result = self._integrate_power(base, exponent)
            if result is None:
                result = self._substitution(factors)
        else:
            result = (
                self._substitution(factors)
                or self._by_parts(factors)
                or self._power_times_log(factors)
            )
        if result is None:
            culprit = simplify(build_product(1, factors))
            logger.debug("No integration rule applies to %s", generate_code(culprit))
            raise IntegrationFailure(culprit, generate_code(culprit))
        return result

    # --- Helpers ---
    def _linear_slope(self, u):
        """``a`` when ``u`` is ``a*x + b`` with a non-zero constant ``a``."""
        if not contains_variable(u, self.variable):
            return None
        slope = differentiate(u, self.variable)
        if contains_variable(slope, self.variable) or slope == ZERO:
            return None
        return slope

    def _matches(self, node, template):
        return simplify(sub(node, template)) == ZERO

    # --- Table lookup ---
    def _integrate_power(self, base, exponent):
        """Closed forms for a single factor ``base^exponent``."""
        slope = self._linear_slope(base)
        if slope is not None:
            if exponent == -1:
                return div(call(Function.LN, call(Function.ABS, base)), slope)
            return div(power(base, number(exponent + 1)), mul(number(exponent + 1), slope))

        if exponent == 1:
            return self._integrate_function(base)

        if isinstance(base, Call):
            u = base.argument
            slope = self._linear_slope(u)
            if slope is not None:
                if exponent == 2 and base.function in (Function.SIN, Function.COS):
                    double_angle = div(call(Function.SIN, mul(TWO, u)), number(4))
                    half = div(u, TWO)
                    if base.function is Function.SIN:
                        return div(sub(half, double_angle), slope)
                    return div(add(half, double_angle), slope)
                if exponent == -2:
                    if base.function is Function.COS:
                        return div(call(Function.TAN, u), slope)
                    if base.function is Function.SIN:
                        return neg(div(ONE, mul(slope, call(Function.TAN, u))))
                    if base.function is Function.COSH:
                        return div(call(Function.TANH, u), slope)
            if exponent == -1 and base.function is Function.SQRT:
                if self._matches(u, sub(ONE, power(self.x, TWO))):
                    return call(Function.ASIN, self.x)

        if exponent == -1 and self._matches(base, add(ONE, power(self.x, TWO))):
            return call(Function.ATAN, self.x)
        return None

    def _integrate_function(self, node):
        if isinstance(node, Call):
            slope = self._linear_slope(node.argument)
            rule = ANTIDERIVATIVES.get(node.function)
            if slope is None or rule is None:
                return None
            return div(rule(node.argument), slope)

        if is_binary(node, BinaryOperator.POW) and not contains_variable(node.left, self.variable):
            # c^(a*x + b) = c^(a*x + b) / (a*ln(c))
            slope = self._linear_slope(node.right)
            if slope is None:
                return None
            return div(node, mul(slope, call(Function.LN, node.left)))
        return None

    # --- Substitution ---
    def _outer_antiderivatives(self, base, exponent):
        """Yield ``(u, F)`` pairs where the factor is ``f(u)`` and ``F`` its antiderivative in u."""
        if exponent == 1 and isinstance(base, Call) and base.function in ANTIDERIVATIVES:
            yield base.argument, ANTIDERIVATIVES[base.function]
        if exponent == 1 and is_binary(base, BinaryOperator.POW) and not contains_variable(base.left, self.variable):
            c = base.left
            yield base.right, lambda u: div(power(c, u), call(Function.LN, c))
        if not isinstance(base, Variable):
            if exponent == -1:
                yield base, lambda u: call(Function.LN, call(Function.ABS, u))
            else:
                yield base, lambda u: div(power(u, number(exponent + 1)), number(exponent + 1))

    def _substitution(self, factors):
        """Integrate ``f(u) * c*u'`` as ``c*F(u)``."""
        for index, (base, exponent) in enumerate(factors):
            rest = build_product(1, factors[:index] + factors[index + 1:])
            for u, outer in self._outer_antiderivatives(base, exponent):
                du = differentiate(u, self.variable)
                if du == ZERO:
                    continue
                ratio = simplify(div(rest, du))
                if not contains_variable(ratio, self.variable):
                    logger.debug("Substituting u = %s", generate_code(u))
                    return mul(ratio, outer(u))
        return None

    # --- Integration by parts ---
    def _is_polynomial(self, node):
        if not contains_variable(node, self.variable) or isinstance(node, Variable):
            return True
        if is_neg(node):
            return self._is_polynomial(node.operand)
        if any(is_binary(node, op) for op in (BinaryOperator.ADD, BinaryOperator.SUB, BinaryOperator.MUL)):
            return self._is_polynomial(node.left) and self._is_polynomial(node.right)
        if is_binary(node, BinaryOperator.DIV):
            return self._is_polynomial(node.left) and not contains_variable(node.right, self.variable)
        if is_binary(node, BinaryOperator.POW):
            exponent = node.right
            return (
                self._is_polynomial(node.left)
                and isinstance(exponent, Number)
                and exponent.value >= 0
                and exponent.value.is_integer()
            )
        return False

    def _is_parts_factor(self, base, exponent):
        if exponent != 1:
            return False
        if isinstance(base, Call):
            return base.function in PARTS_FUNCTIONS and self._linear_slope(base.argument) is not None
        if is_binary(base, BinaryOperator.POW):
            return not contains_variable(base.left, self.variable) and self._linear_slope(base.right) is not None
        return False

    def _by_parts(self, factors):
        """Tabular integration: sum of (-1)^k * P^(k) * T_(k+1)."""
        candidates = [i for i, (b, e) in enumerate(factors) if self._is_parts_factor(b, e)]
        if len(candidates) != 1:
            return None
        index = candidates[0]
        polynomial = build_product(1, factors[:index] + factors[index + 1:])
        if not self._is_polynomial(polynomial):
            return None

        logger.debug("Integrating by parts with polynomial %s", generate_code(polynomial))
        transcendental = power_node(*factors[index])
        result = None
        for k in range(MAX_PARTS_ITERATIONS):
            transcendental = simplify(self.integrate(transcendental))
            term = mul(polynomial, transcendental)
            if result is None:
                result = term
            elif k % 2:
                result = sub(result, term)
            else:
                result = add(result, term)
            polynomial = differentiate(polynomial, self.variable)
            if polynomial == ZERO:
                return result
        logger.debug("Integration by parts did not terminate within %d rounds", MAX_PARTS_ITERATIONS)
        return None

    def _power_times_log(self, factors):
        """x^n * ln(x) = x^(n+1)*ln(x)/(n+1) - x^(n+1)/(n+1)^2."""
        if len(factors) != 2:
            return None
        log_factor = (call(Function.LN, self.x), Fraction(1))
        if log_factor not in factors:
            return None
        base, n = factors[1 - factors.index(log_factor)]
        if base != self.x or n == -1:
            return None
        raised = power(self.x, number(n + 1))
        return sub(
            div(mul(raised, call(Function.LN, self.x)), number(n + 1)),
            div(raised, number((n + 1) ** 2)),
        )


def integrate_symbolic(node: Expression, variable: str) -> Expression:
    """Antiderivative of ``node`` with respect to ``variable`` (no ``+ C``)."""
    result = Integrator(variable).integrate(simplify(node))
    return simplify(result)


integrate = integrate_symbolic
