import logging
from typing import Dict, List

from Calculus.codegen import generate_code
from Calculus.errors import InternalError
from Calculus.expression import (
    BinaryOp, BinaryOperator, Call, Constant, Expression, Function, Number, ONE,
    TWO, UnaryOp, Variable, ZERO, add, call, contains_variable, div, mul, neg,
    number, power, sub,
)
from Calculus.simplifier import simplify

# --- Logger Setup ---
logger = logging.getLogger(__name__)


def _one_minus_square(u):
    return sub(ONE, power(u, TWO))


# Outer derivative f'(u) of every supported function; the chain rule multiplies by du.
CHAIN_RULES = {
    Function.SIN: lambda u: call(Function.COS, u),
    Function.COS: lambda u: neg(call(Function.SIN, u)),
    Function.TAN: lambda u: div(ONE, power(call(Function.COS, u), TWO)),
    Function.ASIN: lambda u: div(ONE, call(Function.SQRT, _one_minus_square(u))),
    Function.ACOS: lambda u: neg(div(ONE, call(Function.SQRT, _one_minus_square(u)))),
    Function.ATAN: lambda u: div(ONE, add(ONE, power(u, TWO))),
    Function.SINH: lambda u: call(Function.COSH, u),
    Function.COSH: lambda u: call(Function.SINH, u),
    Function.TANH: lambda u: div(ONE, power(call(Function.COSH, u), TWO)),
    Function.LN: lambda u: div(ONE, u),
    Function.LOG10: lambda u: div(ONE, mul(u, call(Function.LN, number(10)))),
    Function.SQRT: lambda u: div(ONE, mul(TWO, call(Function.SQRT, u))),
    Function.EXP: lambda u: call(Function.EXP, u),
    Function.ABS: lambda u: div(u, call(Function.ABS, u)),
}


# --- Derivative Computation with Step-by-Step Logging ---
class Differentiator:
    def __init__(self, variable, record_steps=True):
        self.variable = variable
        self.record_steps = record_steps
        self.steps: List[Dict[str, str]] = []

    def _add_step(self, node, rule_key, explanation):
        if not self.record_steps:
            return
        self.steps.append({
            "id": f"step_{len(self.steps)}_{rule_key}",
            "rule": rule_key,
            "expression": generate_code(node),
            "explanation_text": explanation,
        })

    def run(self, node: Expression) -> Expression:
        self._add_step(node, "initial_expression", f"Differentiating the expression with respect to {self.variable}:")
        return self._differentiate(node)

    def _apply_chain_rule(self, node):
        u = node.argument
        name = node.function.value
        rule = CHAIN_RULES.get(node.function)
        if rule is None:
            raise InternalError(f"Differentiation rule for '{name}' not implemented")
        self._add_step(node, f"{name}Rule_start", f"Applying the Chain Rule for {name}:")
        du = self._differentiate(u)
        result_node = mul(rule(u), du)
        self._add_step(result_node, f"{name}Rule_result", f"Result of the Chain Rule for {name}.")
        return result_node

    def _differentiate(self, node):
        # Base cases: constants or the variable itself
        if isinstance(node, Variable):
            if node.name == self.variable:
                self._add_step(node, "variableRule", f"The derivative of {self.variable} is 1.")
                return ONE
            self._add_step(node, "constantRule", "The derivative of a constant is 0.")
            return ZERO
        if isinstance(node, (Number, Constant)) or not contains_variable(node, self.variable):
            self._add_step(node, "constantRule", "The derivative of a constant is 0.")
            return ZERO

        if isinstance(node, UnaryOp):
            self._add_step(node, "negationRule", "The derivative of -f is -f'.")
            return neg(self._differentiate(node.operand))

        if isinstance(node, Call):
            return self._apply_chain_rule(node)

        if not isinstance(node, BinaryOp):
            raise InternalError(f"Differentiation rule for {node!r} not implemented")

        op = node.op
        u, v = node.left, node.right

        if op in (BinaryOperator.ADD, BinaryOperator.SUB):
            self._add_step(node, "sumRule_start", "Applying the Sum/Difference Rule.")
            result_node = BinaryOp(op, self._differentiate(u), self._differentiate(v))
            self._add_step(result_node, "sumRule_result", "Result of the Sum/Difference Rule.")
            return result_node

        if op is BinaryOperator.MUL:
            self._add_step(node, "productRule_start", "Applying the Product Rule:")
            du = self._differentiate(u)
            dv = self._differentiate(v)
            result_node = add(mul(du, v), mul(u, dv))
            self._add_step(result_node, "productRule_result", "Result of the Product Rule.")
            return result_node

        if op is BinaryOperator.DIV:
            self._add_step(node, "quotientRule_start", "Applying the Quotient Rule:")
            du = self._differentiate(u)
            dv = self._differentiate(v)
            result_node = div(sub(mul(du, v), mul(u, dv)), power(v, TWO))
            self._add_step(result_node, "quotientRule_result", "Result of the Quotient Rule.")
            return result_node

        if op is BinaryOperator.POW:
            return self._differentiate_power(node)

        raise InternalError(f"Differentiation rule for '{op.value}' not implemented")

    def _differentiate_power(self, node):
        base, exponent = node.left, node.right
        if not contains_variable(exponent, self.variable):  # Power Rule: f(x)^c
            self._add_step(node, "powerRule_start", "Applying the Power Rule:")
            du = self._differentiate(base)
            result_node = mul(mul(exponent, power(base, sub(exponent, ONE))), du)
            self._add_step(result_node, "powerRule_result", "Result of the Power Rule.")
            return result_node

        if not contains_variable(base, self.variable):  # Exponential Rule: c^g(x)
            self._add_step(node, "exponentialRule_start", "Applying the Exponential Rule:")
            dv = self._differentiate(exponent)
            result_node = mul(mul(node, call(Function.LN, base)), dv)
            self._add_step(result_node, "exponentialRule_result", "Result of the Exponential Rule.")
            return result_node

        # f(x)^g(x) = exp(g*ln(f))
        self._add_step(node, "generalPowerRule_start", "Applying the General Power Rule:")
        du = self._differentiate(base)
        dv = self._differentiate(exponent)
        result_node = mul(node, add(mul(dv, call(Function.LN, base)), div(mul(exponent, du), base)))
        self._add_step(result_node, "generalPowerRule_result", "Result of the General Power Rule.")
        return result_node


def differentiate(node: Expression, variable: str) -> Expression:
    """First derivative of ``node``, simplified."""
    return simplify(Differentiator(variable, record_steps=False).run(node))


def differentiate_higher_order(node: Expression, variable: str, order: int) -> Expression:
    """Apply :func:`differentiate` ``order`` times, simplifying between rounds.

    No upper bound is enforced; the tree can grow quickly under repeated
    product and chain rule expansion, so callers should cap ``order``.
    """
    if isinstance(order, bool) or not isinstance(order, int) or order < 0:
        raise ValueError("Order must be a non-negative integer")
    result = simplify(node)
    for round_number in range(order):
        result = differentiate(result, variable)
        logger.debug("Derivative %d of %s: %s", round_number + 1, variable, generate_code(result))
    return result
