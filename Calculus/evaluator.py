"""Structural numeric evaluation of an expression tree.

Used wherever a float is needed: sign probes in the limit evaluator, checks
on series coefficients, and the ``/evaluate`` route. Nothing is ever turned
into source text and executed.
"""
import math
from typing import Dict, Optional

from Calculus.errors import CalculusError, EvaluationError, InternalError
from Calculus.expression import (
    BinaryOp, BinaryOperator, Call, Constant, ConstantKind, Expression, Function,
    Number, UnaryOp, Variable,
)

FUNCTIONS = {
    Function.SIN: math.sin,
    Function.COS: math.cos,
    Function.TAN: math.tan,
    Function.ASIN: math.asin,
    Function.ACOS: math.acos,
    Function.ATAN: math.atan,
    Function.SINH: math.sinh,
    Function.COSH: math.cosh,
    Function.TANH: math.tanh,
    Function.LN: math.log,
    Function.LOG10: math.log10,
    Function.SQRT: math.sqrt,
    Function.EXP: math.exp,
    Function.ABS: abs,
}

CONSTANTS = {
    ConstantKind.PI: math.pi,
    ConstantKind.E: math.e,
    ConstantKind.INFINITY: math.inf,
}


def evaluate(node: Expression, scope: Optional[Dict[str, float]] = None) -> float:
    scope = scope or {}
    try:
        result = _evaluate(node, scope)
    except CalculusError:
        raise
    except ZeroDivisionError:
        raise EvaluationError("Division by zero")
    except OverflowError:
        raise EvaluationError("Numeric overflow")
    except ValueError:
        raise EvaluationError("Value outside the function's domain")
    if math.isnan(result):
        raise EvaluationError("Undefined result")
    return result


def _evaluate(node, scope):
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Constant):
        return CONSTANTS[node.kind]
    if isinstance(node, Variable):
        if node.name not in scope:
            raise EvaluationError(f"No value given for variable '{node.name}'")
        return float(scope[node.name])
    if isinstance(node, UnaryOp):
        return -_evaluate(node.operand, scope)
    if isinstance(node, Call):
        return float(FUNCTIONS[node.function](_evaluate(node.argument, scope)))
    if isinstance(node, BinaryOp):
        left = _evaluate(node.left, scope)
        right = _evaluate(node.right, scope)
        if node.op is BinaryOperator.ADD:
            return left + right
        if node.op is BinaryOperator.SUB:
            return left - right
        if node.op is BinaryOperator.MUL:
            return left * right
        if node.op is BinaryOperator.DIV:
            return left / right
        if node.op is BinaryOperator.POW:
            return math.pow(left, right)
    raise InternalError(f"Evaluator has no rule for node {node!r}")
