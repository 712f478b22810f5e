import math
from decimal import Decimal

from Calculus.errors import InternalError
from Calculus.expression import (
    BinaryOp, BinaryOperator, Call, Constant, ConstantKind, Function, Number,
    UnaryOp, Variable, is_neg,
)

# Operator precedence for parenthesis insertion
PRECEDENCE = {
    BinaryOperator.ADD: 1,
    BinaryOperator.SUB: 1,
    BinaryOperator.MUL: 2,
    BinaryOperator.DIV: 2,
    BinaryOperator.POW: 4,
}
NEGATION_PRECEDENCE = 3
ATOM_PRECEDENCE = 5

BINARY_SYMBOLS = {
    BinaryOperator.ADD: " + ",
    BinaryOperator.SUB: " - ",
    BinaryOperator.MUL: "*",
    BinaryOperator.DIV: "/",
    BinaryOperator.POW: "^",
}

LATEX_FUNCTIONS = {
    Function.SIN: "\\sin",
    Function.COS: "\\cos",
    Function.TAN: "\\tan",
    Function.ASIN: "\\arcsin",
    Function.ACOS: "\\arccos",
    Function.ATAN: "\\arctan",
    Function.SINH: "\\sinh",
    Function.COSH: "\\cosh",
    Function.TANH: "\\tanh",
    Function.LN: "\\ln",
    Function.LOG10: "\\log_{10}",
    Function.EXP: "\\exp",
}

LATEX_CONSTANTS = {
    ConstantKind.PI: "\\pi",
    ConstantKind.E: "e",
    ConstantKind.INFINITY: "\\infty",
}


def format_number(value):
    if math.isnan(value):
        raise InternalError("Cannot render a NaN literal")
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        return str(int(value))
    # positional notation, the parser has no exponent syntax
    return format(Decimal(repr(value)), "f")


def _precedence(node):
    if isinstance(node, BinaryOp):
        return PRECEDENCE[node.op]
    if isinstance(node, UnaryOp):
        return NEGATION_PRECEDENCE
    if isinstance(node, Number) and node.value < 0:
        return NEGATION_PRECEDENCE
    return ATOM_PRECEDENCE


def _is_negative(node):
    return is_neg(node) or (isinstance(node, Number) and node.value < 0)


def _wrap_negated(node):
    return _precedence(node) == PRECEDENCE[BinaryOperator.ADD] or _is_negative(node)


def _wrap_left(node, op):
    child = _precedence(node)
    if op is BinaryOperator.POW:
        return child <= PRECEDENCE[op]
    return child < PRECEDENCE[op]


def _wrap_right(node, op):
    if _is_negative(node):
        return True
    child = _precedence(node)
    if op is BinaryOperator.POW:
        return child < PRECEDENCE[op]
    return child <= PRECEDENCE[op]


def generate_code(node):
    """Render ``node`` as text the parser reads back into the same tree."""
    if isinstance(node, Number):
        return format_number(node.value)
    if isinstance(node, Constant):
        return node.kind.value
    if isinstance(node, Variable):
        return node.name
    if isinstance(node, Call):
        return f"{node.function.value}({generate_code(node.argument)})"
    if isinstance(node, UnaryOp):
        operand = generate_code(node.operand)
        if _wrap_negated(node.operand):
            return f"-({operand})"
        return f"-{operand}"
    if isinstance(node, BinaryOp):
        left = generate_code(node.left)
        right = generate_code(node.right)
        if _wrap_left(node.left, node.op):
            left = f"({left})"
        if _wrap_right(node.right, node.op):
            right = f"({right})"
        return f"{left}{BINARY_SYMBOLS[node.op]}{right}"
    raise InternalError(f"Code generator has no rule for node {node!r}")


def to_latex(node):
    if isinstance(node, Number):
        if math.isinf(node.value):
            return LATEX_CONSTANTS[ConstantKind.INFINITY] if node.value > 0 else "-\\infty"
        return format_number(node.value)
    if isinstance(node, Constant):
        return LATEX_CONSTANTS[node.kind]
    if isinstance(node, Variable):
        return node.name

    if isinstance(node, Call):
        arg = to_latex(node.argument)
        if node.function is Function.SQRT:
            return f"\\sqrt{{{arg}}}"
        if node.function is Function.ABS:
            return f"\\left|{arg}\\right|"
        return f"{LATEX_FUNCTIONS[node.function]}\\left({arg}\\right)"

    if isinstance(node, UnaryOp):
        operand = to_latex(node.operand)
        if _wrap_negated(node.operand):
            return f"-\\left({operand}\\right)"
        return f"-{operand}"

    if isinstance(node, BinaryOp):
        op = node.op
        if op is BinaryOperator.DIV:
            return f"\\frac{{{to_latex(node.left)}}}{{{to_latex(node.right)}}}"

        left = to_latex(node.left)
        right = to_latex(node.right)
        if _wrap_left(node.left, op):
            left = f"\\left({left}\\right)"
        if op is BinaryOperator.POW:
            return f"{{{left}}}^{{{right}}}"
        if _wrap_right(node.right, op):
            right = f"\\left({right}\\right)"

        if op is BinaryOperator.ADD:
            return f"{left} + {right}"
        if op is BinaryOperator.SUB:
            return f"{left} - {right}"

        # Use implicit multiplication for a number and a variable/function (e.g., 4x)
        if isinstance(node.left, Number) and not isinstance(node.right, Number) and not _is_negative(node.right):
            return f"{left}{right}"
        return f"{left} \\cdot {right}"

    raise InternalError(f"LaTeX renderer has no rule for node {node!r}")
