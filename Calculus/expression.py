"""Immutable expression tree shared by every stage of the engine.

Nodes are frozen dataclasses, so equality is structural and every rewrite
builds a new tree. Unchanged subtrees are shared between the old and new tree.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Set


class BinaryOperator(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    POW = "^"


class UnaryOperator(enum.Enum):
    NEG = "-"


class ConstantKind(enum.Enum):
    PI = "pi"
    E = "e"
    INFINITY = "inf"


class Function(enum.Enum):
    SIN = "sin"
    COS = "cos"
    TAN = "tan"
    ASIN = "asin"
    ACOS = "acos"
    ATAN = "atan"
    SINH = "sinh"
    COSH = "cosh"
    TANH = "tanh"
    LN = "ln"
    LOG10 = "log10"
    SQRT = "sqrt"
    EXP = "exp"
    ABS = "abs"


# Names accepted by the parser; values render back with Function.value.
FUNCTION_NAMES: Dict[str, Function] = {f.value: f for f in Function}
FUNCTION_NAMES["log"] = Function.LOG10

CONSTANT_NAMES: Dict[str, ConstantKind] = {
    "pi": ConstantKind.PI,
    "e": ConstantKind.E,
    "inf": ConstantKind.INFINITY,
    "infinity": ConstantKind.INFINITY,
    "oo": ConstantKind.INFINITY,
}


class Expression:
    """Marker base class for every node variant."""

    __slots__ = ()


@dataclass(frozen=True)
class Number(Expression):
    value: float

    def __post_init__(self):
        # float() plus 0.0 also folds -0.0 into 0.0
        object.__setattr__(self, "value", float(self.value) + 0.0)


@dataclass(frozen=True)
class Constant(Expression):
    kind: ConstantKind


@dataclass(frozen=True)
class Variable(Expression):
    name: str


@dataclass(frozen=True)
class BinaryOp(Expression):
    op: BinaryOperator
    left: Expression
    right: Expression


@dataclass(frozen=True)
class UnaryOp(Expression):
    op: UnaryOperator
    operand: Expression


@dataclass(frozen=True)
class Call(Expression):
    function: Function
    argument: Expression


ZERO = Number(0.0)
ONE = Number(1.0)
TWO = Number(2.0)
PI = Constant(ConstantKind.PI)
E = Constant(ConstantKind.E)
INFINITY = Constant(ConstantKind.INFINITY)


# --- Builders ---
def number(value):
    return Number(value)


def add(left, right):
    return BinaryOp(BinaryOperator.ADD, left, right)


def sub(left, right):
    return BinaryOp(BinaryOperator.SUB, left, right)


def mul(left, right):
    return BinaryOp(BinaryOperator.MUL, left, right)


def div(left, right):
    return BinaryOp(BinaryOperator.DIV, left, right)


def power(base, exponent):
    return BinaryOp(BinaryOperator.POW, base, exponent)


def neg(operand):
    return UnaryOp(UnaryOperator.NEG, operand)


def call(function, argument):
    return Call(function, argument)


# --- Shape helpers ---
def is_number(node, value=None):
    if not isinstance(node, Number):
        return False
    return value is None or node.value == value


def is_binary(node, op):
    return isinstance(node, BinaryOp) and node.op is op


def is_neg(node):
    return isinstance(node, UnaryOp) and node.op is UnaryOperator.NEG


def is_infinite(node):
    """True for ``inf`` and ``-inf``."""
    if is_neg(node):
        node = node.operand
    return isinstance(node, Constant) and node.kind is ConstantKind.INFINITY


def contains_variable(node: Expression, name: str) -> bool:
    if isinstance(node, Variable):
        return node.name == name
    if isinstance(node, BinaryOp):
        return contains_variable(node.left, name) or contains_variable(node.right, name)
    if isinstance(node, UnaryOp):
        return contains_variable(node.operand, name)
    if isinstance(node, Call):
        return contains_variable(node.argument, name)
    return False


def free_variables(node: Expression) -> Set[str]:
    if isinstance(node, Variable):
        return {node.name}
    if isinstance(node, BinaryOp):
        return free_variables(node.left) | free_variables(node.right)
    if isinstance(node, UnaryOp):
        return free_variables(node.operand)
    if isinstance(node, Call):
        return free_variables(node.argument)
    return set()


def substitute(node: Expression, name: str, replacement: Expression) -> Expression:
    """Replace every occurrence of variable ``name`` with ``replacement``."""
    if isinstance(node, Variable):
        return replacement if node.name == name else node
    if isinstance(node, BinaryOp):
        left = substitute(node.left, name, replacement)
        right = substitute(node.right, name, replacement)
        if left is node.left and right is node.right:
            return node
        return BinaryOp(node.op, left, right)
    if isinstance(node, UnaryOp):
        operand = substitute(node.operand, name, replacement)
        return node if operand is node.operand else UnaryOp(node.op, operand)
    if isinstance(node, Call):
        argument = substitute(node.argument, name, replacement)
        return node if argument is node.argument else Call(node.function, argument)
    return node
